from pathlib import Path

import pytest

from code_auditor.core.errors import ToolExecutionError
from code_auditor.tools import ALL_TOOLS, ToolContext, ToolKind, ToolRegistry, ToolSpec, registry
from code_auditor.tools.registry import SCHEMA_DIR


def test_builtin_tools_are_registered():
    assert list(registry.available()) == sorted(ALL_TOOLS)


def test_function_schemas_strip_schema_marker():
    schemas = {entry["function"]["name"]: entry for entry in registry.function_schemas()}

    read_file = schemas["read_file"]
    assert read_file["type"] == "function"
    assert read_file["function"]["description"]
    assert "$schema" not in read_file["function"]["parameters"]
    assert read_file["function"]["parameters"]["required"] == ["path"]


def test_invoke_validates_arguments(tmp_path):
    local = ToolRegistry()
    seen = []
    local.register(
        ToolSpec(
            name="read_file",
            handler=lambda payload, context: seen.append(payload) or "ok",
            schema_path=SCHEMA_DIR / "read_file.json",
        )
    )
    context = ToolContext(repo_root=tmp_path)

    assert local.invoke("read_file", {"path": "a.py", "start_line": 3}, context) == "ok"

    with pytest.raises(ToolExecutionError, match="Invalid arguments for read_file"):
        local.invoke("read_file", {"start_line": 3}, context)
    with pytest.raises(ToolExecutionError, match="start_line"):
        local.invoke("read_file", {"path": "a.py", "start_line": 0}, context)
    assert len(seen) == 1


def test_get_unknown_tool_raises_key_error():
    with pytest.raises(KeyError):
        ToolRegistry().get("missing")


def test_tool_kind_classification():
    assert ToolKind.from_name("read_file") is ToolKind.READ_FILE
    assert ToolKind.from_name(" finish ") is ToolKind.FINISH
    assert ToolKind.from_name("shell") is ToolKind.UNKNOWN
    assert ToolKind.from_name(None) is ToolKind.UNKNOWN
    assert ToolKind.from_name("unknown") is ToolKind.UNKNOWN
    assert ToolKind.FINISH.is_terminal
    assert not ToolKind.REPORT_ISSUE.is_terminal


def test_schema_files_ship_with_package():
    names = {path.stem for path in Path(SCHEMA_DIR).glob("*.json")}
    assert names == set(ALL_TOOLS)
