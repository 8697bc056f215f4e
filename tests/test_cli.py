import json
import logging
import os

import pytest
from click.testing import CliRunner

from code_auditor import cli as cli_module
from code_auditor.cli import main
from code_auditor.core.utils import config as config_module
from code_auditor.providers.llm.base import LLMConnectionError, ModelReply, ToolCall
from code_auditor.repo import CloneResult


class FakeClient:
    model = "fake"

    def __init__(self, replies=(), healthy=True):
        self.replies = list(replies)
        self.healthy = healthy
        self.requests = []

    def check_health(self):
        return self.healthy

    def chat(self, messages, tools=None, *, temperature=0.1):
        self.requests.append((list(messages), tools))
        if not self.replies:
            return ModelReply(calls=[ToolCall(name="finish", arguments={})])
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _report_call():
    return ModelReply(
        calls=[
            ToolCall(
                name="report_issue",
                arguments={
                    "file_path": "app.py",
                    "line_number": 1,
                    "severity": "critical",
                    "title": "eval on user input",
                    "description": "Arbitrary code execution.",
                },
            )
        ]
    )


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("CODE_AUDITOR_") or key == "OLLAMA_URL":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATHS", ())
    monkeypatch.chdir(tmp_path)
    yield
    logger = logging.getLogger("code_auditor")
    logger.handlers.clear()
    logger.propagate = True


@pytest.fixture
def project(tmp_path):
    repo = tmp_path / "project"
    repo.mkdir()
    (repo / "app.py").write_text("eval(input())\n", encoding="utf-8")
    return repo


@pytest.fixture
def install_client(monkeypatch):
    built = {}

    def install(client):
        def fake_build(config):
            built["config"] = config
            return client

        monkeypatch.setattr(cli_module, "build_client", fake_build)
        return built

    return install


def test_agentic_run_writes_markdown_report(project, tmp_path, install_client):
    client = FakeClient([_report_call()])
    built = install_client(client)
    output = tmp_path / "report.md"

    result = CliRunner().invoke(main, ["--local", str(project), "--output", str(output), "--model", "coder:7b"])

    assert result.exit_code == 0, result.output
    assert "Total issues: 1" in result.output
    assert "Critical: 1" in result.output
    assert built["config"].model_name == "coder:7b"
    assert built["config"].single_call_mode is False
    text = output.read_text(encoding="utf-8")
    assert "eval on user input" in text
    assert "**Outcome:** completed" in text
    assert "- app.py" in client.requests[0][0][1].content


def test_single_call_json_report(project, tmp_path, install_client):
    client = FakeClient([ModelReply(content='[{"file_path": "app.py", "title": "eval", "severity": "high"}]')])
    install_client(client)
    output = tmp_path / "report.json"

    result = CliRunner().invoke(
        main,
        ["--local", str(project), "--single-call", "--format", "json", "--output", str(output), "--quiet"],
    )

    assert result.exit_code == 0, result.output
    assert result.output == ""
    assert len(client.requests) == 1
    assert client.requests[0][1] is None
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["metadata"]["mode"] == "single-call"
    assert data["summary"]["high"] == 1


def test_repository_config_enables_single_call(project, tmp_path, install_client):
    (project / ".code-auditor.toml").write_text("[model]\nsingle_call_mode = true\n", encoding="utf-8")
    client = FakeClient([ModelReply(content="[]")])
    built = install_client(client)

    result = CliRunner().invoke(main, ["--local", str(project), "--output", str(tmp_path / "r.md")])

    assert result.exit_code == 0, result.output
    assert built["config"].single_call_mode is True


def test_cli_flag_beats_repository_config(project, tmp_path, install_client):
    (project / ".code-auditor.toml").write_text("[model]\nsingle_call_mode = true\n", encoding="utf-8")
    built = install_client(FakeClient())

    result = CliRunner().invoke(main, ["--local", str(project), "--agentic", "--output", str(tmp_path / "r.md")])

    assert result.exit_code == 0, result.output
    assert built["config"].single_call_mode is False


def test_cloned_repository_is_cleaned_up(project, tmp_path, monkeypatch, install_client):
    install_client(FakeClient())
    cleaned = []

    class FakeCheckout(CloneResult):
        def cleanup(self):
            cleaned.append(self.path)

    def fake_clone(url, options):
        assert options.branch == "main"
        return FakeCheckout(path=project, temporary=True)

    monkeypatch.setattr(cli_module, "clone_repository", fake_clone)

    result = CliRunner().invoke(
        main, ["--repo", "https://github.com/o/project.git", "--branch", "main", "--output", str(tmp_path / "r.md")]
    )

    assert result.exit_code == 0, result.output
    assert cleaned == [project]
    assert "https://github.com/o/project.git" in (tmp_path / "r.md").read_text(encoding="utf-8")


def test_preflight_failure(project, install_client):
    install_client(FakeClient(healthy=False))

    result = CliRunner().invoke(main, ["--local", str(project)])

    assert result.exit_code == 1
    assert "is not available" in result.output


def test_skip_preflight(project, tmp_path, install_client):
    install_client(FakeClient(healthy=False))

    result = CliRunner().invoke(main, ["--local", str(project), "--skip-preflight", "--output", str(tmp_path / "r.md")])

    assert result.exit_code == 0, result.output


def test_transport_failure_exits_non_zero_but_writes_report(project, tmp_path, install_client):
    install_client(FakeClient([LLMConnectionError("connection refused")]))
    output = tmp_path / "r.md"

    result = CliRunner().invoke(main, ["--local", str(project), "--output", str(output)])

    assert result.exit_code == 1
    assert "connection refused" in result.output
    assert "aborted_transport_error" in output.read_text(encoding="utf-8")


@pytest.mark.parametrize(
    "args, message",
    [
        (["--local", ".", "--verbose", "--quiet"], "Cannot use both --verbose and --quiet"),
        ([], "Provide --repo URL or --local DIR"),
        (["--repo", "ftp://example.com/r"], "must start with 'https://' or 'git@'"),
        (["--local", ".", "--ollama-url", "localhost:11434"], "must start with 'http://' or 'https://'"),
        (["--local", "does-not-exist"], "Local directory does not exist"),
        (["--local", ".", "--temperature", "1.5"], "1.5"),
        (["--local", ".", "--max-files", "0"], "0"),
        (["--local", ".", "--concurrency", "0"], "0"),
    ],
)
def test_argument_validation(args, message):
    result = CliRunner().invoke(main, args)

    assert result.exit_code == 2
    assert message in result.output


def test_invalid_config_file(project, tmp_path):
    bad = tmp_path / "bad.toml"
    bad.write_text("[model\n", encoding="utf-8")

    result = CliRunner().invoke(main, ["--local", str(project), "--config", str(bad)])

    assert result.exit_code == 1
    assert "Failed to read config file" in result.output
