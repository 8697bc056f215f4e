import os

import pytest

from code_auditor.core.errors import ConfigError
from code_auditor.core.utils import config as config_module
from code_auditor.core.utils.config import Settings, find_config_in_parents, load_repo_settings, load_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("CODE_AUDITOR_") or key == "OLLAMA_URL":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATHS", ())
    monkeypatch.chdir(tmp_path)


def test_defaults_without_any_source():
    settings = load_settings()

    assert settings == Settings()
    assert settings.model == "deepseek-coder:33b"
    assert settings.base_url == "http://localhost:11434"
    assert settings.max_files == 100


def test_sectioned_toml_file(tmp_path):
    config_file = tmp_path / ".code-auditor.toml"
    config_file.write_text(
        """
[model]
name = "qwen2.5-coder:32b"
ollama_url = "http://gpu-box:11434"
temperature = 0.3
timeout_seconds = 900
single_call_mode = true

[analysis]
max_files = 20
extensions = ["py", "rs"]
exclude = "vendor, generated"
concurrency = 2
""",
        encoding="utf-8",
    )

    settings = load_settings()

    assert settings.model == "qwen2.5-coder:32b"
    assert settings.base_url == "http://gpu-box:11434"
    assert settings.temperature == pytest.approx(0.3)
    assert settings.timeout_seconds == pytest.approx(900.0)
    assert settings.single_call_mode is True
    assert settings.max_files == 20
    assert settings.extensions == ("py", "rs")
    assert settings.exclude == ("vendor", "generated")
    assert settings.concurrency == 2
    assert settings.source == config_file.resolve()


def test_config_found_in_parent_directory(tmp_path, monkeypatch):
    (tmp_path / "code-auditor.toml").write_text('model = "flat-model"\nmax-files = 7\n', encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert find_config_in_parents(nested) == (tmp_path / "code-auditor.toml").resolve()
    settings = load_settings()
    assert settings.model == "flat-model"
    assert settings.max_files == 7


def test_yaml_config(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("model:\n  name: yaml-model\n  provider: openai\nanalysis:\n  max_chunk_lines: 500\n", encoding="utf-8")

    settings = load_settings(path)

    assert settings.model == "yaml-model"
    assert settings.provider == "openai"
    assert settings.max_chunk_lines == 500


def test_environment_overrides_file(tmp_path, monkeypatch):
    (tmp_path / ".code-auditor.toml").write_text('[model]\nname = "from-file"\n', encoding="utf-8")
    monkeypatch.setenv("CODE_AUDITOR_MODEL", "from-env")
    monkeypatch.setenv("OLLAMA_URL", "http://env-host:11434")
    monkeypatch.setenv("CODE_AUDITOR_SINGLE_CALL_MODE", "yes")
    monkeypatch.setenv("CODE_AUDITOR_MAX_FILES", "12")

    settings = load_settings()

    assert settings.model == "from-env"
    assert settings.base_url == "http://env-host:11434"
    assert settings.single_call_mode is True
    assert settings.max_files == 12


def test_explicit_path_errors(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "missing.toml")

    broken = tmp_path / "broken.toml"
    broken.write_text("[model\nname = ", encoding="utf-8")
    with pytest.raises(ConfigError, match="Failed to read"):
        load_settings(broken)

    bad_value = tmp_path / "bad.toml"
    bad_value.write_text('[analysis]\nmax_files = "many"\n', encoding="utf-8")
    with pytest.raises(ConfigError, match="max_files"):
        load_settings(bad_value)


def test_broken_discovered_file_falls_back_to_defaults(tmp_path):
    (tmp_path / ".code-auditor.toml").write_text("not = [valid", encoding="utf-8")

    assert load_settings() == Settings()


def test_merge_ignores_none_and_unknown_keys():
    merged = Settings().merge({"model": "cli-model", "max_files": None, "bogus": 1, "extensions": "go,rs"})

    assert merged.model == "cli-model"
    assert merged.max_files == 100
    assert merged.extensions == ("go", "rs")


def test_repo_settings(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    assert load_repo_settings(repo) is None

    (repo / ".code-auditor.toml").write_text("[model]\nname = \"repo-model\"\n", encoding="utf-8")
    settings = load_repo_settings(repo)
    assert settings.model == "repo-model"
    assert settings.source == repo / ".code-auditor.toml"


def test_to_agent_config():
    config = Settings(model="m", base_url="http://host:1/", single_call_mode=True, max_chunk_lines=10).to_agent_config()

    assert config.model_name == "m"
    assert config.endpoint_url == "http://host:1"
    assert config.max_iterations == 50
    assert config.max_context_messages == 10
    assert config.single_call_mode is True
    assert config.max_chunk_lines == 10
