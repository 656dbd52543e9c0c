"""Tests for configuration loading."""

import pytest

from prsage_core.config import DEFAULT_CONFIG, load_config, load_guidelines, validate_config
from prsage_core.errors import ConfigurationError


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["provider"] is None
    assert config["provider_priority"] == ["anthropic", "openai"]
    assert config["max_files"] == 50
    assert config["max_diff_lines_per_file"] == 500
    assert config["max_total_diff_lines"] == 5000
    assert config["max_diff_chars_per_file"] == 15000
    assert config["cache"] == "memory"
    assert config["use_fallback"] is True
    assert config["exclude"] == []


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".sage.yml"
    cfg.write_text("provider: openai\nmax_files: 10\n")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "openai"
    assert config["max_files"] == 10


def test_models_are_merged_not_replaced(tmp_path):
    cfg = tmp_path / ".sage.yml"
    cfg.write_text("models:\n  openai: gpt-4o-mini\n")
    config = load_config(config_path=str(cfg))
    assert config["models"]["openai"] == "gpt-4o-mini"
    assert config["models"]["anthropic"] == DEFAULT_CONFIG["models"]["anthropic"]


def test_exclude_patterns_loaded(tmp_path):
    cfg = tmp_path / ".sage.yml"
    cfg.write_text("exclude:\n  - migrations/\n  - '*.snap'\n")
    config = load_config(config_path=str(cfg))
    assert "migrations/" in config["exclude"]
    assert "*.snap" in config["exclude"]


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".sage.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": "anthropic"})
    assert config["provider"] == "anthropic"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".sage.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": None})
    assert config["provider"] == "openai"


def test_non_mapping_config_file_rejected(tmp_path):
    cfg = tmp_path / ".sage.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError):
        load_config(config_path=str(cfg))


@pytest.mark.parametrize(
    "yaml_text",
    [
        "max_files: 0\n",
        "max_total_diff_lines: -5\n",
        "max_diff_chars_per_file: lots\n",
        "provider: gemini\n",
        "provider_priority: [anthropic, mistral]\n",
        "cache: redis\n",
    ],
)
def test_invalid_settings_rejected(tmp_path, yaml_text):
    cfg = tmp_path / ".sage.yml"
    cfg.write_text(yaml_text)
    with pytest.raises(ConfigurationError):
        load_config(config_path=str(cfg))


def test_validation_error_lists_every_problem():
    config = {**DEFAULT_CONFIG, "max_files": 0, "cache": "redis"}
    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(config)
    assert len(exc_info.value.context["errors"]) == 2


def test_custom_guidelines_path(tmp_path):
    guidelines_file = tmp_path / "my-guidelines.md"
    guidelines_file.write_text("# Custom Guidelines\n- Rule 1")
    cfg = tmp_path / ".sage.yml"
    cfg.write_text(f"guidelines: {guidelines_file}\n")
    config = load_config(config_path=str(cfg))
    assert "Custom Guidelines" in load_guidelines(config)


def test_no_guidelines_by_default(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert load_guidelines(config) == ""


def test_missing_custom_guidelines_raises(tmp_path):
    config = {"guidelines": str(tmp_path / "does-not-exist.md")}
    with pytest.raises(ConfigurationError):
        load_guidelines(config)


def test_env_vars_loaded(monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    monkeypatch.setenv("OPENAI_API_KEY", "oai-key")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] == "gh-token"
    assert config["anthropic_api_key"] == "ant-key"
    assert config["openai_api_key"] == "oai-key"


def test_lists_are_not_shared_references(tmp_path):
    """Mutating one config's lists must not affect another."""
    config_a = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config_b = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config_a["exclude"].append("migrations/")
    config_a["models"]["openai"] = "other"
    assert config_b["exclude"] == []
    assert config_b["models"]["openai"] == "gpt-4o"
