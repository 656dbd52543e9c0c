import os
from pathlib import Path
from typing import Optional

import yaml

from prsage_core.errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "provider": None,  # None = first available provider in provider_priority
    "provider_priority": ["anthropic", "openai"],
    "models": {
        "anthropic": "claude-sonnet-4-20250514",
        "openai": "gpt-4o",
    },
    "temperature": 0.3,
    "max_tokens": 4096,
    "use_fallback": True,
    "guidelines": None,  # optional path to extra reviewer guidelines (Markdown)
    "exclude": [],  # fnmatch patterns or directory names, added to the built-in ignore list
    "max_files": 50,
    "max_diff_lines_per_file": 500,
    "max_total_diff_lines": 5000,
    "max_diff_chars_per_file": 15000,
    "max_file_size_bytes": 100_000,
    "cache": "memory",  # memory | sqlite | none
    "cache_path": ".prsage.db",
    "cache_ttl_seconds": 86_400,
    "conversation_ttl_seconds": 7_200,
    "request_timeout": 120,
    "max_retries": 2,
}

_POSITIVE_INT_KEYS = (
    "max_files",
    "max_diff_lines_per_file",
    "max_total_diff_lines",
    "max_diff_chars_per_file",
    "max_file_size_bytes",
    "cache_ttl_seconds",
    "conversation_ttl_seconds",
)
_KNOWN_PROVIDERS = ("anthropic", "openai")


def load_config(config_path: str = ".prsage.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prsage.yml in the current directory
      3. CLI argument overrides
    """
    config = {
        **DEFAULT_CONFIG,
        "provider_priority": list(DEFAULT_CONFIG["provider_priority"]),
        "models": dict(DEFAULT_CONFIG["models"]),
        "exclude": list(DEFAULT_CONFIG["exclude"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level.")
        models = file_config.pop("models", None) or {}
        config.update(file_config)
        config["models"].update(models)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    validate_config(config)

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def validate_config(config: dict) -> None:
    """Reject settings that would break the size budgets or provider selection."""
    errors = []
    for key in _POSITIVE_INT_KEYS:
        value = config.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            errors.append(f"{key} must be a positive integer (got {value!r})")
    for name in config.get("provider_priority") or []:
        if name not in _KNOWN_PROVIDERS:
            errors.append(f"unknown provider in provider_priority: {name!r}")
    provider = config.get("provider")
    if provider is not None and provider not in _KNOWN_PROVIDERS:
        errors.append(f"unknown provider: {provider!r}. Choose 'anthropic' or 'openai'.")
    if config.get("cache") not in ("memory", "sqlite", "none"):
        errors.append(f"cache must be one of memory, sqlite, none (got {config.get('cache')!r})")
    if errors:
        raise ConfigurationError("Invalid configuration: " + "; ".join(errors), errors=errors)


def load_guidelines(config: dict) -> str:
    """
    Load extra reviewer guidelines.

    If ``guidelines`` is set in config, loads from that path (relative to cwd).
    Otherwise returns an empty string and the built-in reviewer persona is used alone.
    """
    custom_path = config.get("guidelines")
    if not custom_path:
        return ""
    p = Path(custom_path)
    if not p.exists():
        raise ConfigurationError(f"Guidelines file not found: {custom_path}")
    return p.read_text()
