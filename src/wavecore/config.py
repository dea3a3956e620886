"""Configuration loading and management."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from wavecore.errors import ConfigurationError


# Load .env files
load_dotenv()

DEFAULT_AGENT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_FAST_MODEL = "gemini-2.5-flash"
DEFAULT_TOKEN_LIMIT = 64_000
DEFAULT_TIMEOUT = 600.0

# Config directory names
PROJECT_DIR = ".wave"
USER_DIR_NAME = ".wave"

CONFIG_FILE_NAMES = ("config.json", "config.yaml", "config.yml")


@dataclass(slots=True)
class WaveConfig:
    """Merged configuration from all sources.

    Priority: CLI args > env vars > project config > user config > defaults
    """
    # Gateway
    api_key: str | None = None
    base_url: str | None = None

    # Models
    model: str = DEFAULT_AGENT_MODEL
    fast_model: str = DEFAULT_FAST_MODEL

    # Execution
    stream: bool = True
    token_limit: int = DEFAULT_TOKEN_LIMIT
    max_tokens: int | None = None
    temperature: float | None = None
    timeout: float = DEFAULT_TIMEOUT

    # Paths
    working_directory: str = ""

    debug: bool = False
    json_logs: bool = False

    system_prompt: str | None = None


def find_project_root(start: Path | None = None) -> Path | None:
    """Find the project root by looking for .wave/ or .git/."""
    current = start or Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / PROJECT_DIR).exists():
            return parent
        if (parent / ".git").exists():
            return parent
    return None


def get_user_config_dir() -> Path:
    """Get the user-level config directory (~/.wave/)."""
    return Path.home() / USER_DIR_NAME


def load_json_config(path: Path) -> dict[str, Any]:
    """Load a JSON config file, returning empty dict if not found."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}
    except (json.JSONDecodeError, OSError):
        return {}


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML config file, returning empty dict if not found."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}
    except (yaml.YAMLError, OSError):
        return {}


def load_config_dir(directory: Path) -> dict[str, Any]:
    """Load the first config file present in *directory*."""
    for name in CONFIG_FILE_NAMES:
        path = directory / name
        if path.exists():
            if path.suffix == ".json":
                return load_json_config(path)
            return load_yaml_config(path)
    return {}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def resolve_token_limit(override: int | None = None) -> int:
    """Resolve the compression threshold.

    An explicit override wins; otherwise TOKEN_LIMIT is read from the
    environment on every call and ignored when it is not an integer.
    """
    if override is not None:
        return override
    raw = os.environ.get("TOKEN_LIMIT")
    if raw:
        try:
            return int(raw.strip())
        except ValueError:
            pass
    return DEFAULT_TOKEN_LIMIT


def load_config(
    *,
    cli_args: dict[str, Any] | None = None,
    working_dir: str | None = None,
) -> WaveConfig:
    """Load configuration from all sources with proper priority.

    Priority: CLI args > env vars > project config > user config > defaults
    """
    config = WaveConfig()
    cli_args = cli_args or {}

    config.working_directory = working_dir or os.getcwd()

    # 1. User-level config (~/.wave/config.json|yaml)
    _apply_dict(config, load_config_dir(get_user_config_dir()))

    # 2. Project-level config (.wave/config.json|yaml)
    project_root = find_project_root(Path(config.working_directory))
    if project_root:
        _apply_dict(config, load_config_dir(project_root / PROJECT_DIR))

    # 3. Environment variables
    if api_key := os.environ.get("AIGW_TOKEN"):
        config.api_key = api_key
    if base_url := os.environ.get("AIGW_URL"):
        config.base_url = base_url
    if model := os.environ.get("AIGW_MODEL"):
        config.model = model
    if fast_model := os.environ.get("AIGW_FAST_MODEL"):
        config.fast_model = fast_model
    if os.environ.get("TOKEN_LIMIT"):
        config.token_limit = resolve_token_limit()
    if stream := os.environ.get("WAVE_STREAM"):
        config.stream = _parse_bool(stream)
    if debug := os.environ.get("WAVE_DEBUG"):
        config.debug = _parse_bool(debug)

    # 4. CLI args (highest priority)
    _apply_dict(config, cli_args)

    return config


def require_gateway(config: WaveConfig) -> tuple[str, str]:
    """Return (api_key, base_url), raising when either is missing."""
    if config.api_key is None:
        raise ConfigurationError(
            "API key is required. Set AIGW_TOKEN or pass api_key.", field_name="api_key",
        )
    if not config.api_key.strip():
        raise ConfigurationError("API key cannot be empty", field_name="api_key")
    if config.base_url is None:
        raise ConfigurationError(
            "Base URL is required. Set AIGW_URL or pass base_url.", field_name="base_url",
        )
    if not config.base_url.strip():
        raise ConfigurationError("Base URL cannot be empty", field_name="base_url")
    return config.api_key, config.base_url


def _apply_dict(config: WaveConfig, data: dict[str, Any]) -> None:
    """Apply dictionary values to config, only for known fields."""
    field_map = {
        "api_key": "api_key",
        "base_url": "base_url",
        "model": "model",
        "fast_model": "fast_model",
        "stream": "stream",
        "token_limit": "token_limit",
        "max_tokens": "max_tokens",
        "temperature": "temperature",
        "timeout": "timeout",
        "working_directory": "working_directory",
        "debug": "debug",
        "json_logs": "json_logs",
        "system_prompt": "system_prompt",
        # Aliases from JSON config
        "apiKey": "api_key",
        "baseURL": "base_url",
        "baseUrl": "base_url",
        "agentModel": "model",
        "fastModel": "fast_model",
        "tokenLimit": "token_limit",
        "maxTokens": "max_tokens",
        "systemPrompt": "system_prompt",
    }
    for key, attr in field_map.items():
        if key in data and data[key] is not None:
            setattr(config, attr, data[key])
