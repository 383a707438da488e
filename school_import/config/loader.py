from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (``config/import.yml`` by default)
- Validate it against the bundled JSON schema
- Apply defaults
- Let environment variables (typically coming from ``.env``) override the
  API connection settings
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_CHUNK_SIZE = 50
DEFAULT_ENTITY_TYPE = "student"
DEFAULT_REQUIRED_FIELDS = ("name",)
DEFAULT_PREVIEW_ROWS = 10
DEFAULT_ERROR_LOG_DIR = "./logs"

ENV_API_URL = "SCHOOL_API_URL"
ENV_API_TOKEN = "SCHOOL_API_TOKEN"
ENV_API_TIMEOUT = "SCHOOL_API_TIMEOUT"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ImportConfig:
    api_base_url: str
    api_token: str | None
    timeout_sec: float
    chunk_size: int
    entity_type: str
    required_fields: tuple[str, ...]
    preview_rows: int
    error_log_dir: str


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data fails schema validation
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    merged = dict(data)
    if os.getenv(ENV_API_URL):
        merged["api_base_url"] = os.environ[ENV_API_URL]
    if os.getenv(ENV_API_TOKEN):
        merged["api_token"] = os.environ[ENV_API_TOKEN]
    timeout_raw = os.getenv(ENV_API_TIMEOUT)
    if timeout_raw:
        try:
            merged["timeout_sec"] = float(timeout_raw)
        except ValueError as e:
            raise ConfigError(f"{ENV_API_TIMEOUT} is not a number: {timeout_raw!r}") from e
    return merged


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        # The API URL alone is enough to run; allow a config-less start from env
        if os.getenv(ENV_API_URL):
            data: dict[str, Any] = {}
        else:
            raise ConfigError(f"config file not found: {path}")
    else:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping: {path}")

    data = _apply_env_overrides(data)
    _validate_config_schema(data)

    return ImportConfig(
        api_base_url=data["api_base_url"].rstrip("/"),
        api_token=data.get("api_token"),
        timeout_sec=float(data.get("timeout_sec", DEFAULT_TIMEOUT_SEC)),
        chunk_size=data.get("chunk_size", DEFAULT_CHUNK_SIZE),
        entity_type=data.get("entity_type", DEFAULT_ENTITY_TYPE),
        required_fields=tuple(data.get("required_fields", DEFAULT_REQUIRED_FIELDS)),
        preview_rows=data.get("preview_rows", DEFAULT_PREVIEW_ROWS),
        error_log_dir=data.get("error_log_dir", DEFAULT_ERROR_LOG_DIR),
    )
