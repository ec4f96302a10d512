from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_STOP_WORDS,
    DatabaseConfig,
    FallbackColumn,
    IngestConfig,
    InsertPolicy,
)

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate it against config_schema.json (shipped next to this module)
- Apply defaults for every optional key
- Build the frozen IngestConfig consumed by the pipeline
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or if the
            config data fails validation (missing required keys, wrong types,
            unknown keys).
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


def build_config(data: dict[str, Any]) -> IngestConfig:
    """Validate an already-parsed mapping and build IngestConfig from it."""
    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    fallback = tuple(
        FallbackColumn(
            name=c["name"],
            type=c.get("type", "text"),
            nullable=c.get("nullable", True),
        )
        for c in data.get("fallback_columns", [])
    )
    stop_words = data.get("stop_words")
    return IngestConfig(
        table=data["table"],
        schema=data.get("schema", "public"),
        manual_mapping=dict(data.get("manual_mapping") or {}),
        strict_numeric_columns=frozenset(data.get("strict_numeric_columns", [])),
        fallback_columns=fallback,
        insert_policy=InsertPolicy(data.get("insert_policy", InsertPolicy.TOLERANT.value)),
        max_row_errors=data.get("max_row_errors", 50),
        error_report_limit=data.get("error_report_limit", 10),
        fuzzy_threshold=float(data.get("fuzzy_threshold", 0.7)),
        min_keyword_length=data.get("min_keyword_length", 3),
        stop_words=frozenset(stop_words) if stop_words is not None else DEFAULT_STOP_WORDS,
        excluded_columns=frozenset(data.get("excluded_columns", ["id"])),
        keep_na_strings=tuple(data.get("keep_na_strings", ["NA"])),
        progress_interval=data.get("progress_interval", 100),
        max_file_bytes=data.get("max_file_bytes", 50 * 1024 * 1024),
        advisory_lock=data.get("advisory_lock", True),
        database=db,
    )


def load_config(path: Path) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return build_config(data)
