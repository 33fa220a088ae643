from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    BlockSettings,
    CalendarPolicy,
    DatabaseConfig,
    DetectionSettings,
    IngestConfig,
    IngestSettings,
)

"""Config loader.

Responsibilities:
- Load YAML (default config/ingest.yml)
- Validate against ingest_schema.json (shipped next to this module)
- Apply defaults for every optional key
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "settings_from_dict",
]

SCHEMA_PATH = Path(__file__).with_name("ingest_schema.json")
DEFAULT_CONFIG_PATH = Path("config/ingest.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or config violating it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        where = f" at {location}" if location else ""
        raise ConfigError(f"config validation failed{where}: {e.message}") from e


def settings_from_dict(data: dict[str, Any]) -> IngestSettings:
    """Build IngestSettings from a (validated) config mapping; missing keys use defaults."""
    defaults = IngestSettings()
    detection = DetectionSettings(**(data.get("detection") or {}))
    blocks_raw = dict(data.get("blocks") or {})
    for key in ("student_id_columns", "roster_id_columns"):
        if key in blocks_raw:
            blocks_raw[key] = tuple(blocks_raw[key])
    return IngestSettings(
        calendar_policy=CalendarPolicy(data.get("calendar_policy", defaults.calendar_policy.value)),
        default_exam_duration_minutes=data.get(
            "default_exam_duration_minutes", defaults.default_exam_duration_minutes
        ),
        error_sample_size=data.get("error_sample_size", defaults.error_sample_size),
        max_workers=data.get("max_workers", defaults.max_workers),
        detection=detection,
        blocks=BlockSettings(**blocks_raw),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

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
    return IngestConfig(
        source_directory=data["source_directory"],
        files={k: list(v) for k, v in data["files"].items()},
        mappings={k: dict(v) for k, v in (data.get("mappings") or {}).items()},
        settings=settings_from_dict(data),
        dataset=data.get("dataset"),
        database=db,
    )
