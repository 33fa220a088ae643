from __future__ import annotations

from pathlib import Path

import pytest

from regingest.config.loader import SCHEMA_PATH, ConfigError, load_config, settings_from_dict
from regingest.models.config_models import CalendarPolicy, IngestSettings


def test_load_config_ok(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.source_directory == "./data"
    assert cfg.files["exam"] == ["exams*.xlsx"]
    assert cfg.files["enrollment"] == ["enrollments*.xlsx", "students*.xlsx"]
    assert cfg.mappings == {}
    assert cfg.settings.calendar_policy is CalendarPolicy.PRESERVE
    assert cfg.settings.max_workers == 2
    assert cfg.database.user == "appuser"
    assert cfg.database.port == 5432
    assert cfg.dataset is None


def test_defaults_for_optional_keys(temp_workdir: Path):
    p = temp_workdir / "config" / "ingest.yml"
    p.write_text("source_directory: ./data\nfiles:\n  exam: ['*.xlsx']\n", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.settings == IngestSettings()
    assert cfg.database.host is None


def test_full_settings(temp_workdir: Path):
    p = temp_workdir / "config" / "ingest.yml"
    p.write_text(
        """source_directory: ./data
files:
  enrollment: ["*.csv"]
mappings:
  enrollment:
    student_id: "Matric"
calendar_policy: gregorian
default_exam_duration_minutes: 90
dataset: "2025-spring"
detection:
  min_block_starts: 3
blocks:
  student_id_columns: [1, 2]
  student_scan_rows: 4
""",
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.mappings == {"enrollment": {"student_id": "Matric"}}
    assert cfg.settings.calendar_policy is CalendarPolicy.GREGORIAN
    assert cfg.settings.default_exam_duration_minutes == 90
    assert cfg.settings.detection.min_block_starts == 3
    assert cfg.settings.detection.block_sample_rows == 100
    assert cfg.settings.blocks.student_id_columns == (1, 2)
    assert cfg.settings.blocks.student_scan_rows == 4
    assert cfg.dataset == "2025-spring"


@pytest.mark.parametrize(
    "content,fragment",
    [
        ("files:\n  exam: ['*.xlsx']\n", "'source_directory' is a required property"),
        ("source_directory: ./data\nfiles: {}\n", "config validation failed at files"),
        ("source_directory: ./data\nfiles:\n  invoices: ['*.xlsx']\n", "config validation failed at files"),
        ("source_directory: ./data\nfiles:\n  exam: ['*.xlsx']\nunknown: 1\n", "config validation failed"),
        ("source_directory: ./data\nfiles:\n  exam: ['*.xlsx']\ncalendar_policy: lunar\n", "calendar_policy"),
        ("source_directory: ./data\nfiles:\n  exam: ['*.xlsx']\nmax_workers: 0\n", "max_workers"),
    ],
)
def test_schema_violations(temp_workdir: Path, content: str, fragment: str):
    p = temp_workdir / "config" / "ingest.yml"
    p.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError) as exc:
        load_config(p)
    assert fragment in str(exc.value)


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "missing.yml")


def test_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "ingest.yml"
    p.write_text("source_directory: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_root_must_be_mapping(temp_workdir: Path):
    p = temp_workdir / "config" / "ingest.yml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(p)


def test_schema_ships_with_package():
    assert SCHEMA_PATH.exists()


def test_settings_from_dict_defaults():
    assert settings_from_dict({}) == IngestSettings()
