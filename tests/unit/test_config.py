"""
Unit tests for SqlKgSettings.

Tests defaults, environment overrides and field validation.

License: MIT
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from sqlkg_core.config import SqlKgSettings, get_config_summary

# ============================================================
# CONFIGURATION LOADING TESTS
# ============================================================


def test_default_configuration():
    """Test that default configuration loads with all defaults."""
    settings = SqlKgSettings()

    assert settings.output_dir == Path("./kg_export")
    assert settings.compressed is False
    assert settings.csv_delimiter == ","
    assert settings.compression_level == 6
    assert settings.write_buffer_size == 1024 * 1024
    assert settings.max_key_columns == 3
    assert settings.dangling_sample_limit == 10
    assert settings.fetch_size == 1000
    assert settings.log_level == "INFO"
    assert settings.log_format == "json"


def test_environment_override(monkeypatch):
    monkeypatch.setenv("SQLKG_COMPRESSED", "true")
    monkeypatch.setenv("SQLKG_MAX_KEY_COLUMNS", "5")
    monkeypatch.setenv("SQLKG_OUTPUT_DIR", "/data/graph")

    settings = SqlKgSettings()

    assert settings.compressed is True
    assert settings.max_key_columns == 5
    assert settings.output_dir == Path("/data/graph")


def test_env_file_is_loaded(tmp_path):
    """Unit conftest chdirs into tmp_path, so .env there is picked up."""
    (tmp_path / ".env").write_text("SQLKG_CSV_DELIMITER=;\n")

    assert SqlKgSettings().csv_delimiter == ";"


def test_explicit_arguments_win(monkeypatch):
    monkeypatch.setenv("SQLKG_COMPRESSED", "true")

    assert SqlKgSettings(compressed=False).compressed is False


# ============================================================
# VALIDATION TESTS
# ============================================================


def test_log_level_normalized():
    assert SqlKgSettings(log_level="debug").log_level == "DEBUG"


def test_invalid_log_level():
    with pytest.raises(ValidationError):
        SqlKgSettings(log_level="VERBOSE")


def test_invalid_log_format():
    with pytest.raises(ValidationError):
        SqlKgSettings(log_format="xml")


@pytest.mark.parametrize("delimiter", ["", ";;", '"', "|", "\n"])
def test_invalid_delimiter(delimiter):
    with pytest.raises(ValidationError):
        SqlKgSettings(csv_delimiter=delimiter)


def test_tab_delimiter_allowed():
    assert SqlKgSettings(csv_delimiter="\t").csv_delimiter == "\t"


@pytest.mark.parametrize(
    "field,value",
    [
        ("compression_level", 0),
        ("compression_level", 10),
        ("max_key_columns", 0),
        ("write_buffer_size", 100),
        ("dangling_sample_limit", -1),
    ],
)
def test_out_of_range_values(field, value):
    with pytest.raises(ValidationError):
        SqlKgSettings(**{field: value})


def test_unknown_field_rejected():
    with pytest.raises(ValidationError):
        SqlKgSettings(falkordb_host="localhost")


def test_validate_assignment():
    settings = SqlKgSettings()

    with pytest.raises(ValidationError):
        settings.compression_level = 42


# ============================================================
# HELPER FUNCTION TESTS
# ============================================================


def test_get_config_summary():
    summary = get_config_summary(SqlKgSettings(compressed=True))

    assert summary["output"]["compressed"] is True
    assert summary["extraction"]["max_key_columns"] == 3
    assert summary["logging"] == {"level": "INFO", "format": "json"}
