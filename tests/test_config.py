"""
Tests for YAML configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from therapyslots.config import AppConfig, AvailabilityConfig, BackendConfig


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestAppConfig:
    """Tests for AppConfig loading and validation."""

    def test_load_full_config(self, tmp_path):
        path = _write(
            tmp_path,
            """
timezone: Europe/Berlin
default_duration_minutes: 50
log_level: info
availability:
  slot_granularity_minutes: 15
  max_appointment_minutes: 180
backend:
  url: https://db.example.co/
  api_key: anon
mock_data_file: data/mock.json
""",
        )

        config = AppConfig.load_from_yaml(path)

        assert config.timezone == "Europe/Berlin"
        assert config.default_duration_minutes == 50
        assert config.log_level == "INFO"
        assert config.availability.slot_granularity_minutes == 15
        assert config.backend.url == "https://db.example.co"
        assert config.mock_data_file == tmp_path / "data" / "mock.json"

    def test_empty_file_uses_defaults(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, ""))

        assert config.timezone == "America/New_York"
        assert config.availability.slot_granularity_minutes == 30
        assert config.backend is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(_write(tmp_path, "timezone: [unclosed"))

    def test_non_mapping_root(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(_write(tmp_path, "- a\n- b\n"))

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            AppConfig(timezone="Nowhere/Special")

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            AppConfig(log_level="chatty")

    def test_non_positive_duration(self):
        with pytest.raises(ValidationError):
            AppConfig(default_duration_minutes=0)


class TestAvailabilityConfig:
    def test_padding_must_cover_maximum(self):
        with pytest.raises(ValidationError):
            AvailabilityConfig(max_appointment_minutes=240, fetch_padding_minutes=120)

    def test_granularity_must_be_positive(self):
        with pytest.raises(ValidationError):
            AvailabilityConfig(slot_granularity_minutes=0)


class TestBackendConfig:
    def test_url_scheme_required(self):
        with pytest.raises(ValidationError):
            BackendConfig(url="db.example.co", api_key="anon")
