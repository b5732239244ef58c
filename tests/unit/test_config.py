"""
Unit tests for DataTableSettings.
"""

import logging

import pytest

from datatable.config import DataTableSettings
from datatable.ids import MAX_ID


class TestDataTableSettings:
    """Tests for DataTableSettings."""

    def test_defaults(self):
        """Defaults work without any environment."""
        settings = DataTableSettings()

        assert settings.id_column == "id"
        assert settings.version_id_column == "version_id"
        assert settings.id_strategy == "sequential"
        assert settings.random_id_max == MAX_ID
        settings.validate_settings()

    def test_environment(self, monkeypatch):
        """Values are read from DATATABLE_ variables."""
        monkeypatch.setenv("DATATABLE_ID_STRATEGY", "random")
        monkeypatch.setenv("DATATABLE_RANDOM_ID_MAX", "100")
        monkeypatch.setenv("DATATABLE_LOG_FORMAT", "json")

        settings = DataTableSettings()

        assert settings.id_strategy == "random"
        assert settings.random_id_max == 100
        assert settings.log_format == "json"
        settings.validate_settings()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"id_strategy": "uuid"},
            {"id_strategy": "random", "random_id_min": 0},
            {"id_strategy": "random", "random_id_min": 10, "random_id_max": 5},
            {"id_strategy": "random", "random_id_max_attempts": 0},
            {"id_column": "version_id"},
            {"log_format": "xml"},
        ],
    )
    def test_invalid(self, kwargs):
        """Inconsistent settings are rejected."""
        with pytest.raises(ValueError):
            DataTableSettings(**kwargs).validate_settings()

    def test_log_config(self, caplog):
        """log_config logs the effective values."""
        with caplog.at_level(logging.INFO, logger="datatable.config"):
            DataTableSettings(id_strategy="random").log_config()

        assert caplog.records[-1].id_strategy == "random"
