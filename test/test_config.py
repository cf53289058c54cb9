#!/usr/bin/env python3
"""
Unit tests for configuration management.

Tests the Config class's ability to load the settings file, parse
environment variables and report meaningful errors for invalid values.
"""

import os
import pytest
from pathlib import Path
from typing import Any, Dict
from unittest.mock import patch

from psycopg2 import sql

from snapshot_exporter.config import DEFAULT_VIEWS, Config, ExportTarget, build_view_query, default_export_targets


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    """An empty but valid settings file."""
    path = tmp_path / ".env"
    path.write_text("# exporter settings\n")
    return path


class TestConfigValidParsing:
    """Test cases for valid configuration parsing."""

    @pytest.mark.parametrize("env_vars,expected_values,description", [
        (
            {"DB_PORT": "5432"},
            {
                "db_host": "localhost",
                "db_port": 5432,
                "db_user": "postgres",
                "db_password": "",
                "db_name": "hospital_db",
                "db_sslmode": "disable",
                "output_directory": Path("data_exports"),
                "git_publish": True,
                "git_remote": None,
                "git_branch": None,
                "log_level": "INFO",
            },
            "Default configuration values"
        ),
        (
            {
                "DB_HOST": "db.internal",
                "DB_PORT": "6543",
                "DB_USER": "reporter",
                "DB_PASSWORD": "s3cret",
                "DB_NAME": "analytics",
                "DB_SSLMODE": "require",
                "OUTPUT_DIR": "/srv/exports",
                "LOG_LEVEL": "debug",
                "GIT_PUBLISH": "no",
                "GIT_REMOTE": "origin",
                "GIT_BRANCH": "main",
            },
            {
                "db_host": "db.internal",
                "db_port": 6543,
                "db_user": "reporter",
                "db_password": "s3cret",
                "db_name": "analytics",
                "db_sslmode": "require",
                "output_directory": Path("/srv/exports"),
                "log_level": "DEBUG",
                "git_publish": False,
                "git_remote": "origin",
                "git_branch": "main",
            },
            "Custom configuration values"
        ),
        (
            {"DB_PORT": "5432", "DB_HOST": ""},
            {"db_host": ""},
            "Explicitly empty value is kept"
        ),
    ])
    def test_valid_config_parsing(
        self,
        env_vars: Dict[str, str],
        expected_values: Dict[str, Any],
        description: str,
        settings_file: Path,
    ) -> None:
        with patch.dict(os.environ, env_vars, clear=True):
            config = Config.from_environment(settings_file)

            for key, expected_value in expected_values.items():
                actual_value = getattr(config, key)
                assert actual_value == expected_value, (
                    f"{description}: Expected {key}={expected_value}, got {actual_value}"
                )

    def test_default_export_targets(self, settings_file: Path) -> None:
        with patch.dict(os.environ, {"DB_PORT": "5432"}, clear=True):
            config = Config.from_environment(settings_file)

        assert list(config.export_targets) == DEFAULT_VIEWS
        assert all(isinstance(t, ExportTarget) for t in config.export_targets.values())

    def test_export_views_override_keeps_order(self, settings_file: Path) -> None:
        env = {"DB_PORT": "5432", "EXPORT_VIEWS": " monthly_avg_wait_times, reporting.bed_usage ,, "}
        with patch.dict(os.environ, env, clear=True):
            config = Config.from_environment(settings_file)

        assert list(config.export_targets) == ["monthly_avg_wait_times", "reporting.bed_usage"]

    def test_settings_file_populates_environment(self, tmp_path: Path) -> None:
        path = tmp_path / "exporter.env"
        path.write_text("DB_PORT=5433\nDB_NAME=from_file\nOUTPUT_DIR=snapshots\n")

        with patch.dict(os.environ, {}, clear=True):
            config = Config.from_environment(path)

        assert config.db_port == 5433
        assert config.db_name == "from_file"
        assert config.output_directory == Path("snapshots")

    def test_process_environment_wins_over_settings_file(self, tmp_path: Path) -> None:
        path = tmp_path / ".env"
        path.write_text("DB_PORT=5433\nDB_NAME=from_file\n")

        with patch.dict(os.environ, {"DB_NAME": "from_env"}, clear=True):
            config = Config.from_environment(path)

        assert config.db_name == "from_env"
        assert config.db_port == 5433

    def test_settings_file_path_from_environment(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.env"
        path.write_text("DB_PORT=7000\n")

        with patch.dict(os.environ, {"SETTINGS_FILE": str(path)}, clear=True):
            config = Config.from_environment()

        assert config.db_port == 7000

    @pytest.mark.parametrize("port_env,expected", [("5432", 5432), ("+5432", 5432), ("05432", 5432)])
    def test_port_accepts_signed_ascii_digits(self, port_env: str, expected: int, settings_file: Path) -> None:
        with patch.dict(os.environ, {"DB_PORT": port_env}, clear=True):
            assert Config.from_environment(settings_file).db_port == expected


class TestConfigErrors:
    """Test cases for configuration errors."""

    @pytest.mark.parametrize("env_vars,error_match", [
        ({}, "DB_PORT"),
        ({"DB_PORT": ""}, "Invalid DB_PORT value ''"),
        ({"DB_PORT": "postgres"}, "Invalid DB_PORT value 'postgres'"),
        ({"DB_PORT": "54.32"}, "must be a valid integer"),
        ({"DB_PORT": "5_432"}, "Invalid DB_PORT value '5_432'"),
        ({"DB_PORT": " 5432 "}, "must be a valid integer"),
        ({"DB_PORT": "\u0665\u0664\u0663\u0662"}, "must be a valid integer"),
        ({"DB_PORT": "5432", "LOG_LEVEL": "LOUD"}, "Invalid LOG_LEVEL"),
        ({"DB_PORT": "5432", "EXPORT_VIEWS": " , "}, "at least one view"),
        ({"DB_PORT": "5432", "EXPORT_VIEWS": "daily; DROP TABLE x"}, "plain lowercase SQL identifier"),
        ({"DB_PORT": "5432", "EXPORT_VIEWS": "Daily_Wait_Time_Stats"}, "plain lowercase SQL identifier"),
        ({"DB_PORT": "5432", "EXPORT_VIEWS": "Reporting.daily_stats"}, "plain lowercase SQL identifier"),
        ({"DB_PORT": "5432", "EXPORT_VIEWS": "a,b,a"}, "unique"),
        ({"DB_PORT": "5432", "GIT_BRANCH": "main"}, "GIT_BRANCH requires GIT_REMOTE"),
    ])
    def test_invalid_values(self, env_vars: Dict[str, str], error_match: str, settings_file: Path) -> None:
        with patch.dict(os.environ, env_vars, clear=True):
            with pytest.raises(ValueError, match=error_match):
                Config.from_environment(settings_file)

    def test_missing_settings_file(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {"DB_PORT": "5432"}, clear=True):
            with pytest.raises(ValueError, match="file not found"):
                Config.from_environment(tmp_path / "missing.env")

    def test_malformed_settings_file(self, tmp_path: Path) -> None:
        path = tmp_path / ".env"
        path.write_text("DB_PORT=5432\nthis line is not valid\n")

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="cannot parse line 2"):
                Config.from_environment(path)
            assert "DB_PORT" not in os.environ


def test_view_query_quotes_identifier() -> None:
    query = build_view_query("reporting.daily_wait_time_stats")
    assert sql.Identifier("reporting", "daily_wait_time_stats") in query.seq


def test_default_export_targets_mapping() -> None:
    targets = default_export_targets(["b", "a"])
    assert list(targets) == ["b", "a"]
    assert targets["a"].name == "a"
