#!/usr/bin/env python3
"""
Configuration management for the view snapshot exporter.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from dotenv.parser import parse_stream
from psycopg2 import sql

DEFAULT_SETTINGS_FILE = Path('.env')

DEFAULT_VIEWS: List[str] = [
    'hospital_seven_avg_change',
    'daily_wait_time_stats',
    'monthly_avg_wait_times',
]

# Plain or schema-qualified lowercase identifier, e.g. "daily_stats" or "reporting.daily_stats".
# Identifiers are quoted, so uppercase would not match views created without quotes.
_VIEW_NAME_PATTERN = re.compile(r'^[a-z_][a-z0-9_]*(\.[a-z_][a-z0-9_]*)?$')

# Optional sign and ASCII digits only; no underscores, padding or other digit scripts
_PORT_PATTERN = re.compile(r'^[+-]?[0-9]+$')

_TRUTHY = ('true', '1', 'yes', 'on')


def build_view_query(view_name: str) -> sql.Composed:
    """Aggregate every row of a view into one JSON array, returned as text."""
    return sql.SQL("SELECT json_agg(t)::text FROM (SELECT * FROM {}) t").format(
        sql.Identifier(*view_name.split('.'))
    )


@dataclass(frozen=True)
class ExportTarget:
    name: str
    query: sql.Composable


def default_export_targets(view_names: Optional[List[str]] = None) -> Dict[str, ExportTarget]:
    """Ordered mapping of export name to target, one per view."""
    names = view_names if view_names is not None else DEFAULT_VIEWS
    return {name: ExportTarget(name=name, query=build_view_query(name)) for name in names}


@dataclass(frozen=True)
class Config:
    """Strongly typed configuration for a single export run."""

    # Database coordinates
    db_port: int
    db_host: str = 'localhost'
    db_user: str = 'postgres'
    db_password: str = ''
    db_name: str = 'hospital_db'
    db_sslmode: str = 'disable'

    # Snapshot output
    output_directory: Path = Path('data_exports')
    export_targets: Dict[str, ExportTarget] = field(default_factory=default_export_targets)

    # Publishing
    git_publish: bool = True
    git_remote: Optional[str] = None
    git_branch: Optional[str] = None

    # Logging
    log_level: str = 'INFO'

    @staticmethod
    def load_settings_file(settings_file: Path) -> None:
        """Populate os.environ from a KEY=value file without overriding existing variables."""
        if not settings_file.is_file():
            raise ValueError(f"Error loading settings file {settings_file}: file not found")

        try:
            with open(settings_file, 'r', encoding='utf-8') as f:
                for binding in parse_stream(f):
                    if binding.error:
                        raise ValueError(
                            f"Error loading settings file {settings_file}: "
                            f"cannot parse line {binding.original.line}: {binding.original.string.strip()!r}"
                        )
        except (OSError, UnicodeDecodeError) as e:
            raise ValueError(f"Error loading settings file {settings_file}: {e}")

        load_dotenv(settings_file, override=False)

    @classmethod
    def from_environment(cls, settings_file: Optional[Path] = None) -> 'Config':
        """Load configuration from the settings file and environment variables with defaults."""
        if settings_file is None:
            settings_file = Path(os.getenv('SETTINGS_FILE', str(DEFAULT_SETTINGS_FILE)))
        cls.load_settings_file(settings_file)

        # Required port
        port_env: Optional[str] = os.getenv('DB_PORT')
        if port_env is None:
            raise ValueError("Invalid DB_PORT: environment variable is required")
        if not _PORT_PATTERN.fullmatch(port_env):
            raise ValueError(f"Invalid DB_PORT value '{port_env}': must be a valid integer")
        db_port = int(port_env)

        # Logging
        log_level: str = os.getenv('LOG_LEVEL', 'INFO').upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Invalid LOG_LEVEL value '{log_level}'")

        # Export targets
        view_names: Optional[List[str]] = None
        views_env: Optional[str] = os.getenv('EXPORT_VIEWS')
        if views_env is not None:
            view_names = [v.strip() for v in views_env.split(',') if v.strip()]
            if not view_names:
                raise ValueError("Invalid EXPORT_VIEWS: at least one view name is required")
            for view_name in view_names:
                if not _VIEW_NAME_PATTERN.fullmatch(view_name):
                    raise ValueError(f"Invalid EXPORT_VIEWS value '{view_name}': must be a plain lowercase SQL identifier")
            if len(set(view_names)) != len(view_names):
                raise ValueError("Invalid EXPORT_VIEWS: view names must be unique")

        # Publishing
        git_publish: bool = os.getenv('GIT_PUBLISH', 'true').lower() in _TRUTHY
        git_remote: Optional[str] = os.getenv('GIT_REMOTE') or None
        git_branch: Optional[str] = os.getenv('GIT_BRANCH') or None
        if git_branch and not git_remote:
            raise ValueError("GIT_BRANCH requires GIT_REMOTE to be set")

        return cls(
            db_host=os.getenv('DB_HOST', 'localhost'),
            db_port=db_port,
            db_user=os.getenv('DB_USER', 'postgres'),
            db_password=os.getenv('DB_PASSWORD', ''),
            db_name=os.getenv('DB_NAME', 'hospital_db'),
            db_sslmode=os.getenv('DB_SSLMODE', 'disable'),
            output_directory=Path(os.getenv('OUTPUT_DIR', 'data_exports')),
            export_targets=default_export_targets(view_names),
            git_publish=git_publish,
            git_remote=git_remote,
            git_branch=git_branch,
            log_level=log_level,
        )
