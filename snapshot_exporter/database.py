#!/usr/bin/env python3
"""
PostgreSQL access for view exports.

One connection per run, opened read-only in autocommit mode so that a failing
view query does not abort the transaction the remaining views run in.
"""

from typing import Optional

import psycopg2
from psycopg2.extensions import connection as PgConnection, make_dsn

from snapshot_exporter.config import Config, ExportTarget
from snapshot_exporter.contextual_logger import ContextualLoggerAdapter
from snapshot_exporter.errors import DatabaseConnectionError, ViewQueryError
from snapshot_exporter.snapshot import RawJSON

EMPTY_ARRAY = RawJSON('[]')


def build_dsn(config: Config) -> str:
    return make_dsn(
        host=config.db_host,
        port=config.db_port,
        user=config.db_user,
        password=config.db_password,
        dbname=config.db_name,
        sslmode=config.db_sslmode,
    )


class ViewDatabase:
    """Helper class holding the single connection used to read export views."""

    def __init__(self, conn: PgConnection) -> None:
        self._conn: Optional[PgConnection] = conn

    @classmethod
    def connect(cls, config: Config, logger: ContextualLoggerAdapter) -> 'ViewDatabase':
        """Open the connection and verify it answers. Raises DatabaseConnectionError."""
        db_logger = logger.with_context(db_host=config.db_host, db_port=config.db_port, db_name=config.db_name)
        try:
            conn = psycopg2.connect(build_dsn(config))
        except psycopg2.Error as e:
            raise DatabaseConnectionError(f"Error connecting to database: {e}") from e

        try:
            conn.set_session(readonly=True, autocommit=True)
            database = cls(conn)
            database.ping()
        except psycopg2.Error as e:
            conn.close()
            raise DatabaseConnectionError(f"Error pinging database: {e}") from e

        db_logger.info("Successfully connected to the database")
        return database

    @property
    def conn(self) -> PgConnection:
        if self._conn is None:
            raise DatabaseConnectionError("Database connection is closed")
        return self._conn

    def ping(self) -> None:
        with self.conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()

    def fetch_view_json(self, target: ExportTarget) -> RawJSON:
        """Run the target's aggregation query; a view with no rows yields []."""
        try:
            with self.conn.cursor() as cursor:
                cursor.execute(target.query)
                row = cursor.fetchone()
        except psycopg2.Error as e:
            raise ViewQueryError(target.name, str(e).strip()) from e

        if row is None or row[0] is None:
            return EMPTY_ARRAY
        return RawJSON(row[0])

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> 'ViewDatabase':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
