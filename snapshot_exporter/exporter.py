#!/usr/bin/env python3
"""
View Snapshot Exporter

Exports reporting views from PostgreSQL to dated JSON snapshots and
publishes the snapshot directory to git. One call to run() is one export.
"""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
import time
from typing import List, Optional

from humanfriendly import format_size, format_timespan

from snapshot_exporter.config import Config, ExportTarget
from snapshot_exporter.contextual_logger import ContextualLoggerAdapter, setup_contextual_logger
from snapshot_exporter.database import ViewDatabase
from snapshot_exporter.errors import DatabaseConnectionError, ExporterError, PublishError
from snapshot_exporter.publisher import CommitOutcome, GitRepository, Publisher
from snapshot_exporter.snapshot import RawJSON, SnapshotWriter

EXPORT_DATE_FORMAT = '%Y-%m-%d'


@dataclass
class RunReport:
    export_date: str
    exported: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    commit_outcome: Optional[CommitOutcome] = None
    fatal_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.fatal_error is None and not self.failed

    def __str__(self) -> str:
        return (f"export_date={self.export_date}, exported={len(self.exported)}, "
                f"failed={len(self.failed)}, commit={self.commit_outcome.value if self.commit_outcome else 'none'}")


class Exporter:
    """Main class for exporting view snapshots and publishing them."""

    config: Config
    logger: ContextualLoggerAdapter
    writer: SnapshotWriter
    publisher: Publisher

    def __init__(self, config: Config) -> None:
        self.config = config
        self.logger = setup_contextual_logger(__name__, self.config.log_level)
        self.writer = SnapshotWriter(self.config.output_directory)
        self.publisher = Publisher(
            GitRepository(self.config.output_directory),
            remote=self.config.git_remote,
            branch=self.config.git_branch,
        )

    def _connect(self) -> ViewDatabase:
        return ViewDatabase.connect(self.config, self.logger)

    def _export_target(self, database: ViewDatabase, target: ExportTarget, export_date: str,
                       logger: ContextualLoggerAdapter) -> Path:
        fragment: RawJSON = database.fetch_view_json(target)
        path: Path = self.writer.write(target.name, fragment, export_date)
        logger.info(f"Successfully exported {target.name} to {path} ({format_size(path.stat().st_size)})")
        return path

    def export_all(self, database: ViewDatabase, export_date: str, report: RunReport) -> None:
        """Export every target; a failing target is logged and skipped."""
        for target in self.config.export_targets.values():
            target_logger = self.logger.with_context(view=target.name, export_date=export_date)
            try:
                self._export_target(database, target, export_date, target_logger)
            except (ExporterError, OSError) as e:
                target_logger.error(f"Skipping {target.name}: {e}")
                report.failed.append(target.name)
                continue
            report.exported.append(target.name)

    def run(self, export_date: Optional[str] = None) -> RunReport:
        """Connect, export all targets, publish. Fatal errors end the run and are recorded in the report."""
        started: float = time.monotonic()
        if export_date is None:
            export_date = date.today().strftime(EXPORT_DATE_FORMAT)
        report = RunReport(export_date=export_date)
        run_logger = self.logger.with_context(export_date=export_date)

        run_logger.info(f"Starting export of {len(self.config.export_targets)} views to {self.config.output_directory}")
        try:
            database: ViewDatabase = self._connect()
        except DatabaseConnectionError as e:
            run_logger.error(str(e))
            report.fatal_error = str(e)
            return report

        with database:
            try:
                self.writer.prepare()
            except OSError as e:
                report.fatal_error = f"Error creating output directory: {e}"
                run_logger.error(report.fatal_error)
                return report

            self.export_all(database, export_date, report)

        if self.config.git_publish:
            try:
                report.commit_outcome = self.publisher.publish(export_date, run_logger)
            except PublishError as e:
                report.fatal_error = f"Error with Git operations: {e}"
                run_logger.error(report.fatal_error)
                return report
        else:
            run_logger.info("GIT_PUBLISH is disabled, leaving snapshots uncommitted")

        elapsed: str = format_timespan(time.monotonic() - started)
        if report.failed:
            run_logger.warning(f"Data export finished with failures in {elapsed}: {', '.join(report.failed)}")
        else:
            run_logger.info(f"Data export and Git operations completed successfully in {elapsed}")
        run_logger.info(f"Run summary: {report}")
        return report
