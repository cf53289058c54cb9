#!/usr/bin/env python3
"""
Git publishing of the snapshot directory: stage, commit, push.

Every git call gets the repository path as its working directory; the
process's own working directory is never changed.
"""

from enum import Enum
import os
from pathlib import Path
import subprocess
from typing import Dict, List, Optional

from snapshot_exporter.contextual_logger import ContextualLoggerAdapter
from snapshot_exporter.errors import PublishError

GIT_EXECUTABLE = 'git'
COMMIT_MESSAGE_FORMAT = 'Data export {date}'
NOTHING_TO_COMMIT_MARKERS = ('nothing to commit', 'nothing added to commit')


class CommitOutcome(Enum):
    COMMITTED = 'committed'
    NOTHING_TO_COMMIT = 'nothing_to_commit'


class GitRepository:
    """Handle on a working tree; runs git with an explicit cwd."""

    path: Path

    def __init__(self, path: Path) -> None:
        self.path = path

    def _environment(self) -> Dict[str, str]:
        # Messages are matched on text, keep them untranslated
        return {**os.environ, 'LC_ALL': 'C'}

    def run(self, *args: str) -> subprocess.CompletedProcess:
        command: List[str] = [GIT_EXECUTABLE, *args]
        try:
            return subprocess.run(
                command,
                cwd=self.path,
                env=self._environment(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise PublishError(command, None, str(e)) from e

    def _check(self, *args: str) -> str:
        result = self.run(*args)
        if result.returncode != 0:
            raise PublishError(list(result.args), result.returncode, result.stdout or '')
        return result.stdout or ''

    def stage_all(self) -> str:
        return self._check('add', '.')

    def commit(self, message: str) -> CommitOutcome:
        result = self.run('commit', '-m', message)
        if result.returncode == 0:
            return CommitOutcome.COMMITTED

        output: str = result.stdout or ''
        if any(marker in output for marker in NOTHING_TO_COMMIT_MARKERS):
            return CommitOutcome.NOTHING_TO_COMMIT
        raise PublishError(list(result.args), result.returncode, output)

    def push(self, remote: Optional[str] = None, branch: Optional[str] = None) -> str:
        args: List[str] = ['push']
        if remote:
            args.append(remote)
            if branch:
                args.append(branch)
        return self._check(*args)


class Publisher:
    """Stage -> commit -> push, each step only after the previous one succeeded."""

    def __init__(self, repository: GitRepository, remote: Optional[str] = None, branch: Optional[str] = None) -> None:
        self.repository = repository
        self.remote = remote
        self.branch = branch

    @staticmethod
    def commit_message(export_date: str) -> str:
        return COMMIT_MESSAGE_FORMAT.format(date=export_date)

    def publish(self, export_date: str, logger: ContextualLoggerAdapter) -> CommitOutcome:
        """Raises PublishError on any failing step except an empty commit."""
        git_logger = logger.with_context(repository=self.repository.path)

        output = self.repository.stage_all()
        git_logger.debug(f"git add output: {output.strip()}")
        git_logger.info("Added files to Git staging area")

        message: str = self.commit_message(export_date)
        outcome: CommitOutcome = self.repository.commit(message)
        if outcome is CommitOutcome.NOTHING_TO_COMMIT:
            git_logger.info("Nothing to commit, working tree clean")
            return outcome
        git_logger.info(f"Committed changes with message: {message}")

        output = self.repository.push(self.remote, self.branch)
        git_logger.debug(f"git push output: {output.strip()}")
        git_logger.info("Pushed changes to remote repository")
        return outcome
