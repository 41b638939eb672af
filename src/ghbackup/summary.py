from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from .github.repo_backup import RepoState, RepoSyncResult


class RepositoriesFailedError(Exception):
    """Aggregate error for a run in which some repositories could not be synced."""

    def __init__(self, failed: int) -> None:
        super().__init__(f"failed to get {failed} repositories")
        self.failed = failed


@dataclass(frozen=True)
class RunSummary:
    new: int = 0
    changed: int = 0
    unchanged: int = 0
    failed: int = 0
    objects: int = 0

    @property
    def total(self) -> int:
        return self.new + self.changed + self.unchanged + self.failed

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def error(self) -> Optional[RepositoriesFailedError]:
        if self.failed:
            return RepositoriesFailedError(self.failed)
        return None

    def raise_for_failures(self) -> None:
        error = self.error
        if error is not None:
            raise error

    def __str__(self) -> str:
        return (
            f"done: {self.new} new, {self.changed} updated, {self.unchanged} unchanged, "
            f"{self.failed} failed, {self.objects} total objects"
        )


class ResultAggregator:
    """Tallies sync results in any arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Dict[RepoState, int] = {state: 0 for state in RepoState}
        self._objects = 0

    def add(self, result: RepoSyncResult) -> None:
        with self._lock:
            self._counts[result.state] += 1
            self._objects += result.objects

    @property
    def received(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    def summary(self) -> RunSummary:
        with self._lock:
            return RunSummary(
                new=self._counts[RepoState.NEW],
                changed=self._counts[RepoState.CHANGED],
                unchanged=self._counts[RepoState.UNCHANGED],
                failed=self._counts[RepoState.FAILED],
                objects=self._objects,
            )
