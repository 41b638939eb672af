from __future__ import annotations

import logging
import queue
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

from .github.listing import Repository
from .github.repo_backup import RepoState, RepoSyncResult, SyncError, SyncExecutor
from .masking import SecretMasker
from .retry import RetryScheduler
from .updates import LoggingListener, Update, UpdateListener, UpdateType

LOG = logging.getLogger(__name__)

ResultHandler = Callable[[RepoSyncResult], None]


def effective_workers(configured: int, job_count: int) -> int:
    return max(0, min(configured, job_count))


class WorkerPool:
    """Runs one sync job per repository on a bounded set of worker threads."""

    def __init__(
        self,
        executor: SyncExecutor,
        scheduler: RetryScheduler,
        workers: int,
        listener: Optional[UpdateListener] = None,
        masker: Optional[SecretMasker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._executor = executor
        self._scheduler = scheduler
        self._workers = workers
        self._listener = listener or LoggingListener(LOG)
        self._masker = masker or SecretMasker()
        self._sleep = sleep

    def run(self, repositories: Sequence[Repository], on_result: ResultHandler) -> int:
        """Process every repository and hand each result to ``on_result``.

        Returns the number of workers started. Blocks until all results have been
        handled and every worker has exited.
        """
        workers = effective_workers(self._workers, len(repositories))
        if workers == 0:
            return 0

        jobs: "queue.Queue[Repository]" = queue.Queue()
        for repo in repositories:
            jobs.put(repo)
        results: "queue.Queue[RepoSyncResult]" = queue.Queue()

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ghbackup-worker") as pool:
            for _ in range(workers):
                pool.submit(self._drain, jobs, results)
            for _ in range(len(repositories)):
                on_result(results.get())
        return workers

    def _drain(self, jobs: "queue.Queue[Repository]", results: "queue.Queue[RepoSyncResult]") -> None:
        while True:
            try:
                repo = jobs.get_nowait()
            except queue.Empty:
                return
            try:
                result = self._process(repo)
            except Exception as exc:  # noqa: BLE001
                error = self._masker.mask(f"unexpected error: {exc}")
                LOG.error("Sync of %s aborted: %s", repo.path, error)
                result = RepoSyncResult(repository=repo, state=RepoState.FAILED, error=error)
            results.put(result)

    def _process(self, repo: Repository) -> RepoSyncResult:
        attempt = 0
        while True:
            try:
                result = self._executor.sync(repo)
            except SyncError as exc:
                error = self._masker.mask(str(exc))
            else:
                self._emit(UpdateType.INFO, f"{repo.path}: {result.state.value}")
                return RepoSyncResult(
                    repository=repo,
                    state=result.state,
                    attempts=attempt + 1,
                    objects=result.objects,
                )

            delay = self._scheduler.next(attempt)
            if delay is None:
                self._emit(UpdateType.ERROR, f"giving up on {repo.path} after {attempt + 1} attempt(s): {error}")
                return RepoSyncResult(repository=repo, state=RepoState.FAILED, error=error, attempts=attempt + 1)

            self._emit(UpdateType.ERROR, f"attempt {attempt + 1} for {repo.path} failed, retrying in {delay:g}s: {error}")
            self._sleep(delay)
            attempt += 1

    def _emit(self, update_type: UpdateType, message: str) -> None:
        self._listener.on_update(Update(type=update_type, message=message))
