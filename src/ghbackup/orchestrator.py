from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from .config import RunConfig, load_config
from .github.api import GitHubAPI, Transport
from .github.listing import Repository, RepositoryLister
from .github.repo_backup import SyncExecutor
from .masking import SecretMasker
from .pool import WorkerPool
from .summary import ResultAggregator, RunSummary
from .updates import LoggingListener, Update, UpdateListener, UpdateType

LOG = logging.getLogger(__name__)


class BackupOrchestrator:
    """Lists an account's repositories and mirrors each of them into the target directory."""

    def __init__(
        self,
        config: RunConfig,
        transport: Optional[Transport] = None,
        listener: Optional[UpdateListener] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._masker = SecretMasker(config.secrets())
        self._listener = listener or LoggingListener(LOG)
        self._api = GitHubAPI(
            config.api_url,
            transport=transport,
            account=config.account,
            secret=config.secret,
        )
        self._executor = SyncExecutor(
            directory=config.directory,
            flat=config.flat_layout(),
            secret=config.secret,
            masker=self._masker,
        )
        self._sleep = sleep

    def list_repositories(self) -> Tuple[Repository, ...]:
        lister = RepositoryLister(self._api)
        return lister.list(
            self._config.account,
            scope=self._config.scope,
            filter_by_owner=self._config.filter_by_owner,
        )

    def run(self) -> RunSummary:
        """Run one backup. Listing errors propagate; sync failures are counted."""
        try:
            repositories = self.list_repositories()
            self._emit(UpdateType.INFO, f"{len(repositories)} repositories")

            self._config.directory.mkdir(parents=True, exist_ok=True)
            aggregator = ResultAggregator()
            pool = WorkerPool(
                executor=self._executor,
                scheduler=self._config.retry.build(),
                workers=self._config.workers,
                listener=self._listener,
                masker=self._masker,
                sleep=self._sleep,
            )
            pool.run(repositories, aggregator.add)

            summary = aggregator.summary()
            self._emit(UpdateType.INFO, str(summary))
            return summary
        finally:
            self._listener.close()

    def _emit(self, update_type: UpdateType, message: str) -> None:
        self._listener.on_update(Update(type=update_type, message=self._masker.mask(message)))


def load_orchestrator(config_path: str, transport: Optional[Transport] = None) -> BackupOrchestrator:
    config = load_config(Path(config_path))
    return BackupOrchestrator(config=config, transport=transport)
