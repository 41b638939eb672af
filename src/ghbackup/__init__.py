"""Mirror backups of a GitHub account's repositories."""

from __future__ import annotations

from .config import ConfigurationError, RunConfig, build_config, load_config  # noqa: F401
from .orchestrator import BackupOrchestrator  # noqa: F401
from .summary import RepositoriesFailedError, RunSummary  # noqa: F401
