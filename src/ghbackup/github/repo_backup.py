from __future__ import annotations

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ghbackup.masking import SecretMasker

from .listing import Repository

LOG = logging.getLogger(__name__)

_OBJECTS_RE = re.compile(r"(?:Counting|Enumerating) objects: (\d+),|(?:Receiving|Unpacking) objects: +\d+% \(\d+/(\d+)\)")
_REF_UPDATE_RE = re.compile(r"^\s*(?:[ +\-t*!=]\s+)?(?:\[new [^\]]+\]|\[deleted\]|[0-9a-f]+\.\.\.?[0-9a-f]+)\s+\S+\s+->\s+\S+", re.MULTILINE)


class SyncError(Exception):
    """Raised when a repository cannot be cloned or updated."""


class RepoState(Enum):
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class RepoSyncResult:
    repository: Repository
    state: RepoState
    error: Optional[str] = None
    attempts: int = 1
    objects: int = 0


class SyncExecutor:
    """Mirror-clones new repositories and updates existing mirrors."""

    def __init__(
        self,
        directory: Path,
        flat: bool = False,
        secret: Optional[str] = None,
        masker: Optional[SecretMasker] = None,
        git: str = "git",
    ) -> None:
        self._directory = Path(directory)
        self._flat = flat
        self._secret = secret
        self._masker = masker or SecretMasker([secret] if secret else [])
        self._git = git

    def repo_dir(self, repo: Repository) -> Path:
        repo_git = f"{repo.path}.git"
        if self._flat:
            return self._directory / Path(repo_git).name
        return self._directory / repo_git

    def clone_url(self, repo: Repository) -> str:
        if not repo.private or not self._secret:
            return repo.clone_url
        parts = urlsplit(repo.clone_url)
        if parts.scheme not in ("http", "https"):
            return repo.clone_url
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        netloc = f"{quote(self._secret, safe='')}@{host}"
        return urlunsplit(parts._replace(netloc=netloc))

    def sync(self, repo: Repository) -> RepoSyncResult:
        repo_dir = self.repo_dir(repo)
        try:
            exists = repo_dir.exists()
        except OSError as exc:
            raise SyncError(self._masker.mask(f"Cannot check if {repo_dir} exists: {exc}")) from exc

        if exists:
            LOG.info("Updating %s", repo.path)
            output = self._run([self._git, "remote", "update", "--prune"], cwd=repo_dir)
            objects = object_count(output)
            state = RepoState.CHANGED if objects > 0 or refs_updated(output) else RepoState.UNCHANGED
            return RepoSyncResult(repository=repo, state=state, objects=objects)

        LOG.info("Cloning %s", repo.path)
        repo_dir.parent.mkdir(parents=True, exist_ok=True)
        cmd = [self._git, "clone", "--mirror", "--progress", self.clone_url(repo), str(repo_dir)]
        try:
            output = self._run(cmd)
        except SyncError:
            shutil.rmtree(repo_dir, ignore_errors=True)
            raise
        return RepoSyncResult(repository=repo, state=RepoState.NEW, objects=object_count(output))

    def _run(self, cmd: List[str], cwd: Optional[Path] = None) -> str:
        try:
            completed = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except subprocess.CalledProcessError as exc:
            # The original exception carries the unmasked command line.
            output = (exc.output or b"").decode("utf-8", "ignore").strip()
            message = f"error running command {cmd} (exit {exc.returncode}): {output}"
            raise SyncError(self._masker.mask(message)) from None
        except OSError as exc:
            raise SyncError(self._masker.mask(f"cannot run command {cmd}: {exc}")) from None
        return (completed.stdout or b"").decode("utf-8", "ignore")


def object_count(output: str) -> int:
    """Return the object count git reported, or 0 when it reported none."""
    for match in _OBJECTS_RE.finditer(output):
        value = match.group(1) or match.group(2)
        if value:
            return int(value)
    return 0


def refs_updated(output: str) -> bool:
    return bool(_REF_UPDATE_RE.search(output))
