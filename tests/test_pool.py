"""Tests for ghbackup.pool covering worker bounds, retries and result delivery.

Run with:
    pytest tests/test_pool.py -v
"""

import threading
from unittest.mock import MagicMock

import pytest

from ghbackup.github.listing import Repository
from ghbackup.github.repo_backup import RepoState, RepoSyncResult, SyncError
from ghbackup.masking import SecretMasker
from ghbackup.pool import WorkerPool, effective_workers
from ghbackup.retry import FixedBackoff
from ghbackup.updates import CollectingListener, UpdateType


def _repo(name):
    return Repository(path=f"qvl/{name}", clone_url=f"https://github.com/qvl/{name}.git")


def _executor(states):
    """Fake executor mapping repository path to a state or an exception."""
    executor = MagicMock()

    def _sync(repo):
        outcome = states[repo.path]
        if isinstance(outcome, Exception):
            raise outcome
        return RepoSyncResult(repository=repo, state=outcome, objects=3)

    executor.sync.side_effect = _sync
    return executor


def _run(pool, repos):
    results = []
    workers = pool.run(repos, results.append)
    return workers, results


@pytest.mark.parametrize(
    "configured, jobs, expected",
    [(10, 3, 3), (2, 5, 2), (4, 4, 4), (10, 0, 0), (1, 100, 1)],
)
def test_effective_workers(configured, jobs, expected):
    assert effective_workers(configured, jobs) == expected


def test_zero_jobs_dispatches_nothing():
    executor = MagicMock()
    handler = MagicMock()
    pool = WorkerPool(executor, FixedBackoff([]), workers=5)

    assert pool.run([], handler) == 0
    executor.sync.assert_not_called()
    handler.assert_not_called()


def test_one_result_per_job():
    repos = [_repo("a"), _repo("b"), _repo("c")]
    states = {"qvl/a": RepoState.NEW, "qvl/b": RepoState.CHANGED, "qvl/c": RepoState.UNCHANGED}
    pool = WorkerPool(_executor(states), FixedBackoff([]), workers=2, listener=CollectingListener())

    workers, results = _run(pool, repos)

    assert workers == 2
    assert sorted((r.repository.path, r.state) for r in results) == sorted(states.items())
    assert all(r.attempts == 1 and r.objects == 3 for r in results)


def test_worker_threads_never_exceed_limit():
    seen = set()
    lock = threading.Lock()
    executor = MagicMock()

    def _sync(repo):
        with lock:
            seen.add(threading.current_thread().name)
        return RepoSyncResult(repository=repo, state=RepoState.UNCHANGED)

    executor.sync.side_effect = _sync
    repos = [_repo(str(i)) for i in range(20)]
    pool = WorkerPool(executor, FixedBackoff([]), workers=3, listener=CollectingListener())

    workers, results = _run(pool, repos)

    assert workers == 3
    assert len(results) == 20
    assert 1 <= len(seen) <= 3
    assert executor.sync.call_count == 20


def test_always_failing_job_is_attempted_k_plus_one_times():
    sleeps = []
    executor = _executor({"qvl/a": SyncError("boom")})
    pool = WorkerPool(executor, FixedBackoff([1, 2, 3]), workers=4, listener=CollectingListener(), sleep=sleeps.append)

    _, results = _run(pool, [_repo("a")])

    assert executor.sync.call_count == 4
    assert sleeps == [1, 2, 3]
    assert len(results) == 1
    assert results[0].state is RepoState.FAILED
    assert results[0].attempts == 4
    assert results[0].error == "boom"


def test_transient_failure_recovers_with_true_outcome():
    executor = MagicMock()
    executor.sync.side_effect = [
        SyncError("temporary"),
        RepoSyncResult(repository=_repo("a"), state=RepoState.NEW),
    ]
    pool = WorkerPool(executor, FixedBackoff([0, 0]), workers=1, listener=CollectingListener(), sleep=lambda _: None)

    _, results = _run(pool, [_repo("a")])

    assert results[0].state is RepoState.NEW
    assert results[0].attempts == 2
    assert results[0].error is None


def test_unexpected_exception_fails_job_without_retry():
    executor = _executor({"qvl/a": RuntimeError("kaboom"), "qvl/b": RepoState.NEW})
    pool = WorkerPool(executor, FixedBackoff([5]), workers=2, listener=CollectingListener(), sleep=lambda _: None)

    _, results = _run(pool, [_repo("a"), _repo("b")])

    by_path = {r.repository.path: r for r in results}
    assert by_path["qvl/a"].state is RepoState.FAILED
    assert "kaboom" in by_path["qvl/a"].error
    assert by_path["qvl/b"].state is RepoState.NEW
    assert executor.sync.call_count == 2


def test_failures_are_reported_masked_when_they_occur():
    listener = CollectingListener()
    executor = _executor({"qvl/a": SyncError("could not read s3cr3t")})
    pool = WorkerPool(
        executor,
        FixedBackoff([0]),
        workers=1,
        listener=listener,
        masker=SecretMasker(["s3cr3t"]),
        sleep=lambda _: None,
    )

    _, results = _run(pool, [_repo("a")])

    errors = listener.messages(UpdateType.ERROR)
    assert len(errors) == 2
    assert errors[0].startswith("attempt 1 for qvl/a failed")
    assert errors[1].startswith("giving up on qvl/a after 2 attempt(s)")
    assert all("s3cr3t" not in message for message in errors)
    assert results[0].error == "could not read ###"
