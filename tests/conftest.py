from unittest.mock import MagicMock

import pytest


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv("GHBACKUP_SECRET", raising=False)
    monkeypatch.delenv("GHBACKUP_CONFIG", raising=False)


@pytest.fixture
def transport():
    return MagicMock()
