from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol


class UpdateType(Enum):
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Update:
    type: UpdateType
    message: str


class UpdateListener(Protocol):
    """Receives progress and error messages while a run is in progress."""

    def on_update(self, update: Update) -> None:
        ...

    def close(self) -> None:
        ...


class LoggingListener:
    """Forwards updates to a logger; errors at ERROR level, progress at INFO."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or logging.getLogger("ghbackup")

    def on_update(self, update: Update) -> None:
        if update.type is UpdateType.ERROR:
            self._log.error(update.message)
        else:
            self._log.info(update.message)

    def close(self) -> None:
        return


class CollectingListener:
    """Keeps every update in memory; close() marks the end of the stream."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.updates: List[Update] = []
        self.closed = False

    def on_update(self, update: Update) -> None:
        if self.closed:
            raise RuntimeError("Update stream already closed")
        with self._lock:
            self.updates.append(update)

    def close(self) -> None:
        self.closed = True

    def messages(self, update_type: UpdateType) -> List[str]:
        with self._lock:
            return [update.message for update in self.updates if update.type is update_type]
