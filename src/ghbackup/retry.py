"""Backoff schedules for retrying failed repository syncs."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Tuple

DEFAULT_DELAYS: Tuple[float, ...] = (5, 15, 45, 90, 180)


class RetryScheduler(Protocol):
    def next(self, attempt: int) -> Optional[float]:
        """Return the delay in seconds after failed ``attempt`` (0-based), or None to stop."""
        ...


class FixedBackoff:
    """Finite, ordered sequence of delays. K delays allow K retries."""

    def __init__(self, delays: Iterable[float] = DEFAULT_DELAYS) -> None:
        self._delays = tuple(float(delay) for delay in delays)

    @property
    def delays(self) -> Tuple[float, ...]:
        return self._delays

    def next(self, attempt: int) -> Optional[float]:
        if 0 <= attempt < len(self._delays):
            return self._delays[attempt]
        return None

    def __repr__(self) -> str:
        return f"FixedBackoff({list(self._delays)!r})"


class ExponentialBackoff:
    """Delays grow by ``multiplier`` until the total sleep would exceed ``max_elapsed``."""

    def __init__(
        self,
        initial: float = 5.0,
        multiplier: float = 2.0,
        max_delay: Optional[float] = None,
        max_elapsed: float = 600.0,
    ) -> None:
        if initial <= 0:
            raise ValueError("Initial delay must be positive")
        if multiplier < 1:
            raise ValueError("Multiplier must be at least 1")
        self._initial = initial
        self._multiplier = multiplier
        self._max_delay = max_delay
        self._max_elapsed = max_elapsed

    def _delay(self, attempt: int) -> float:
        delay = self._initial * (self._multiplier ** attempt)
        if self._max_delay is not None:
            delay = min(delay, self._max_delay)
        return delay

    def next(self, attempt: int) -> Optional[float]:
        if attempt < 0:
            return None
        elapsed = sum(self._delay(i) for i in range(attempt + 1))
        if elapsed > self._max_elapsed:
            return None
        return self._delay(attempt)
