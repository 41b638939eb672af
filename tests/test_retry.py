"""Tests for ghbackup.retry.

Run with:
    pytest tests/test_retry.py -v
"""

import pytest

from ghbackup.retry import DEFAULT_DELAYS, ExponentialBackoff, FixedBackoff


def test_fixed_backoff_walks_delays_then_stops():
    scheduler = FixedBackoff([5, 15, 45])
    assert [scheduler.next(i) for i in range(4)] == [5, 15, 45, None]


def test_fixed_backoff_defaults():
    assert FixedBackoff().delays == (5, 15, 45, 90, 180)
    assert DEFAULT_DELAYS == (5, 15, 45, 90, 180)


def test_empty_schedule_never_retries():
    assert FixedBackoff([]).next(0) is None


def test_exponential_backoff_grows_until_elapsed_cap():
    scheduler = ExponentialBackoff(initial=1, multiplier=2, max_elapsed=10)
    # 1 + 2 + 4 = 7 fits, adding 8 would exceed 10
    assert [scheduler.next(i) for i in range(4)] == [1, 2, 4, None]


def test_exponential_backoff_caps_single_delay():
    scheduler = ExponentialBackoff(initial=10, multiplier=3, max_delay=20, max_elapsed=1000)
    assert [scheduler.next(i) for i in range(3)] == [10, 20, 20]


@pytest.mark.parametrize("kwargs", [{"initial": 0}, {"multiplier": 0.5}])
def test_exponential_backoff_rejects_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        ExponentialBackoff(**kwargs)
