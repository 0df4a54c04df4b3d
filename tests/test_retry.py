from datetime import datetime, timedelta, timezone

import pytest

from biopeak.backfill.retry import backoff_delay, next_retry_at, period_days

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_backoff_doubles_without_jitter():
    assert backoff_delay(0) == timedelta(minutes=5)
    assert backoff_delay(1) == timedelta(minutes=10)
    assert backoff_delay(2) == timedelta(minutes=20)


def test_backoff_is_strictly_increasing_even_with_max_jitter():
    # worst case: k gets the full jitter, k + 1 gets none
    for k in range(5):
        high_k = backoff_delay(k, jitter=0.99, rng=lambda: 1.0)
        low_next = backoff_delay(k + 1, jitter=0.99, rng=lambda: 0.0)
        assert low_next > high_k


def test_jitter_stretches_delay():
    assert backoff_delay(0, jitter=0.1, rng=lambda: 0.5) == timedelta(seconds=315)


@pytest.mark.parametrize("retry_count, jitter", [(-1, 0.0), (0, 1.0), (0, -0.1)])
def test_backoff_rejects_bad_input(retry_count, jitter):
    with pytest.raises(ValueError):
        backoff_delay(retry_count, jitter=jitter)


def test_next_retry_at_uses_backoff():
    assert next_retry_at(NOW, 1, jitter=0.0) == NOW + timedelta(minutes=10)


def test_retry_after_only_extends():
    assert next_retry_at(NOW, 0, retry_after=3600, jitter=0.0) == NOW + timedelta(hours=1)
    assert next_retry_at(NOW, 0, retry_after=10, jitter=0.0) == NOW + timedelta(minutes=5)


def test_period_days_rounds_up():
    assert period_days(NOW, NOW + timedelta(days=7)) == 7
    assert period_days(NOW, NOW + timedelta(days=7, hours=1)) == 8
    assert period_days(NOW, NOW + timedelta(hours=1)) == 1
