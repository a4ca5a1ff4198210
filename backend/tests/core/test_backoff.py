"""Backoff arithmetic tests."""

from roundtable.core.backoff import next_backoff, next_poll_delay_ms


def test_backoff_progression_floor_then_doubling_then_ceiling():
    seen = []
    current = 0
    for _ in range(6):
        current = next_backoff(current, 5_000, 60_000)
        seen.append(current)
    assert seen == [5_000, 10_000, 20_000, 40_000, 60_000, 60_000]


def test_floor_above_ceiling_is_capped():
    assert next_backoff(0, 90_000, 60_000) == 60_000


def test_poll_delay_respects_minimum_interval():
    assert next_poll_delay_ms(10_000, 2_000, 0) == 10_000
    assert next_poll_delay_ms(500, 2_000, 0) == 2_000
    assert next_poll_delay_ms(10_000, 2_000, 5_000) == 15_000


def test_retry_after_hint_raises_backoff_within_ceiling():
    assert next_backoff(0, 5_000, 60_000, retry_after_ms=30_000) == 30_000
    assert next_backoff(20_000, 5_000, 60_000, retry_after_ms=1_000) == 40_000
    assert next_backoff(0, 5_000, 60_000, retry_after_ms=120_000) == 60_000
