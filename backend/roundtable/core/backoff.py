"""Poll Backoff: delay arithmetic for the sync loop under throttling.

Invariants:
    - First throttle sets the floor; each further throttle doubles, capped at the ceiling
    - A server Retry-After hint raises the backoff to at least that long, never past the ceiling
    - Any non-throttled outcome resets the backoff to zero
    - Next delay = max(min_interval, poll_interval) + backoff
"""


def next_backoff(
    current_ms: int,
    floor_ms: int,
    ceiling_ms: int,
    retry_after_ms: int | None = None,
) -> int:
    step = floor_ms if current_ms <= 0 else current_ms * 2
    if retry_after_ms:
        step = max(step, retry_after_ms)
    return min(step, ceiling_ms)


def next_poll_delay_ms(
    poll_interval_ms: int, min_interval_ms: int, backoff_ms: int,
) -> int:
    return max(min_interval_ms, poll_interval_ms) + max(0, backoff_ms)
