from __future__ import annotations

import pytest

from discord_mcp.remote.ratelimit import SlidingWindowLimiter


def test_limiter_reports_wait_until_oldest_expires(clock) -> None:
    limiter = SlidingWindowLimiter(2, window=10.0, clock=clock)

    assert limiter.try_acquire() == 0.0
    clock.advance(4.0)
    assert limiter.try_acquire() == 0.0
    assert limiter.try_acquire() == pytest.approx(6.0)
    assert limiter.in_window == 2

    clock.advance(6.0)
    assert limiter.try_acquire() == 0.0
    assert limiter.in_window == 2


@pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": 1, "window": 0}])
def test_limiter_rejects_non_positive_settings(kwargs) -> None:
    with pytest.raises(ValueError):
        SlidingWindowLimiter(**kwargs)
