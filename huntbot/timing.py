"""
Randomised pacing helpers.

Every pause in the bot goes through `sleep`, so tests can replace it with a
recording no-op instead of waiting in real time.
"""

import asyncio
import random

sleep = asyncio.sleep

SHORT_PAUSE = (0.1, 0.5)   # seconds
LONG_PAUSE  = (1.0, 3.0)


async def sleep_range(low: float, high: float):
    """Sleep a uniformly random number of seconds in [low, high]."""
    if high < low:
        high = low
    await sleep(random.uniform(low, high))


def jitter_duration(seconds: float, pct: float) -> float:
    """Spread `seconds` by up to ±pct (0.1 = ±10%)."""
    if pct <= 0:
        return seconds
    variance = seconds * pct
    return seconds + random.uniform(-variance, variance)


def backoff(base: float, factor: float, cap: float, attempt: int) -> float:
    """
    Exponential backoff: base * factor**attempt, never above cap.

    >>> backoff(5, 2, 60, 3)
    40
    """
    delay = base
    for _ in range(attempt):
        delay = delay * factor
        if delay > cap:
            return cap
    return delay


async def random_pause():
    await sleep_range(*SHORT_PAUSE)


async def long_pause():
    await sleep_range(*LONG_PAUSE)


def should_take_break(action_count: int, every: int) -> bool:
    if every <= 0:
        return False
    return action_count % every == 0
