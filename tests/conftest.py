"""
Pytest configuration and fixtures for the reminder bot.

Provides cross-platform event loop configuration, a pinned clock and
instant retry policies.
"""

import asyncio
import random
import sys
from datetime import datetime, timezone

import pytest

from reminder_engine.dispatch import RetryPolicy

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Monday 2026-10-19, 09:30 in Asia/Kolkata
MONDAY_UTC = datetime(2026, 10, 19, 4, 0, tzinfo=timezone.utc)
# Saturday 2026-10-24, 09:30 in Asia/Kolkata
SATURDAY_UTC = datetime(2026, 10, 24, 4, 0, tzinfo=timezone.utc)


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def monday_clock():
    """Clock pinned to a weekday morning in IST."""
    return lambda: MONDAY_UTC


@pytest.fixture
def saturday_clock():
    return lambda: SATURDAY_UTC


@pytest.fixture
def fast_policy():
    """Delivery policy with the production retry budget but no real waiting."""
    return RetryPolicy(
        max_retries=5,
        base_delay_ms=1,
        max_delay_ms=5,
        rng=random.Random(7),
        sleep=no_sleep,
    )


@pytest.fixture
def fast_source_policy(fast_policy):
    return fast_policy.with_retries(3)
