"""
Time helpers shared by the decision engine.

Epoch seconds for token expiry, epoch milliseconds for telemetry, and a
monotonic clock for deadlines.
"""

import asyncio
import random
import time
from typing import Optional

GRACE_PERIOD_SEC = 3600


def now_sec() -> int:
    """Current epoch seconds."""
    return int(time.time())


def now_ms() -> float:
    """Current epoch milliseconds."""
    return time.time() * 1000.0


def hrt() -> float:
    """High-resolution monotonic timestamp in milliseconds."""
    return time.perf_counter() * 1000.0


async def sleep(ms: float) -> None:
    await asyncio.sleep(max(0.0, ms) / 1000.0)


def jitter(base_ms: float, pct: float = 0.2) -> float:
    """Return ``base_ms`` +/- ``pct`` of itself, uniformly distributed."""
    spread = base_ms * pct
    return base_ms + random.uniform(-spread, spread)


def is_expired(exp_sec: float, now: Optional[float] = None) -> bool:
    now = now_sec() if now is None else now
    return now > exp_sec


def is_in_grace(exp_sec: float, now: Optional[float] = None) -> bool:
    """Expired, but by no more than one hour."""
    now = now_sec() if now is None else now
    return exp_sec < now <= exp_sec + GRACE_PERIOD_SEC
