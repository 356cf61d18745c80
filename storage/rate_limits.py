"""
Ingest Rate Limiting

Per-session fixed one-second windows stored in Redis.

Key Schema:
    RATE:{session_id}:{second}  → counter (expires after 2s)
"""

import logging
import time

from redis.exceptions import RedisError


logger = logging.getLogger(__name__)


class IngestRateLimiter:
    """Redis counter per session and second. Fails open."""

    TELEMETRY_RATE_LIMIT: int = 20  # batches per second

    def __init__(self, client) -> None:
        self.client = client

    def _rate_key(self, session_id: str, prefix: str = "RATE") -> str:
        return f"{prefix}:{session_id}:{int(time.time())}"

    async def check_telemetry(self, session_id: str) -> bool:
        return await self._check_rate_limit(session_id, "RATE", self.TELEMETRY_RATE_LIMIT)

    async def _check_rate_limit(self, session_id: str, prefix: str, limit: int) -> bool:
        key = self._rate_key(session_id, prefix)
        try:
            count = await self.client.incr(key)
            if count == 1:
                await self.client.expire(key, 2)  # Auto-cleanup
            return count <= limit
        except RedisError as e:
            logger.warning(f"Rate limit check failed: {e}")
            return True  # Fail open
