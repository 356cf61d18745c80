"""
Bunker Whitelist

Remembers that a browsing session passed the bunker gate, so later page
loads of the same browsing session skip it. Entries expire with the
policy's bunkerPolicy.ttlSeconds.

Key Schema:
    BUNKER:{browsing_id}  → JSON {"token": str, "expiresAt": epoch ms} (TTL)
"""

import json
import logging
from typing import Optional

from redis.exceptions import RedisError

from gatekeeper.utils.time import now_ms


logger = logging.getLogger(__name__)

DEFAULT_PASS_TOKEN = "bunker-pass"


class WhitelistRepository:
    """Redis-backed bunker whitelist keyed by browsing session."""

    def __init__(self, client) -> None:
        self.client = client

    def _bunker_key(self, browsing_id: str) -> str:
        return f"BUNKER:{browsing_id}"

    async def is_whitelisted(self, browsing_id: Optional[str]) -> bool:
        if not browsing_id:
            return False
        key = self._bunker_key(browsing_id)
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Whitelist read failed: {e}")
            return False
        if not raw:
            return False
        try:
            entry = json.loads(raw)
        except json.JSONDecodeError:
            return False
        if not isinstance(entry, dict):
            return False
        expires_at = entry.get("expiresAt")
        return isinstance(expires_at, (int, float)) and now_ms() < expires_at

    async def grant(
        self,
        browsing_id: Optional[str],
        ttl_seconds: int,
        token: Optional[str] = None,
    ) -> bool:
        if not browsing_id or ttl_seconds <= 0:
            return False
        entry = {
            "token": token or DEFAULT_PASS_TOKEN,
            "expiresAt": now_ms() + ttl_seconds * 1000,
        }
        try:
            await self.client.setex(self._bunker_key(browsing_id), ttl_seconds, json.dumps(entry))
            return True
        except RedisError as e:
            logger.warning(f"Whitelist write failed: {e}")
            return False

    async def revoke(self, browsing_id: Optional[str]) -> None:
        if not browsing_id:
            return
        try:
            await self.client.delete(self._bunker_key(browsing_id))
        except RedisError as e:
            logger.warning(f"Whitelist delete failed: {e}")
