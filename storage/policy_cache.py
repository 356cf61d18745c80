"""
Persisted Policy Cache

Second tier of the policy store. Entries survive process restarts and are
kept well beyond their freshness window so that a stale copy can still be
served when the backend is unreachable.

Key Schema:
    POLICY:{identifier}:{origin}  → JSON {"policy": {...}, "fetchedAt": ms}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from gatekeeper.schemas.policy import SAFE_DEFAULTS, Policy, parse_policy


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = SAFE_DEFAULTS.ttl_seconds


@dataclass(frozen=True)
class CachedPolicy:
    """A policy with the epoch-ms time it was fetched from the network."""
    policy: Policy
    fetched_at: float

    def is_fresh(self, now_ms: float) -> bool:
        # ttlSeconds 0 means "unset", not "never fresh"
        ttl = self.policy.ttl_seconds or DEFAULT_TTL_SECONDS
        return now_ms - self.fetched_at < ttl * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {"policy": self.policy.to_wire(), "fetchedAt": self.fetched_at}

    @classmethod
    def from_dict(cls, data: Any) -> Optional[CachedPolicy]:
        if not isinstance(data, dict):
            return None
        policy = parse_policy(data.get("policy"))
        fetched_at = data.get("fetchedAt")
        if policy is None or not isinstance(fetched_at, (int, float)):
            return None
        return cls(policy=policy, fetched_at=float(fetched_at))


class PolicyCacheRepository:
    """
    Redis-backed policy entries. Every operation fails soft: storage
    errors are logged and reported as a miss.
    """

    # Stale copies stay usable as a fallback for a week
    RETENTION_SECONDS: int = 7 * 24 * 3600

    def __init__(self, client) -> None:
        self.client = client

    def _policy_key(self, identifier: str, origin: str) -> str:
        return f"POLICY:{identifier}:{origin}"

    async def load(self, identifier: str, origin: str) -> Optional[CachedPolicy]:
        key = self._policy_key(identifier, origin)
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Policy cache read failed for {key}: {e}")
            return None
        if not raw:
            return None
        try:
            entry = CachedPolicy.from_dict(json.loads(raw))
        except json.JSONDecodeError:
            entry = None
        if entry is None:
            logger.warning(f"Discarding corrupt policy cache entry {key}")
        return entry

    async def save(self, identifier: str, origin: str, entry: CachedPolicy) -> bool:
        key = self._policy_key(identifier, origin)
        try:
            await self.client.setex(key, self.RETENTION_SECONDS, json.dumps(entry.to_dict()))
            return True
        except RedisError as e:
            logger.warning(f"Policy cache write failed for {key}: {e}")
            return False

    async def delete(self, identifier: str, origin: str) -> None:
        key = self._policy_key(identifier, origin)
        try:
            await self.client.delete(key)
        except RedisError as e:
            logger.warning(f"Policy cache delete failed for {key}: {e}")
