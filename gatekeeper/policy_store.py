"""
Policy Store

Resolves the tenant policy through an ordered list of resolvers; the
first one returning a PolicyResolution wins:

    1. fresh memory cache
    2. fresh persisted cache (Redis)
    3. network GET /config, bounded by the stale entry's configMs (or 800ms)
    4. stale persisted / memory cache
    5. SAFE_DEFAULTS

fetch() never raises and never waits longer than the config timeout.
Resolutions from (4) and (5) after a failed network attempt are flagged
degraded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from gatekeeper.api.client import BackendClient
from gatekeeper.schemas.policy import SAFE_DEFAULTS, Policy, parse_policy
from gatekeeper.utils.masking import mask_id
from gatekeeper.utils.time import hrt, now_ms
from storage.policy_cache import CachedPolicy, PolicyCacheRepository

logger = logging.getLogger(__name__)


class PolicySource(str, Enum):
    MEMORY = "memory"
    PERSISTED = "persisted"
    NETWORK = "network"
    STALE = "stale"
    DEFAULTS = "defaults"


@dataclass(frozen=True)
class PolicyResolution:
    policy: Policy
    source: PolicySource
    degraded: bool = False


@dataclass
class _Lookup:
    """Per-call resolver context."""
    identifier: str
    origin: str
    identifier_param: str
    started: float
    budget_ms: float = SAFE_DEFAULTS.timeouts.config_ms
    persisted: Optional[CachedPolicy] = None
    network_failed: bool = False

    def remaining_ms(self) -> float:
        return self.budget_ms - (hrt() - self.started)


Resolver = Callable[[_Lookup], Awaitable[Optional[PolicyResolution]]]


class PolicyStore:
    """
    Two-tier cached policy resolution keyed by (identifier, origin).
    """

    def __init__(
        self,
        client: BackendClient,
        cache: PolicyCacheRepository,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self.client = client
        self.cache = cache
        self._clock = clock
        self._memory: Dict[Tuple[str, str], CachedPolicy] = {}
        self._resolvers: List[Resolver] = [
            self._fresh_memory,
            self._fresh_persisted,
            self._network,
            self._stale,
            self._defaults,
        ]

    async def fetch(
        self,
        identifier: Optional[str],
        origin: str,
        identifier_param: str = "widgetId",
    ) -> PolicyResolution:
        if not identifier:
            logger.info("No widget or tenant identifier, using safe defaults")
            return PolicyResolution(SAFE_DEFAULTS, PolicySource.DEFAULTS)

        lookup = _Lookup(identifier, origin, identifier_param, started=hrt())
        try:
            for resolver in self._resolvers:
                resolution = await resolver(lookup)
                if resolution is not None:
                    return resolution
        except Exception:
            logger.exception(f"Policy resolution failed for {mask_id(identifier)}")
        return PolicyResolution(SAFE_DEFAULTS, PolicySource.DEFAULTS, degraded=True)

    async def clear(self, identifier: str, origin: str) -> None:
        self._memory.pop((identifier, origin), None)
        await self.cache.delete(identifier, origin)

    # -------------------------------------------------------------------------
    # Resolvers
    # -------------------------------------------------------------------------

    async def _fresh_memory(self, lookup: _Lookup) -> Optional[PolicyResolution]:
        entry = self._memory.get((lookup.identifier, lookup.origin))
        if entry is not None and entry.is_fresh(self._clock()):
            logger.debug("Using memory-cached policy")
            return PolicyResolution(entry.policy, PolicySource.MEMORY)
        return None

    async def _fresh_persisted(self, lookup: _Lookup) -> Optional[PolicyResolution]:
        try:
            lookup.persisted = await asyncio.wait_for(
                self.cache.load(lookup.identifier, lookup.origin),
                timeout=max(lookup.remaining_ms(), 1.0) / 1000.0,
            )
        except asyncio.TimeoutError:
            logger.warning("Persisted policy cache read timed out")
            return None

        entry = lookup.persisted
        if entry is None:
            return None
        lookup.budget_ms = entry.policy.timeouts.config_ms
        if entry.is_fresh(self._clock()):
            self._memory[(lookup.identifier, lookup.origin)] = entry
            logger.debug("Using persisted policy cache")
            return PolicyResolution(entry.policy, PolicySource.PERSISTED)
        return None

    async def _network(self, lookup: _Lookup) -> Optional[PolicyResolution]:
        remaining = lookup.remaining_ms()
        if remaining <= 0:
            lookup.network_failed = True
            logger.warning("config_fetch_failed: no time budget left")
            return None

        data = await self.client.safe_fetch(
            "GET",
            "/config",
            timeout_ms=remaining,
            params={lookup.identifier_param: lookup.identifier},
        )
        policy = parse_policy(data) if data is not None else None
        if policy is None:
            lookup.network_failed = True
            logger.warning(f"config_fetch_failed for {mask_id(lookup.identifier)}")
            return None

        entry = CachedPolicy(policy=policy, fetched_at=self._clock())
        self._memory[(lookup.identifier, lookup.origin)] = entry
        try:
            await asyncio.wait_for(
                self.cache.save(lookup.identifier, lookup.origin, entry),
                timeout=max(lookup.remaining_ms(), 1.0) / 1000.0,
            )
        except asyncio.TimeoutError:
            logger.warning("Persisted policy cache write timed out")
        logger.info(f"Fetched remote policy (mode={policy.mode.value})")
        return PolicyResolution(policy, PolicySource.NETWORK)

    async def _stale(self, lookup: _Lookup) -> Optional[PolicyResolution]:
        entry = lookup.persisted or self._memory.get((lookup.identifier, lookup.origin))
        if entry is None:
            return None
        self._memory[(lookup.identifier, lookup.origin)] = entry
        logger.info("Using stale policy cache as fallback")
        return PolicyResolution(entry.policy, PolicySource.STALE, degraded=lookup.network_failed)

    async def _defaults(self, lookup: _Lookup) -> Optional[PolicyResolution]:
        logger.info("No policy cache, using safe defaults")
        return PolicyResolution(SAFE_DEFAULTS, PolicySource.DEFAULTS, degraded=lookup.network_failed)
