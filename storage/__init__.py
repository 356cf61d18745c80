"""
Gatekeeper Storage Layer

Public exports for the Redis connection and repositories.
"""

from .connection import get_redis_client, verify_connection
from .policy_cache import CachedPolicy, PolicyCacheRepository
from .rate_limits import IngestRateLimiter
from .whitelist import WhitelistRepository

__all__ = [
    "get_redis_client",
    "verify_connection",
    "CachedPolicy",
    "PolicyCacheRepository",
    "IngestRateLimiter",
    "WhitelistRepository",
]
