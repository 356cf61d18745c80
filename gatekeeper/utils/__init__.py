"""
Gatekeeper Utilities

Rate limiting, time helpers, identifier masking, tenant token parsing
and the recent-log ring.
"""

from gatekeeper.utils.logs import RecentLogHandler, current_session, recent_logs
from gatekeeper.utils.masking import display_id, mask_id
from gatekeeper.utils.rate_limit import RateLimiter
from gatekeeper.utils.tokens import TokenPayload, is_legacy_tenant_id, parse_token

__all__ = [
    "RateLimiter",
    "RecentLogHandler",
    "recent_logs",
    "current_session",
    "mask_id",
    "display_id",
    "TokenPayload",
    "parse_token",
    "is_legacy_tenant_id",
]
