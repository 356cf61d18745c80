"""
Widget Heartbeat

Silent, fire-and-forget POST /heartbeat carrying only the widget ID.
Limited to one call per 30 seconds per process and widget.
"""

import logging

from gatekeeper.api.client import BackendClient
from gatekeeper.schemas.policy import SAFE_DEFAULTS
from gatekeeper.session import SessionState
from gatekeeper.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

HEARTBEAT_LIMIT = 1
HEARTBEAT_WINDOW_MS = 30_000


async def send_heartbeat(
    client: BackendClient,
    session: SessionState,
    limiter: RateLimiter,
) -> bool:
    """Returns True when the backend acknowledged the heartbeat."""
    widget_id = session.config.widget_id
    if not widget_id:
        return False

    if not limiter.allow(f"heartbeat:{widget_id}", HEARTBEAT_LIMIT, HEARTBEAT_WINDOW_MS):
        logger.debug("Heartbeat rate limited, skipping")
        return False

    policy = session.policy or SAFE_DEFAULTS
    result = await client.safe_fetch(
        "POST",
        "/heartbeat",
        timeout_ms=policy.timeouts.ping_ms,
        json={"widgetId": widget_id},
    )
    logger.debug(f"Heartbeat {'sent' if result is not None else 'failed'}")
    return result is not None
