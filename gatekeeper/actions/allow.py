"""Allow: no friction, nothing is shown."""

import logging

from gatekeeper.session import SessionState

logger = logging.getLogger(__name__)


async def execute_allow(session: SessionState) -> bool:
    logger.info("ALLOW - no friction")
    return True
