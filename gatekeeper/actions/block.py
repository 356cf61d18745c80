"""Block: terminal block screen. The session never leaves this state."""

import logging

from gatekeeper.session import SessionState

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Risk threshold exceeded"


def execute_block(session: SessionState, reason: str = DEFAULT_BLOCK_REASON) -> bool:
    """Render the block screen; always returns False (not passed)."""
    logger.info(f"BLOCK - reason: {reason}")
    if session.surface is not None:
        session.surface.render_block(reason)
    return False
