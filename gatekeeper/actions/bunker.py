"""
Bunker Mode (incident isolation)

Never active by default; only reached when the policy enables it. A
browsing session that already passed the gate is whitelisted for
bunkerPolicy.ttlSeconds. Otherwise a strict gate (target 40-60,
tolerance 3) is presented and retried until it is passed.
"""

import logging
import random

from gatekeeper.actions.surface import new_prompt
from gatekeeper.schemas.policy import SAFE_DEFAULTS
from gatekeeper.session import SessionState
from storage.whitelist import DEFAULT_PASS_TOKEN, WhitelistRepository

logger = logging.getLogger(__name__)

TARGET_MIN = 40
TARGET_MAX = 60
TOLERANCE = 3


async def execute_bunker(session: SessionState, whitelist: WhitelistRepository) -> bool:
    browsing_id = session.config.browsing_id
    session.bunker_active = True

    if await whitelist.is_whitelisted(browsing_id):
        logger.info("Bunker: browsing session whitelisted, passing through")
        return True

    logger.info("BUNKER - strict verification gate")
    surface = session.surface
    if surface is None:
        logger.warning("No mitigation surface attached, bunker gate cannot be presented")
        return False

    ttl = (session.policy or SAFE_DEFAULTS).bunker_policy.ttl_seconds
    target = random.randint(TARGET_MIN, TARGET_MAX)
    attempt = 1
    while True:
        prompt = new_prompt("gate", target, attempt=attempt, retry=attempt > 1)
        value = await surface.ask(prompt, None)
        if value is not None and abs(value - target) <= TOLERANCE:
            break
        logger.info(f"Bunker verification failed (value={value}, target={target})")
        attempt += 1

    logger.info(f"Bunker verification passed, whitelisting for {ttl}s")
    await whitelist.grant(browsing_id, ttl, session.session_token or DEFAULT_PASS_TOKEN)
    return True


async def exit_bunker(session: SessionState, whitelist: WhitelistRepository) -> None:
    """Leave bunker mode: drop the whitelist entry, token and smoothed score."""
    await whitelist.revoke(session.config.browsing_id)
    session.clear_token()
    session.ema_score = 0.0
    session.bunker_active = False
    logger.info("Bunker exit, whitelist cleared")
