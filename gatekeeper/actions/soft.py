"""
Soft Actions (zero friction)

Invisible mitigations run in the order the policy lists them:
- pow-lite: sha256 puzzle solved by the page (about 150-300ms of client
  CPU), verified here with a single hash
- js-attestation: capability check of the reported environment
- silent-retry: jittered wait (500ms +/- 30%)
- token-refresh: drop the cached session token

Each action is bounded to one second. Soft mitigation always passes.
"""

import asyncio
import hashlib
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from gatekeeper.actions.surface import new_pow_prompt
from gatekeeper.schemas.policy import SAFE_DEFAULTS
from gatekeeper.session import SessionState
from gatekeeper.utils.time import jitter, sleep

logger = logging.getLogger(__name__)

ACTION_TIMEOUT_S = 1.0
POW_DIFFICULTY = 16  # leading zero bits
POW_TIMEOUT_S = 0.9


def pow_solved(nonce: str, difficulty: int, solution: Optional[str]) -> bool:
    """True when sha256("{nonce}:{solution}") starts with ``difficulty`` zero bits."""
    if not solution:
        return False
    digest = hashlib.sha256(f"{nonce}:{solution}".encode()).digest()
    return int.from_bytes(digest, "big") >> (256 - difficulty) == 0


async def pow_lite(session: SessionState) -> Optional[bool]:
    """Returns whether the page solved the puzzle, None when it was not presented or answered."""
    surface = session.surface
    if surface is None:
        logger.debug("No mitigation surface attached, skipping pow-lite")
        return None

    prompt = new_pow_prompt(POW_DIFFICULTY)
    solution = await surface.solve(prompt, POW_TIMEOUT_S)
    if solution is None:
        logger.info("PoW-lite not answered")
        return None

    solved = pow_solved(prompt.nonce, POW_DIFFICULTY, solution)
    logger.info(f"PoW-lite {'verified' if solved else 'rejected'}")
    return solved


async def js_attestation(session: SessionState) -> None:
    env = session.environment
    checks = [
        env is not None and len(env.canvas) >= 5,
        env is not None and env.hardware_concurrency > 0,
        env is not None and bool(env.languages),
    ]
    logger.debug(f"JS attestation: {sum(checks)}/3 checks")


async def silent_retry(session: SessionState) -> None:
    delay = jitter(500, 0.3)
    logger.debug(f"Silent retry in {delay:.0f}ms")
    await sleep(delay)


async def token_refresh(session: SessionState) -> None:
    logger.debug("Token refresh requested")
    session.clear_token()


SOFT_ACTIONS: Dict[str, Callable[[SessionState], Awaitable[Any]]] = {
    "pow-lite": pow_lite,
    "js-attestation": js_attestation,
    "silent-retry": silent_retry,
    "token-refresh": token_refresh,
}


async def execute_soft(session: SessionState) -> bool:
    actions = (session.policy or SAFE_DEFAULTS).soft_actions
    logger.info(f"SOFT - executing: {', '.join(actions) or 'nothing'}")

    for name in actions:
        action = SOFT_ACTIONS.get(name)
        if action is None:
            logger.info(f"Unknown soft action: {name}")
            continue
        try:
            await asyncio.wait_for(action(session), timeout=ACTION_TIMEOUT_S)
        except asyncio.TimeoutError:
            logger.warning(f"Soft action {name} exceeded {ACTION_TIMEOUT_S:.0f}s")
    return True
