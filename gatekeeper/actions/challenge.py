"""
Challenge Actions

Minimal-friction slider challenges ("move the slider to N").

- challenge: one cognitive-lite prompt, target 30-70, tolerance 5
- hard_challenge: every action in policy.challengeActions, tolerance 3

An unanswered prompt counts as a failure.
"""

import logging
import random
from typing import Optional

from gatekeeper.actions.surface import MitigationSurface, new_prompt
from gatekeeper.schemas.policy import SAFE_DEFAULTS
from gatekeeper.session import SessionState

logger = logging.getLogger(__name__)

TARGET_MIN = 30
TARGET_MAX = 70
TOLERANCE = 5
HARD_TOLERANCE = 3

# Challenge kinds the engine can present; anything else falls back to cognitive-lite
KNOWN_CHALLENGES = frozenset({"cognitive-lite"})


async def cognitive_lite(
    surface: MitigationSurface,
    tolerance: int,
    timeout_s: Optional[float],
    attempt: int = 1,
) -> bool:
    target = random.randint(TARGET_MIN, TARGET_MAX)
    prompt = new_prompt("challenge", target, attempt=attempt)
    value = await surface.ask(prompt, timeout_s)
    passed = value is not None and abs(value - target) <= tolerance
    logger.info(
        f"Cognitive-lite result: {'PASS' if passed else 'FAIL'} "
        f"(value={value}, target={target})"
    )
    return passed


async def execute_challenge(
    session: SessionState,
    hard: bool = False,
    timeout_s: Optional[float] = 120.0,
) -> bool:
    """Returns True when every required prompt was passed."""
    policy = session.policy or SAFE_DEFAULTS
    actions = list(policy.challenge_actions) if hard else ["cognitive-lite"]
    tolerance = HARD_TOLERANCE if hard else TOLERANCE

    logger.info(f"{'HARD_' if hard else ''}CHALLENGE - actions: {', '.join(actions) or 'none'}")
    if not actions:
        return True

    surface = session.surface
    if surface is None:
        logger.warning("No mitigation surface attached, challenge cannot be presented")
        return False

    if policy.ui.show_toast_on_challenge:
        surface.notify("Please confirm you are human")

    for attempt, name in enumerate(actions, start=1):
        if name not in KNOWN_CHALLENGES:
            logger.info(f"Challenge action {name} unavailable, using cognitive-lite")
        if not await cognitive_lite(surface, tolerance, timeout_s, attempt=attempt):
            return False
    return True
