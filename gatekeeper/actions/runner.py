"""
Action State Machine

Dispatches a Decision to its executor. The executor table must cover
every Decision; construction fails otherwise.

    allow          -> no effect                         -> passed
    soft           -> policy softActions                -> passed
    challenge      -> cognitive-lite, tolerance 5       -> pass/fail
    hard_challenge -> policy challengeActions, tol. 3   -> pass/fail
    bunker         -> whitelist or strict gate          -> passes eventually
    block          -> block screen                      -> terminal
"""

import logging
from typing import Awaitable, Callable, Dict, Optional

from gatekeeper.actions.allow import execute_allow
from gatekeeper.actions.block import DEFAULT_BLOCK_REASON, execute_block
from gatekeeper.actions.bunker import execute_bunker
from gatekeeper.actions.challenge import execute_challenge
from gatekeeper.actions.soft import execute_soft
from gatekeeper.schemas.outputs import Decision
from gatekeeper.session import SessionState
from storage.whitelist import WhitelistRepository

logger = logging.getLogger(__name__)

Executor = Callable[[SessionState, Optional[str]], Awaitable[bool]]


class ActionRunner:
    """Executes mitigations for decisions."""

    def __init__(
        self,
        whitelist: WhitelistRepository,
        challenge_timeout_s: Optional[float] = 120.0,
    ) -> None:
        self.whitelist = whitelist
        self.challenge_timeout_s = challenge_timeout_s
        self._executors: Dict[Decision, Executor] = {
            Decision.ALLOW: self._allow,
            Decision.SOFT: self._soft,
            Decision.CHALLENGE: self._challenge,
            Decision.HARD_CHALLENGE: self._hard_challenge,
            Decision.BUNKER: self._bunker,
            Decision.BLOCK: self._block,
        }
        missing = set(Decision) - set(self._executors)
        if missing:
            raise ValueError(f"No executor for decisions: {sorted(d.value for d in missing)}")

    async def execute(
        self,
        decision: Decision,
        session: SessionState,
        reason: Optional[str] = None,
    ) -> bool:
        """Run the mitigation for ``decision``. Returns True when passed."""
        return await self._executors[decision](session, reason)

    # -------------------------------------------------------------------------
    # Executors
    # -------------------------------------------------------------------------

    async def _allow(self, session: SessionState, reason: Optional[str]) -> bool:
        return await execute_allow(session)

    async def _soft(self, session: SessionState, reason: Optional[str]) -> bool:
        return await execute_soft(session)

    async def _challenge(self, session: SessionState, reason: Optional[str]) -> bool:
        return await execute_challenge(session, hard=False, timeout_s=self.challenge_timeout_s)

    async def _hard_challenge(self, session: SessionState, reason: Optional[str]) -> bool:
        return await execute_challenge(session, hard=True, timeout_s=self.challenge_timeout_s)

    async def _bunker(self, session: SessionState, reason: Optional[str]) -> bool:
        return await execute_bunker(session, self.whitelist)

    async def _block(self, session: SessionState, reason: Optional[str]) -> bool:
        return execute_block(session, reason or DEFAULT_BLOCK_REASON)
