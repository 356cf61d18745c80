"""
Gatekeeper Decision Orchestrator

Runs the signal-to-decision pipeline for one session:

    Snapshot -> Features -> Risk -> EMA -> Server opinion -> Rules
             -> Hysteresis -> Fail-safe floor -> Action

Guarantees:
- run() and boot() never raise; a pipeline fault records a soft decision,
  marks the session degraded and validated, and logs the traceback
- A validated session (unexpired token) returns its stored decision
- block is terminal
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Set

from gatekeeper.actions.bunker import exit_bunker
from gatekeeper.actions.runner import ActionRunner
from gatekeeper.api.client import BackendClient
from gatekeeper.api.heartbeat import send_heartbeat
from gatekeeper.api.validate import validate
from gatekeeper.models.rules import apply_hysteresis, evaluate
from gatekeeper.models.scoring import RiskScorer, clamp, combine_risk, ema
from gatekeeper.policy_store import PolicyStore
from gatekeeper.processors.buffer import TelemetryBuffer
from gatekeeper.processors.features import FeatureExtractor
from gatekeeper.schemas.inputs import RawSample
from gatekeeper.schemas.outputs import Decision
from gatekeeper.schemas.policy import SAFE_DEFAULTS, Policy, PolicyMode
from gatekeeper.session import SessionState
from gatekeeper.settings import Settings
from gatekeeper.utils.logs import current_session
from gatekeeper.utils.masking import display_id
from gatekeeper.utils.rate_limit import RateLimiter
from gatekeeper.utils.time import now_ms


logger = logging.getLogger(__name__)


# Server actions that override local rules
SERVER_BLOCK = "block"
SERVER_BUNKER = "bunker"


class DecisionOrchestrator:
    """
    Shared, stateless pipeline driver. All per-visitor state lives in the
    SessionState passed to each call.
    """

    def __init__(
        self,
        policy_store: PolicyStore,
        client: BackendClient,
        runner: ActionRunner,
        settings: Settings,
        extractor: Optional[FeatureExtractor] = None,
        scorer: Optional[RiskScorer] = None,
        limiter: Optional[RateLimiter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policy_store = policy_store
        self.client = client
        self.runner = runner
        self.settings = settings
        self.extractor = extractor or FeatureExtractor()
        self.scorer = scorer or RiskScorer()
        self.limiter = limiter or RateLimiter()
        self._clock = clock
        self._background: Set[asyncio.Task] = set()

    # =========================================================================
    # Boot
    # =========================================================================

    async def boot(self, session: SessionState, buffer: TelemetryBuffer) -> Optional[Decision]:
        """
        Resolve the policy, then run the pipeline once.

        Returns None when the kill switch stopped the boot early.
        """
        ctx = current_session.set(session.session_id)
        try:
            resolution = await self.policy_store.fetch(
                session.config.identifier,
                session.config.origin,
                session.config.identifier_param,
            )
            session.policy = resolution.policy
            if resolution.degraded:
                session.degraded = True
            logger.info(
                f"Boot {display_id(session.config.identifier, resolution.policy.privacy.mask_pii)}: "
                f"policy mode={resolution.policy.mode.value} source={resolution.source.value}"
            )

            if resolution.policy.kill_switch:
                logger.info("Kill switch active, monitor only")
                session.ready = True
                session.last_seen = now_ms()
                return None

            self._spawn(send_heartbeat(self.client, session, self.limiter))

            decision = await self.run(session, buffer.snapshot())
            session.ready = True
            session.last_seen = now_ms()
            logger.info(f"Boot complete, decision: {decision.value}")
            return decision
        except Exception:
            logger.exception("Boot failed")
            session.degraded = True
            session.ready = True
            return session.last_decision
        finally:
            current_session.reset(ctx)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # =========================================================================
    # Decision Pipeline
    # =========================================================================

    async def run(self, session: SessionState, sample: RawSample) -> Decision:
        """Produce (and act on) a decision for ``sample``. Never raises."""
        ctx = current_session.set(session.session_id)
        try:
            return await self._run(session, sample)
        finally:
            current_session.reset(ctx)

    async def _run(self, session: SessionState, sample: RawSample) -> Decision:
        policy = session.policy or SAFE_DEFAULTS
        if policy.kill_switch:
            logger.debug("Kill switch active, skipping assessment")
            return Decision.ALLOW

        if session.last_decision == Decision.BLOCK:
            return Decision.BLOCK

        if session.session_validated:
            if not session.token_expired(self._clock()):
                logger.debug("Already validated this session")
                return session.last_decision or Decision.ALLOW
            logger.info("Session token expired, re-assessing")
            session.session_validated = False
            session.clear_token()

        try:
            return await self._pipeline(session, sample, policy)
        except Exception:
            logger.exception("Error in decision pipeline")
            session.degraded = True
            session.last_decision = Decision.SOFT
            session.session_validated = True
            session.last_seen = now_ms()
            return Decision.SOFT

    async def _pipeline(self, session: SessionState, sample: RawSample, policy: Policy) -> Decision:
        if policy.mode != PolicyMode.ENFORCE and session.bunker_active:
            await exit_bunker(session, self.runner.whitelist)

        # Local risk
        now = self._clock()
        features = self.extractor.extract(sample)
        risk = self.scorer.score(features, session.last_assessed_at, now)
        session.last_assessed_at = now
        session.ema_score = ema(session.ema_score, risk.total)

        # Server opinion
        overridden = policy.is_monitor
        result = await validate(self.client, session, features, risk)
        floor: Optional[Decision] = None

        if result is None:
            session.degraded = True
            if not overridden:
                floor = self.settings.fail_mode.floor
        else:
            if result.server_risk is not None:
                server_risk = clamp(result.server_risk)
                session.ema_score = ema(session.ema_score, combine_risk(session.ema_score, server_risk))
                risk = risk.with_network(server_risk)
            if result.token:
                session.session_token = result.token
                if result.expires_in:
                    session.token_expires_at = now + result.expires_in

        risk = risk.with_total(session.ema_score)
        session.last_risk = risk
        session.last_validation = result

        # Server directives
        if result is not None and not overridden:
            action = result.action.lower()
            if action == SERVER_BLOCK:
                return await self._act(session, Decision.BLOCK, result.reason or "Server decision")
            if action == SERVER_BUNKER:
                if policy.bunker_policy.enabled:
                    return await self._act(session, Decision.BUNKER)
                return await self._act(session, Decision.BLOCK, result.reason or "Server decision")

        # Local rules
        previous = session.last_decision
        decision = evaluate(session.ema_score, policy)
        held = apply_hysteresis(previous, decision, session.ema_score, policy.thresholds)
        if held != decision:
            logger.info(f"Hysteresis: holding at {held.value} instead of {decision.value}")
        decision = held
        if floor is not None:
            floored = decision.at_least(floor)
            if floored != decision:
                logger.info(f"Backend unreachable, fail-{self.settings.fail_mode.value} floor: {floored.value}")
            decision = floored

        return await self._act(session, decision)

    async def _act(
        self,
        session: SessionState,
        decision: Decision,
        reason: Optional[str] = None,
    ) -> Decision:
        session.last_decision = decision
        session.last_seen = now_ms()
        logger.info(f"Decision: {decision.value} (score: {session.ema_score:.0f})")

        passed = await self.runner.execute(decision, session, reason)
        if decision == Decision.BLOCK:
            return Decision.BLOCK
        if passed:
            session.session_validated = True
            return decision
        if decision in (Decision.CHALLENGE, Decision.HARD_CHALLENGE):
            session.last_decision = Decision.BLOCK
            await self.runner.execute(Decision.BLOCK, session, "Challenge failed")
            return Decision.BLOCK
        return decision
