"""
Gatekeeper Session Service

Hosts one SessionState, TelemetryBuffer and PromptSurface per page load
and drives the orchestrator for them. This is the layer main.py talks to;
it raises domain exceptions that the API maps to HTTP errors.

Sessions idle for longer than SESSION_TTL are evicted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from gatekeeper.actions.surface import PromptSurface
from gatekeeper.orchestrator import DecisionOrchestrator
from gatekeeper.processors.buffer import TelemetryBuffer
from gatekeeper.schemas.inputs import PromptAnswer, SessionOpenPayload, TelemetryBatch
from gatekeeper.schemas.outputs import DebugSnapshot, SessionStatus, SurfaceView
from gatekeeper.session import SessionConfig, SessionState
from gatekeeper.utils.logs import RecentLogHandler, recent_logs
from gatekeeper.utils.masking import mask_id
from gatekeeper.utils.time import now_ms
from storage.rate_limits import IngestRateLimiter


logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class SessionNotFoundError(Exception):
    """Raised when a session ID is unknown or was evicted."""
    pass


class DebugNotAllowedError(Exception):
    """Raised when debug output is requested but not authorized."""
    pass


# =============================================================================
# Managed Session
# =============================================================================

@dataclass
class ManagedSession:
    state: SessionState
    buffer: TelemetryBuffer
    surface: PromptSurface
    task: Optional[asyncio.Task] = None
    touched_at: float = field(default_factory=now_ms)

    def touch(self) -> None:
        self.touched_at = now_ms()


class SessionService:
    """In-process registry of page-load sessions."""

    SESSION_TTL: int = 1800  # 30 minutes

    def __init__(
        self,
        orchestrator: DecisionOrchestrator,
        rate_limiter: IngestRateLimiter,
        log_ring: RecentLogHandler = recent_logs,
    ) -> None:
        self.orchestrator = orchestrator
        self.rate_limiter = rate_limiter
        self.log_ring = log_ring
        self._sessions: Dict[str, ManagedSession] = {}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self, payload: SessionOpenPayload) -> SessionState:
        """Create a session. Raises InvalidTenantError for unusable credentials."""
        self._evict_idle()
        config = SessionConfig.from_payload(payload)
        surface = PromptSurface()
        state = SessionState(config=config, environment=payload.environment, surface=surface)
        buffer = TelemetryBuffer(environment=payload.environment, started_at=payload.started_at)
        self._sessions[state.session_id] = ManagedSession(state=state, buffer=buffer, surface=surface)
        logger.info(
            f"Session {state.session_id} opened for {mask_id(config.identifier)} "
            f"({'signed_token' if config.token else 'legacy'})"
        )
        return state

    def get(self, session_id: str) -> ManagedSession:
        managed = self._sessions.get(session_id)
        if managed is None:
            raise SessionNotFoundError(f"Unknown session {session_id}")
        return managed

    async def close(self, session_id: str) -> None:
        managed = self._sessions.pop(session_id, None)
        if managed is None:
            raise SessionNotFoundError(f"Unknown session {session_id}")
        await self._teardown(managed)
        pointer, keys, activity = managed.buffer.counts
        logger.info(
            f"Session {session_id} destroyed "
            f"(buffered: {pointer} pointer, {keys} key, {activity} activity)"
        )

    async def shutdown(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for managed in sessions:
            await self._teardown(managed)

    async def _teardown(self, managed: ManagedSession) -> None:
        managed.surface.close()
        task = managed.task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _evict_idle(self) -> None:
        cutoff = now_ms() - self.SESSION_TTL * 1000
        stale = [sid for sid, m in self._sessions.items() if m.touched_at < cutoff]
        for sid in stale:
            managed = self._sessions.pop(sid)
            managed.surface.close()
            if managed.task is not None and not managed.task.done():
                managed.task.cancel()
        if stale:
            logger.info(f"Evicted {len(stale)} idle sessions")

    # -------------------------------------------------------------------------
    # Telemetry & Assessment
    # -------------------------------------------------------------------------

    async def ingest(self, session_id: str, batch: TelemetryBatch) -> bool:
        """Append a batch. Returns False when the session is rate limited."""
        managed = self.get(session_id)
        if not await self.rate_limiter.check_telemetry(session_id):
            return False
        managed.buffer.append(batch)
        managed.touch()
        return True

    def assess(self, session_id: str) -> SessionStatus:
        """
        Start boot (first call) or a re-assessment in the background.
        A call while a pipeline is already running is a no-op.
        """
        managed = self.get(session_id)
        managed.touch()
        if managed.task is None:
            managed.task = asyncio.create_task(
                self.orchestrator.boot(managed.state, managed.buffer)
            )
        elif managed.task.done() and managed.state.ready:
            managed.task = asyncio.create_task(
                self.orchestrator.run(managed.state, managed.buffer.snapshot())
            )
        return self.status(session_id)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def status(self, session_id: str) -> SessionStatus:
        state = self.get(session_id).state
        return SessionStatus(
            ready=state.ready,
            last_decision=state.last_decision,
            last_seen=state.last_seen,
            version=self.orchestrator.settings.version,
            degraded=state.degraded,
        )

    def surface_view(self, session_id: str) -> SurfaceView:
        surface = self.get(session_id).surface
        return SurfaceView(
            prompt=surface.pending,
            notices=list(surface.notices),
            blocked_reason=surface.blocked_reason,
        )

    def answer(self, session_id: str, answer: PromptAnswer) -> None:
        """Raises PromptMismatchError when ``answer`` is not for the pending prompt."""
        managed = self.get(session_id)
        managed.touch()
        managed.surface.answer(answer)

    def debug(self, session_id: str) -> DebugSnapshot:
        managed = self.get(session_id)
        state = managed.state
        cfg = state.config
        requested = cfg.debug or (state.policy is not None and state.policy.ui.show_badge)
        if not requested or not cfg.debug_allowed:
            logger.info("Debug requested but not authorized")
            raise DebugNotAllowedError("Debug output is not enabled for this session")

        return DebugSnapshot(
            version=self.orchestrator.settings.version,
            tenant_id=mask_id(cfg.tenant_id or cfg.widget_id),
            mode=state.policy.mode.value if state.policy else "unknown",
            env=cfg.env,
            risk_score=round(state.ema_score),
            decision=state.last_decision,
            thresholds=state.policy.thresholds.model_dump() if state.policy else None,
            risk=state.last_risk,
            bunker_active=state.bunker_active,
            degraded=state.degraded,
            session_validated=state.session_validated,
            logs=self.log_ring.entries(session_id),
        )
