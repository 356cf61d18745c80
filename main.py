"""
Gatekeeper Decision Engine API

FastAPI application exposing:
- POST   /sessions                    → 201 {session_id}
- POST   /sessions/{id}/telemetry     → 204 (no body)
- POST   /sessions/{id}/assess        → 202 status
- GET    /sessions/{id}/status        → status JSON
- GET    /sessions/{id}/prompt        → pending prompt / notices
- POST   /sessions/{id}/prompt        → 204 (answer accepted)
- GET    /sessions/{id}/debug         → debug snapshot (authorized sessions only)
- DELETE /sessions/{id}               → 204

Telemetry ingestion is rate limited via Redis.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from gatekeeper.actions.runner import ActionRunner
from gatekeeper.actions.surface import PromptMismatchError
from gatekeeper.api.client import BackendClient
from gatekeeper.orchestrator import DecisionOrchestrator
from gatekeeper.policy_store import PolicyStore
from gatekeeper.schemas.inputs import PromptAnswer, SessionOpenPayload, TelemetryBatch
from gatekeeper.schemas.outputs import DebugSnapshot, SessionOpened, SessionStatus, SurfaceView
from gatekeeper.service import DebugNotAllowedError, SessionNotFoundError, SessionService
from gatekeeper.session import InvalidTenantError
from gatekeeper.settings import Settings
from gatekeeper.utils import logs
from storage.connection import get_redis_client, verify_connection
from storage.policy_cache import PolicyCacheRepository
from storage.rate_limits import IngestRateLimiter
from storage.whitelist import WhitelistRepository


# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Application state container."""
    settings: Optional[Settings] = None
    redis = None
    transport = None  # httpx transport override (tests)
    client: Optional[BackendClient] = None
    service: Optional[SessionService] = None


state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Gatekeeper API...")
    state.settings = Settings.from_env()
    if state.redis is None:
        state.redis = get_redis_client()
        await verify_connection(state.redis)

    logs.install()
    state.client = BackendClient(state.settings.api_url, state.settings.version, transport=state.transport)
    orchestrator = DecisionOrchestrator(
        policy_store=PolicyStore(state.client, PolicyCacheRepository(state.redis)),
        client=state.client,
        runner=ActionRunner(
            WhitelistRepository(state.redis),
            challenge_timeout_s=state.settings.challenge_timeout_s,
        ),
        settings=state.settings,
    )
    state.service = SessionService(orchestrator, IngestRateLimiter(state.redis))
    logger.info(f"Gatekeeper ready (fail mode: {state.settings.fail_mode.value})")

    yield

    # Shutdown
    logger.info("Shutting down Gatekeeper API...")
    await state.service.shutdown()
    await state.client.aclose()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Gatekeeper",
    description="Adaptive bot-mitigation decision engine",
    version="3.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _not_found(e: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    version = state.settings.version if state.settings else "3.0.0"
    return {"status": "healthy", "version": version}


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    from fastapi.responses import RedirectResponse
    return RedirectResponse(url="/docs")


# =============================================================================
# Session Lifecycle
# =============================================================================

@app.post("/sessions", response_model=SessionOpened, status_code=status.HTTP_201_CREATED)
async def open_session(payload: SessionOpenPayload):
    """
    Open a page-load session.

    - Accepts widget_id and/or a tenant token / legacy tenant ID
    - Rejects unusable credentials with 422
    """
    try:
        session = state.service.open(payload)
    except InvalidTenantError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    return SessionOpened(session_id=session.session_id)


@app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: str):
    """Cancel pending work and destroy the session."""
    try:
        await state.service.close(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Telemetry & Assessment
# =============================================================================

@app.post("/sessions/{session_id}/telemetry", status_code=status.HTTP_204_NO_CONTENT)
async def ingest_telemetry(session_id: str, batch: TelemetryBatch):
    """
    Append collector events to the session ring buffer.

    - Never returns security decisions
    """
    try:
        accepted = await state.service.ingest(session_id, batch)
    except SessionNotFoundError as e:
        raise _not_found(e)

    if not accepted:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded (max 20 batches/sec)"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/sessions/{session_id}/assess",
    response_model=SessionStatus,
    status_code=status.HTTP_202_ACCEPTED,
)
async def assess(session_id: str):
    """Start the decision pipeline in the background (idempotent)."""
    try:
        return state.service.assess(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)


@app.get("/sessions/{session_id}/status", response_model=SessionStatus)
async def session_status(session_id: str):
    """Read-only status: ready, last decision, last seen, version, degraded."""
    try:
        return state.service.status(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)


# =============================================================================
# Prompts
# =============================================================================

@app.get("/sessions/{session_id}/prompt", response_model=SurfaceView)
async def get_prompt(session_id: str):
    """Pending challenge / bunker gate prompt, notices and block state."""
    try:
        return state.service.surface_view(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)


@app.post("/sessions/{session_id}/prompt", status_code=status.HTTP_204_NO_CONTENT)
async def answer_prompt(session_id: str, answer: PromptAnswer):
    """Submit the slider value or proof-of-work solution for the pending prompt."""
    try:
        state.service.answer(session_id, answer)
    except SessionNotFoundError as e:
        raise _not_found(e)
    except PromptMismatchError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Debug
# =============================================================================

@app.get("/sessions/{session_id}/debug", response_model=DebugSnapshot)
async def debug_snapshot(session_id: str):
    """Debug view, only when the tenant token (or legacy mode) allows it."""
    try:
        return state.service.debug(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    except DebugNotAllowedError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
