"""
Gatekeeper Test Suite - Shared Pytest Fixtures

This conftest.py provides fixtures for all test categories including:
- An in-memory stand-in for the asyncio Redis client
- Telemetry and environment builders
- A scripted mitigation surface
- Backend clients served by httpx.MockTransport

Usage:
    pytest tests/ -v -s
"""

import asyncio
import base64
import hashlib
import itertools
import json
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from gatekeeper.actions.surface import MitigationSurface
from gatekeeper.api.client import BackendClient
from gatekeeper.schemas.inputs import (
    EnvironmentSnapshot,
    KeyEvent,
    KeyEventType,
    PointerEvent,
    RawSample,
)
from gatekeeper.schemas.outputs import PromptView, RiskBreakdown
from gatekeeper.schemas.policy import Policy
from gatekeeper.session import SessionConfig, SessionState


# =============================================================================
# Redis Stand-ins
# =============================================================================

class FakeRedis:
    """Dict-backed subset of redis.asyncio.Redis used by the storage layer."""

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def incr(self, key: str) -> int:
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    async def expire(self, key: str, ttl: int) -> bool:
        self.ttls[key] = ttl
        return True


class BrokenRedis:
    """Every command fails as if the container were down."""

    def __getattr__(self, name: str):
        async def _fail(*args, **kwargs):
            raise RedisConnectionError("Connection refused")
        return _fail


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


# =============================================================================
# Backend (httpx.MockTransport)
# =============================================================================

Route = Union[Dict[str, Any], int, Callable[[httpx.Request], Any]]


def make_transport(routes: Dict[str, Route], calls: Optional[List[httpx.Request]] = None) -> httpx.MockTransport:
    """
    Build a MockTransport from ``{path: route}``.

    A route is a JSON body (200), a bare status code, or a callable
    receiving the request (sync or async) and returning an httpx.Response.
    Unknown paths answer 404.
    """
    async def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        path = request.url.path.rsplit("/", 1)[-1]
        route = routes.get("/" + path)
        if route is None:
            return httpx.Response(404)
        if callable(route):
            response = route(request)
            if asyncio.iscoroutine(response):
                response = await response
            return response
        if isinstance(route, int):
            return httpx.Response(route)
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


def connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


async def never_answers(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(10)
    return httpx.Response(200, json={})


@pytest.fixture
def backend_factory():
    """
    Usage:
        def test_example(backend_factory):
            client, calls = backend_factory({"/validate": {"action": "allow"}})
    """
    def _factory(routes: Dict[str, Route]):
        calls: List[httpx.Request] = []
        client = BackendClient(
            "http://backend.test/api/widget",
            "3.0.0",
            transport=make_transport(routes, calls),
        )
        return client, calls
    return _factory


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


# =============================================================================
# Mitigation Surface
# =============================================================================

class ScriptedSurface(MitigationSurface):
    """
    Answers prompts from a script of "pass", "fail" or None (unanswered).
    Once the script runs out every prompt is passed.
    Proof-of-work prompts are solved honestly.
    """

    def __init__(self, script: Optional[List[Optional[str]]] = None) -> None:
        self.script = list(script or [])
        self.prompts: List[PromptView] = []
        self.puzzles: List[PromptView] = []
        self.notices: List[str] = []
        self.blocked_reason: Optional[str] = None

    async def ask(self, prompt: PromptView, timeout_s: Optional[float]) -> Optional[int]:
        self.prompts.append(prompt)
        step = self.script.pop(0) if self.script else "pass"
        if step == "pass":
            return prompt.target
        if step == "fail":
            return 0 if prompt.target > 50 else 100
        return None

    async def solve(self, prompt: PromptView, timeout_s: Optional[float]) -> Optional[str]:
        self.puzzles.append(prompt)
        return solve_pow(prompt.nonce, prompt.difficulty)

    def render_block(self, reason: str) -> None:
        self.blocked_reason = reason

    def notify(self, message: str) -> None:
        self.notices.append(message)


def solve_pow(nonce: str, difficulty: int) -> str:
    """Brute-force a proof-of-work solution the way the page does."""
    for counter in itertools.count():
        digest = hashlib.sha256(f"{nonce}:{counter}".encode()).digest()
        if int.from_bytes(digest, "big") >> (256 - difficulty) == 0:
            return str(counter)


@pytest.fixture
def surface() -> ScriptedSurface:
    return ScriptedSurface()


# =============================================================================
# Telemetry Builders
# =============================================================================

def human_environment(**overrides) -> EnvironmentSnapshot:
    """Environment snapshot of an ordinary desktop browser."""
    values = dict(
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        language="en-US",
        languages=("en-US", "en"),
        platform="Win32",
        hardware_concurrency=8,
        device_memory=8.0,
        screen_resolution="1920x1080",
        color_depth=24,
        timezone="Europe/Paris",
        timezone_offset=-60,
        webdriver=False,
        plugins=5,
        canvas="c4a1f09e77b2",
        webgl="ANGLE (NVIDIA GeForce RTX 3060)",
    )
    values.update(overrides)
    return EnvironmentSnapshot(**values)


def headless_environment() -> EnvironmentSnapshot:
    return EnvironmentSnapshot(
        user_agent="Mozilla/5.0 HeadlessChrome/124.0.0.0",
        webdriver=True,
        timezone="UTC",
    )


def typing_events(codes: str, start: float = 1000.0, gap: float = 180.0, dwell: float = 90.0) -> List[KeyEvent]:
    """DOWN/UP pairs for each character of ``codes``."""
    events: List[KeyEvent] = []
    t = start
    for ch in codes:
        code = f"Key{ch.upper()}"
        events.append(KeyEvent(code=code, key=ch, event_type=KeyEventType.DOWN, timestamp=t))
        events.append(KeyEvent(code=code, key=ch, event_type=KeyEventType.UP, timestamp=t + dwell))
        t += gap
    return events


def straight_path(n: int, start: float = 1000.0, step_ms: float = 16.0) -> List[PointerEvent]:
    return [PointerEvent(x=10.0 * i, y=5.0 * i, timestamp=start + i * step_ms) for i in range(n)]


def make_sample(**overrides) -> RawSample:
    values = dict(environment=human_environment(), started_at=0.0, captured_at=1500.0)
    values.update(overrides)
    return RawSample(**values)


def make_token(payload: Dict[str, Any], signature: str = "c2lnbmF0dXJl") -> str:
    """Tenant token ``base64url(json).signature`` (signature is not checked)."""
    body = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
    return f"{body}.{signature}"


# =============================================================================
# Session / Policy Builders
# =============================================================================

def make_policy(**overrides) -> Policy:
    """Policy with instant soft actions, so tests do not wait on pow-lite."""
    values: Dict[str, Any] = {"soft_actions": ["js-attestation"]}
    values.update(overrides)
    return Policy(**values)


def make_session(
    policy: Optional[Policy] = None,
    surface: Optional[MitigationSurface] = None,
    **config,
) -> SessionState:
    values = dict(origin="shop.example.com", widget_id="wdg_4f7c2a9b1e", browsing_id="bsess-1")
    values.update(config)
    return SessionState(
        config=SessionConfig(**values),
        policy=policy if policy is not None else make_policy(),
        environment=human_environment(),
        surface=surface,
    )


class FixedScorer:
    """RiskScorer stand-in returning scripted totals (last one repeats)."""

    def __init__(self, *totals: float) -> None:
        self.totals = list(totals) or [0.0]
        self.calls = 0

    def score(self, features, last_assessed_at=None, now=None) -> RiskBreakdown:
        total = self.totals[min(self.calls, len(self.totals) - 1)]
        self.calls += 1
        return RiskBreakdown(total=total)


class FailingScorer:
    def score(self, features, last_assessed_at=None, now=None) -> RiskBreakdown:
        raise RuntimeError("scorer exploded")
