"""
Settings & Session Unit Tests

Tests environment-driven Settings, fail-safe floors, and SessionConfig
credential resolution (widget ID, legacy tenant ID, signed token).
"""

import time

import pytest

from gatekeeper.schemas.inputs import SessionOpenPayload
from gatekeeper.schemas.outputs import Decision
from gatekeeper.session import InvalidTenantError, SessionConfig, SessionState
from gatekeeper.settings import FailSafeMode, Settings

from tests.conftest import make_token


# =============================================================================
# Settings
# =============================================================================

class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("GATEKEEPER_API_URL", "GATEKEEPER_FAIL_MODE",
                     "GATEKEEPER_CHALLENGE_TIMEOUT", "GATEKEEPER_VERSION"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.fail_mode == FailSafeMode.CLOSED
        assert settings.challenge_timeout_s == 120.0
        assert settings.api_url == "http://localhost:3000/api/widget"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GATEKEEPER_API_URL", "https://api.example.com/widget/")
        monkeypatch.setenv("GATEKEEPER_FAIL_MODE", "Open")
        monkeypatch.setenv("GATEKEEPER_CHALLENGE_TIMEOUT", "30")
        settings = Settings.from_env()
        assert settings.api_url == "https://api.example.com/widget"
        assert settings.fail_mode == FailSafeMode.OPEN
        assert settings.challenge_timeout_s == 30.0

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("GATEKEEPER_FAIL_MODE", "sideways")
        monkeypatch.setenv("GATEKEEPER_CHALLENGE_TIMEOUT", "soon")
        settings = Settings.from_env()
        assert settings.fail_mode == FailSafeMode.CLOSED
        assert settings.challenge_timeout_s == 120.0

    def test_floors(self):
        assert FailSafeMode.CLOSED.floor == Decision.CHALLENGE
        assert FailSafeMode.SOFT.floor == Decision.SOFT
        assert FailSafeMode.OPEN.floor is None


# =============================================================================
# Session Config
# =============================================================================

class TestSessionConfig:

    def test_widget_only(self):
        cfg = SessionConfig.from_payload(SessionOpenPayload(widget_id="wdg_123456", origin="a.com"))
        assert cfg.identifier == "wdg_123456"
        assert cfg.identifier_param == "widgetId"
        assert cfg.token is None

    def test_legacy_tenant(self):
        tenant = "550e8400-e29b-41d4-a716-446655440000"
        cfg = SessionConfig.from_payload(SessionOpenPayload(tenant=tenant, origin="a.com"))
        assert cfg.tenant_id == tenant
        assert cfg.identifier_param == "tenantId"
        assert cfg.debug_allowed is True

    def test_signed_token(self):
        token = make_token({"tid": "tenant-9", "exp": int(time.time()) + 600, "v": 1, "dbg": True, "env": "staging"})
        cfg = SessionConfig.from_payload(SessionOpenPayload(tenant=token, origin="a.com"))
        assert cfg.token == token
        assert cfg.tenant_id == "tenant-9"
        assert cfg.debug is True
        assert cfg.debug_allowed is True
        assert cfg.env == "staging"

    def test_signed_token_without_debug_grant(self):
        token = make_token({"tid": "tenant-9", "exp": int(time.time()) + 600, "v": 1})
        cfg = SessionConfig.from_payload(SessionOpenPayload(tenant=token, origin="a.com", debug=True))
        assert cfg.debug is True
        assert cfg.debug_allowed is False

    def test_expired_token_is_rejected(self):
        token = make_token({"tid": "tenant-9", "exp": int(time.time()) - 7200, "v": 1})
        with pytest.raises(InvalidTenantError):
            SessionConfig.from_payload(SessionOpenPayload(tenant=token, origin="a.com"))

    def test_bad_token_with_widget_still_opens(self):
        cfg = SessionConfig.from_payload(
            SessionOpenPayload(widget_id="wdg_123456", tenant="garbage", origin="a.com")
        )
        assert cfg.tenant_id is None
        assert cfg.identifier == "wdg_123456"

    def test_no_identity(self):
        with pytest.raises(InvalidTenantError):
            SessionConfig.from_payload(SessionOpenPayload(origin="a.com"))


class TestSessionState:

    def test_token_expiry(self):
        state = SessionState(config=SessionConfig(origin="a.com", widget_id="w"))
        assert not state.token_expired(1000)
        state.session_token = "t"
        state.token_expires_at = 1060
        assert not state.token_expired(1060)
        assert state.token_expired(1061)
        state.clear_token()
        assert state.session_token is None
        assert not state.token_expired(5000)

    def test_fresh_ids(self):
        cfg = SessionConfig(origin="a.com", widget_id="w")
        assert SessionState(config=cfg).session_id != SessionState(config=cfg).session_id
