"""
Gatekeeper Session State

Explicit per-page-load context passed to every pipeline stage.

- SessionConfig: immutable embedding configuration (who, where)
- SessionState: mutable decision state, written only by the orchestrator
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from gatekeeper.schemas.inputs import EnvironmentSnapshot, SessionOpenPayload
from gatekeeper.schemas.outputs import Decision, RiskBreakdown, ValidationResult
from gatekeeper.schemas.policy import Policy
from gatekeeper.utils.time import is_expired
from gatekeeper.utils.tokens import (
    TokenPayload,
    is_legacy_tenant_id,
    parse_token,
    token_usable,
)

if TYPE_CHECKING:
    from gatekeeper.actions.surface import MitigationSurface


class InvalidTenantError(ValueError):
    """The embedding page supplied neither a widget ID nor a usable tenant."""


# =============================================================================
# Session Config
# =============================================================================

@dataclass(frozen=True)
class SessionConfig:
    """How the page embedded the widget."""
    origin: str
    widget_id: Optional[str] = None
    tenant_id: Optional[str] = None
    token: Optional[str] = None
    token_payload: Optional[TokenPayload] = None
    browsing_id: Optional[str] = None
    url: str = ""
    referrer: str = ""
    debug: bool = False
    env: str = "production"

    @property
    def identifier(self) -> Optional[str]:
        """Policy lookup key: the widget ID, else the tenant ID."""
        return self.widget_id or self.tenant_id

    @property
    def identifier_param(self) -> str:
        return "widgetId" if self.widget_id else "tenantId"

    @property
    def debug_allowed(self) -> bool:
        """Signed tokens must grant dbg; legacy (unsigned) mode may always debug."""
        if self.token_payload is not None:
            return self.token_payload.dbg
        return True

    @classmethod
    def from_payload(cls, payload: SessionOpenPayload) -> SessionConfig:
        """
        Resolve the embedding credentials.

        widget_id alone is enough; a tenant value may be a legacy UUID/CUID
        or a signed ``payload.signature`` token. Raises InvalidTenantError
        when no usable identity is present.
        """
        tenant_id: Optional[str] = None
        token: Optional[str] = None
        token_payload: Optional[TokenPayload] = None
        debug = payload.debug
        env = "production"

        if payload.tenant:
            if is_legacy_tenant_id(payload.tenant):
                tenant_id = payload.tenant
            else:
                parsed = parse_token(payload.tenant)
                if parsed is not None and token_usable(parsed):
                    token = payload.tenant
                    token_payload = parsed
                    tenant_id = parsed.tid
                    debug = debug or parsed.dbg
                    env = parsed.env or env
                elif not payload.widget_id:
                    raise InvalidTenantError("Invalid tenant token format")

        if not payload.widget_id and not tenant_id:
            raise InvalidTenantError("Missing widget_id or tenant")

        return cls(
            origin=payload.origin,
            widget_id=payload.widget_id,
            tenant_id=tenant_id,
            token=token,
            token_payload=token_payload,
            browsing_id=payload.browsing_id,
            url=payload.url,
            referrer=payload.referrer,
            debug=debug,
            env=env,
        )


# =============================================================================
# Session State
# =============================================================================

@dataclass
class SessionState:
    """Decision state for one page load."""
    config: SessionConfig
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    policy: Optional[Policy] = None
    session_validated: bool = False
    session_token: Optional[str] = None
    token_expires_at: Optional[float] = None   # epoch seconds
    last_decision: Optional[Decision] = None
    last_risk: Optional[RiskBreakdown] = None
    last_validation: Optional[ValidationResult] = None
    ema_score: float = 0.0
    bunker_active: bool = False
    degraded: bool = False
    ready: bool = False
    last_seen: float = 0.0                      # epoch ms
    last_assessed_at: Optional[float] = None    # epoch seconds
    environment: Optional[EnvironmentSnapshot] = None
    surface: Optional[MitigationSurface] = field(default=None, repr=False)

    def token_expired(self, now: Optional[float] = None) -> bool:
        return self.token_expires_at is not None and is_expired(self.token_expires_at, now)

    def clear_token(self) -> None:
        self.session_token = None
        self.token_expires_at = None
