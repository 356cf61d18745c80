"""
Gatekeeper Output Schemas

This module defines Pydantic V2 models for the decision engine outputs:
the Decision enum, the RiskBreakdown contract, the backend validation
result and the session status views returned by the service.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================

class Decision(str, Enum):
    """Graduated mitigation decision, ordered by severity."""
    ALLOW = "allow"
    SOFT = "soft"
    CHALLENGE = "challenge"
    HARD_CHALLENGE = "hard_challenge"
    BUNKER = "bunker"
    BLOCK = "block"

    @property
    def severity(self) -> int:
        """Rank used for hysteresis and fail-safe floors (allow=0 ... block=5)."""
        return _SEVERITY[self]

    def at_least(self, floor: Decision) -> Decision:
        """Return the more severe of this decision and ``floor``."""
        return self if self.severity >= floor.severity else floor


_SEVERITY: Dict[Decision, int] = {d: i for i, d in enumerate(Decision)}


# =============================================================================
# Risk Breakdown
# =============================================================================

class RiskComponents(BaseModel):
    """Named component scores, each in [0, 100]."""
    model_config = ConfigDict(frozen=True)

    fingerprint: float = Field(0.0, ge=0.0, le=100.0)
    behavior: float = Field(0.0, ge=0.0, le=100.0)
    automation: float = Field(0.0, ge=0.0, le=100.0)
    integrity: float = Field(0.0, ge=0.0, le=100.0)
    velocity: float = Field(0.0, ge=0.0, le=100.0)
    network: float = Field(0.0, ge=0.0, le=100.0)


class RiskBreakdown(BaseModel):
    """
    Structured risk score produced once per assessment.

    Immutable: smoothing and server enrichment produce new instances.
    """
    model_config = ConfigDict(frozen=True)

    total: float = Field(..., ge=0.0, le=100.0, description="Weighted total risk")
    components: RiskComponents = Field(default_factory=RiskComponents)
    reasons: Tuple[str, ...] = Field((), description="Rationale codes")

    def with_total(self, total: float) -> RiskBreakdown:
        return self.model_copy(update={"total": total})

    def with_network(self, network: float) -> RiskBreakdown:
        components = self.components.model_copy(update={"network": network})
        return self.model_copy(update={"components": components})


# =============================================================================
# Backend Validation Result
# =============================================================================

class ValidationResult(BaseModel):
    """Server opinion returned by POST /validate."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    action: str = Field(..., description="Server action (allow, block, bunker, ...)")
    token: Optional[str] = Field(None, description="Session token issued by the server")
    expires_in: Optional[int] = Field(None, ge=0, description="Token lifetime (seconds)")
    server_risk: Optional[float] = Field(None, description="Server risk score (0-100)")
    flags: List[str] = Field(default_factory=list)
    reason: Optional[str] = Field(None)
    score: Optional[float] = Field(None)


# =============================================================================
# Service Views
# =============================================================================

class SessionStatus(BaseModel):
    """Read-only status exposed to the embedding page."""
    ready: bool = Field(..., description="Boot finished")
    last_decision: Optional[Decision] = Field(None, description="Latest decision")
    last_seen: float = Field(0.0, description="Epoch ms of the latest pipeline run")
    version: str = Field(..., description="Engine version")
    degraded: bool = Field(False, description="Reduced-trust mode was entered")


class PromptView(BaseModel):
    """Pending challenge, bunker gate or proof-of-work prompt."""
    prompt_id: str
    kind: str = Field(..., description="challenge, gate or pow")
    target: int = Field(0, ge=0, le=100, description="Slider target value")
    nonce: Optional[str] = Field(None, description="Proof-of-work nonce")
    difficulty: Optional[int] = Field(
        None,
        ge=1,
        description="Leading zero bits required in sha256(nonce:solution)"
    )
    attempt: int = Field(1, ge=1)
    retry: bool = Field(False, description="Previous gate attempt failed")


class SessionOpened(BaseModel):
    """Response for POST /sessions."""
    session_id: str


class DebugSnapshot(BaseModel):
    """Debug view, only exposed when the tenant token allows it."""
    version: str
    tenant_id: str = Field(..., description="Masked tenant identifier")
    mode: str
    env: str
    risk_score: int
    decision: Optional[Decision] = None
    thresholds: Optional[Dict[str, float]] = None
    risk: Optional[RiskBreakdown] = None
    bunker_active: bool = False
    degraded: bool = False
    session_validated: bool = False
    logs: List[Dict[str, str]] = Field(default_factory=list)


class SurfaceView(BaseModel):
    """What the page should currently present for a session."""
    prompt: Optional[PromptView] = Field(None, description="Pending prompt, if any")
    notices: List[str] = Field(default_factory=list, description="Toast messages")
    blocked_reason: Optional[str] = Field(None, description="Set once the session is blocked")
