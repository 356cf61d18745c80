"""
Gatekeeper Policy Schema

Remote policy document controlling thresholds, modes and mitigation lists.
The wire format is camelCase JSON; Python attributes are snake_case.

Misconfigured documents are repaired rather than rejected:
- Unordered or incomplete thresholds are replaced by DEFAULT_THRESHOLDS
- Unknown modes fall back to adaptive
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel


logger = logging.getLogger(__name__)


class PolicyMode(str, Enum):
    """Operating mode of a tenant policy."""
    MONITOR = "monitor"
    ADAPTIVE = "adaptive"
    ENFORCE = "enforce"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# =============================================================================
# Policy Sections
# =============================================================================

class Thresholds(_WireModel):
    """Score cut-offs, strictly increasing: allow < soft < challenge < bunker."""
    allow: float = Field(35.0, ge=0.0, le=100.0, description="Below this: allow")
    soft: float = Field(60.0, ge=0.0, le=100.0, description="Below this: soft")
    challenge: float = Field(80.0, ge=0.0, le=100.0, description="Below this: challenge")
    bunker: float = Field(92.0, ge=0.0, le=100.0, description="Below this: hard challenge")

    @model_validator(mode="after")
    def _check_order(self) -> Thresholds:
        if not (self.allow < self.soft < self.challenge < self.bunker):
            raise ValueError(
                f"thresholds must be strictly increasing, got "
                f"{self.allow}/{self.soft}/{self.challenge}/{self.bunker}"
            )
        return self


class BunkerPolicy(_WireModel):
    enabled: bool = False
    ttl_seconds: int = Field(900, ge=0, description="Whitelist lifetime")


class Sampling(_WireModel):
    telemetry: float = Field(0.25, ge=0.0, le=1.0)
    full_signals: float = Field(0.10, ge=0.0, le=1.0)


class Privacy(_WireModel):
    mask_pii: bool = Field(True, alias="maskPII", description="Mask identifiers in logs")


class Timeouts(_WireModel):
    """Network deadlines in milliseconds."""
    config_ms: int = Field(800, gt=0)
    validate_ms: int = Field(1200, gt=0)
    ping_ms: int = Field(400, gt=0)


class UISettings(_WireModel):
    show_badge: bool = False
    show_toast_on_challenge: bool = True


DEFAULT_THRESHOLDS = Thresholds()


# =============================================================================
# Policy
# =============================================================================

class Policy(_WireModel):
    """Tenant policy document, as served by GET /config."""
    mode: PolicyMode = Field(PolicyMode.ADAPTIVE, description="monitor, adaptive or enforce")
    thresholds: Thresholds = Field(default_factory=Thresholds)
    soft_actions: List[str] = Field(
        default_factory=lambda: ["pow-lite", "js-attestation", "silent-retry"]
    )
    challenge_actions: List[str] = Field(default_factory=lambda: ["cognitive-lite"])
    bunker_policy: BunkerPolicy = Field(default_factory=BunkerPolicy)
    sampling: Sampling = Field(default_factory=Sampling)
    privacy: Privacy = Field(default_factory=Privacy)
    timeouts: Timeouts = Field(default_factory=Timeouts)
    ui: UISettings = Field(default_factory=UISettings)
    kill_switch: bool = Field(False, description="Disable all mitigation")
    updated_at: str = Field("", description="Server-side revision timestamp")
    ttl_seconds: int = Field(300, ge=0, description="Cache freshness window")

    @property
    def is_monitor(self) -> bool:
        return self.mode == PolicyMode.MONITOR

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


SAFE_DEFAULTS = Policy()


def parse_policy(data: Any) -> Optional[Policy]:
    """
    Validate a policy document received from the network or the cache.

    Returns None when the document is structurally unusable (not an object,
    missing thresholds object, non-string mode). Repairable faults are fixed
    with a warning.
    """
    if not isinstance(data, dict):
        return None
    if not isinstance(data.get("thresholds"), dict) or not isinstance(data.get("mode"), str):
        return None

    doc = dict(data)
    if doc["mode"] not in {m.value for m in PolicyMode}:
        logger.warning(f"Unknown policy mode '{doc['mode']}', falling back to adaptive")
        doc["mode"] = PolicyMode.ADAPTIVE.value

    thresholds = doc["thresholds"]
    if any(k not in thresholds for k in ("allow", "soft", "challenge", "bunker")):
        logger.warning("Incomplete policy thresholds, using defaults")
        doc["thresholds"] = DEFAULT_THRESHOLDS.model_dump()
    else:
        try:
            Thresholds.model_validate(thresholds)
        except ValidationError as e:
            logger.warning(f"Invalid policy thresholds, using defaults: {e.errors()[0]['msg']}")
            doc["thresholds"] = DEFAULT_THRESHOLDS.model_dump()

    try:
        return Policy.model_validate(doc)
    except ValidationError as e:
        logger.warning(f"Rejected policy document: {e.error_count()} validation errors")
        return None
