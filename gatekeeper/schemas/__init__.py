"""
Gatekeeper Schemas

Public exports for input, output and policy Pydantic models.
"""

# Input schemas - Raw events
from gatekeeper.schemas.inputs import (
    ClipboardEvent,
    ClipboardEventType,
    KeyEvent,
    KeyEventType,
    MotionEvent,
    PointerEvent,
    PointerEventType,
    ScrollEvent,
    TouchEvent,
)

# Input schemas - Snapshots and service payloads
from gatekeeper.schemas.inputs import (
    EnvironmentSnapshot,
    PromptAnswer,
    RawSample,
    SessionOpenPayload,
    TelemetryBatch,
)

# Output schemas
from gatekeeper.schemas.outputs import (
    DebugSnapshot,
    Decision,
    PromptView,
    RiskBreakdown,
    RiskComponents,
    SessionOpened,
    SessionStatus,
    SurfaceView,
    ValidationResult,
)

# Policy
from gatekeeper.schemas.policy import (
    DEFAULT_THRESHOLDS,
    SAFE_DEFAULTS,
    Policy,
    PolicyMode,
    Thresholds,
    parse_policy,
)

__all__ = [
    # Input - Events
    "PointerEventType",
    "KeyEventType",
    "ClipboardEventType",
    "PointerEvent",
    "KeyEvent",
    "ScrollEvent",
    "TouchEvent",
    "MotionEvent",
    "ClipboardEvent",
    # Input - Snapshots / payloads
    "EnvironmentSnapshot",
    "RawSample",
    "SessionOpenPayload",
    "TelemetryBatch",
    "PromptAnswer",
    # Output
    "Decision",
    "RiskComponents",
    "RiskBreakdown",
    "ValidationResult",
    "SessionStatus",
    "SessionOpened",
    "PromptView",
    "SurfaceView",
    "DebugSnapshot",
    # Policy
    "PolicyMode",
    "Thresholds",
    "Policy",
    "DEFAULT_THRESHOLDS",
    "SAFE_DEFAULTS",
    "parse_policy",
]
