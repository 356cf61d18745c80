"""
Gatekeeper Input Schemas - Passive Telemetry Ingestion

This module defines Pydantic V2 models for:
- Raw interaction events (pointer, keyboard, scroll, touch, motion, clipboard)
- The one-shot environment snapshot reported by the embedding page
- RawSample, the frozen snapshot the feature extractor reads
- Service payloads (session open, telemetry batches, prompt answers)
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class PointerEventType(str, Enum):
    """Pointer event type for movement/click tracking."""
    MOVE = "MOVE"
    CLICK = "CLICK"


class KeyEventType(str, Enum):
    """Keyboard event type for dwell/flight time calculation."""
    DOWN = "DOWN"
    UP = "UP"


class ClipboardEventType(str, Enum):
    """Clipboard interaction type."""
    COPY = "COPY"
    PASTE = "PASTE"


# =============================================================================
# Raw Event Models
# =============================================================================

class PointerEvent(BaseModel):
    """Single pointer event captured by the collector."""
    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="X coordinate in CSS pixels")
    y: float = Field(..., description="Y coordinate in CSS pixels")
    event_type: PointerEventType = Field(PointerEventType.MOVE, description="MOVE or CLICK event")
    timestamp: float = Field(..., description="Client clock timestamp in milliseconds")


class KeyEvent(BaseModel):
    """Single keyboard event. Only the physical key code is kept, never the character."""
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., description="Physical key code (e.g. KeyA)")
    key: str = Field("", description="Logical key name, used only to skip modifiers")
    event_type: KeyEventType = Field(..., description="DOWN or UP event")
    timestamp: float = Field(..., description="Client clock timestamp in milliseconds")


class ScrollEvent(BaseModel):
    """Vertical scroll offset sample."""
    model_config = ConfigDict(frozen=True)

    y: float = Field(..., description="Vertical scroll offset in pixels")
    timestamp: float = Field(..., description="Client clock timestamp in milliseconds")


class TouchEvent(BaseModel):
    """Touch point reported on touchstart."""
    model_config = ConfigDict(frozen=True)

    force: Optional[float] = Field(None, description="Touch pressure (0-1), if reported")
    radius_x: Optional[float] = Field(None, description="Contact ellipse X radius")
    radius_y: Optional[float] = Field(None, description="Contact ellipse Y radius")
    timestamp: float = Field(..., description="Client clock timestamp in milliseconds")


class MotionEvent(BaseModel):
    """Device-motion acceleration triple."""
    model_config = ConfigDict(frozen=True)

    x: float = Field(0.0, description="Acceleration along X")
    y: float = Field(0.0, description="Acceleration along Y")
    z: float = Field(0.0, description="Acceleration along Z")
    timestamp: float = Field(..., description="Client clock timestamp in milliseconds")


class ClipboardEvent(BaseModel):
    """Copy or paste occurrence (content is never captured)."""
    model_config = ConfigDict(frozen=True)

    event_type: ClipboardEventType = Field(..., description="COPY or PASTE")
    timestamp: float = Field(..., description="Client clock timestamp in milliseconds")


# =============================================================================
# Environment Snapshot
# =============================================================================

class EnvironmentSnapshot(BaseModel):
    """
    Browser/environment characteristics, captured once per page load.
    Canvas and WebGL values are opaque hashes produced by the collector.
    """
    model_config = ConfigDict(frozen=True)

    user_agent: str = Field("", description="Raw user agent string")
    language: str = Field("", description="Primary navigator language")
    languages: Tuple[str, ...] = Field((), description="navigator.languages")
    platform: str = Field("", description="navigator.platform")
    hardware_concurrency: int = Field(0, description="Logical CPU count")
    device_memory: Optional[float] = Field(None, description="Device memory (GB)")
    screen_resolution: str = Field("", description="WIDTHxHEIGHT")
    color_depth: int = Field(0, description="Screen colour depth")
    timezone: str = Field("", description="IANA timezone name")
    timezone_offset: int = Field(0, description="Minutes offset from UTC")
    webdriver: bool = Field(False, description="navigator.webdriver flag")
    plugins: int = Field(0, description="Plugin count")
    canvas: str = Field("", description="Opaque canvas fingerprint")
    webgl: str = Field("", description="Opaque WebGL vendor/renderer fingerprint")
    touch_support: bool = Field(False, description="Touch events available")
    cookie_enabled: bool = Field(True, description="Cookies enabled")
    storage_available: bool = Field(True, description="local + session storage usable")
    csp_blocked: bool = Field(False, description="Content-Security-Policy blocked a probe")
    do_not_track: Optional[str] = Field(None, description="DNT header value")


# =============================================================================
# Raw Sample (frozen snapshot of the telemetry ring buffer)
# =============================================================================

class RawSample(BaseModel):
    """
    Read-only snapshot of the collector's bounded ring buffers.

    Produced by TelemetryBuffer.snapshot(); the feature extractor never sees
    the live buffer.
    """
    model_config = ConfigDict(frozen=True)

    pointer: Tuple[PointerEvent, ...] = Field((), description="Pointer moves and clicks")
    keys: Tuple[KeyEvent, ...] = Field((), description="Key down/up events")
    scrolls: Tuple[ScrollEvent, ...] = Field((), description="Scroll offsets")
    touches: Tuple[TouchEvent, ...] = Field((), description="Touch points")
    motions: Tuple[MotionEvent, ...] = Field((), description="Device-motion triples")
    clipboard: Tuple[ClipboardEvent, ...] = Field((), description="Copy/paste occurrences")
    activity: Tuple[float, ...] = Field((), description="Client ms of every interaction")
    environment: EnvironmentSnapshot = Field(default_factory=EnvironmentSnapshot)
    started_at: float = Field(0.0, description="Page load time on the client clock (ms)")
    captured_at: float = Field(0.0, description="Snapshot time on the client clock (ms)")
    first_interaction_at: Optional[float] = Field(None, description="First interaction (ms)")
    idle_gaps: int = Field(0, ge=0, description="Gaps > 3s between interactions")


# =============================================================================
# Service Payloads
# =============================================================================

class SessionOpenPayload(BaseModel):
    """Payload sent once per page load to open a session."""
    widget_id: Optional[str] = Field(None, description="Public widget identifier")
    tenant: Optional[str] = Field(
        None,
        description="Signed tenant token (payload.signature) or legacy tenant ID"
    )
    origin: str = Field(..., description="Requesting page origin (hostname)")
    url: str = Field("", description="Full page URL")
    referrer: str = Field("", description="document.referrer")
    browsing_id: Optional[str] = Field(
        None,
        description="Browsing-session identifier (sessionStorage scope)"
    )
    debug: bool = Field(False, description="data-debug attribute")
    environment: EnvironmentSnapshot = Field(default_factory=EnvironmentSnapshot)
    started_at: Optional[float] = Field(None, description="Page load time (ms)")


class TelemetryBatch(BaseModel):
    """Batch of raw events streamed by the collector."""
    pointer: List[PointerEvent] = Field(default_factory=list)
    keys: List[KeyEvent] = Field(default_factory=list)
    scrolls: List[ScrollEvent] = Field(default_factory=list)
    touches: List[TouchEvent] = Field(default_factory=list)
    motions: List[MotionEvent] = Field(default_factory=list)
    clipboard: List[ClipboardEvent] = Field(default_factory=list)


class PromptAnswer(BaseModel):
    """User answer to a pending prompt: a slider value or a proof-of-work solution."""
    prompt_id: str = Field(..., description="Identifier of the prompt being answered")
    value: Optional[int] = Field(None, ge=0, le=100, description="Slider value submitted")
    solution: Optional[str] = Field(None, max_length=64, description="Proof-of-work solution")
