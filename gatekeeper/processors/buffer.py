"""
Telemetry Ring Buffer

Bounded per-category buffers fed by the collector. The buffer is the only
mutable holder of telemetry; the feature extractor reads immutable
RawSample snapshots.

Interaction tracking mirrors the collector:
- Every pointer, key-down, scroll, touch and clipboard event is activity
- A gap > 3000ms between consecutive activities counts as an idle gap
  (the page load counts as the first activity)
- Device motion is not activity
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from gatekeeper.schemas.inputs import (
    ClipboardEvent,
    EnvironmentSnapshot,
    KeyEvent,
    KeyEventType,
    MotionEvent,
    PointerEvent,
    RawSample,
    ScrollEvent,
    TelemetryBatch,
    TouchEvent,
)
from gatekeeper.utils.time import now_ms

logger = logging.getLogger(__name__)

# Entries kept per category
MAX_EVENTS = 500

# Inactivity (ms) that counts as an idle gap
IDLE_GAP_MS = 3000.0


class TelemetryBuffer:
    """
    Ring buffer for one page load.

    Timestamps are on the collector's clock. When the collector reports its
    page-load time, the offset to the local clock is remembered so that
    snapshot() can express "now" on the collector's clock too.
    """

    def __init__(
        self,
        environment: Optional[EnvironmentSnapshot] = None,
        started_at: Optional[float] = None,
        clock: Callable[[], float] = now_ms,
        capacity: int = MAX_EVENTS,
    ) -> None:
        self._clock = clock
        local_now = clock()
        self.started_at: float = local_now if started_at is None else started_at
        self._offset: float = local_now - self.started_at
        self.environment = environment or EnvironmentSnapshot()

        self._pointer: Deque[PointerEvent] = deque(maxlen=capacity)
        self._keys: Deque[KeyEvent] = deque(maxlen=capacity)
        self._scrolls: Deque[ScrollEvent] = deque(maxlen=capacity)
        self._touches: Deque[TouchEvent] = deque(maxlen=capacity)
        self._motions: Deque[MotionEvent] = deque(maxlen=capacity)
        self._clipboard: Deque[ClipboardEvent] = deque(maxlen=capacity)
        self._activity: Deque[float] = deque(maxlen=capacity)

        self._first_interaction: Optional[float] = None
        self._last_activity: float = self.started_at
        self._idle_gaps: int = 0

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def append(self, batch: TelemetryBatch) -> int:
        """Add a batch of events. Returns the number of events accepted."""
        self._pointer.extend(batch.pointer)
        self._keys.extend(batch.keys)
        self._scrolls.extend(batch.scrolls)
        self._touches.extend(batch.touches)
        self._motions.extend(batch.motions)
        self._clipboard.extend(batch.clipboard)

        activity: List[float] = [e.timestamp for e in batch.pointer]
        activity += [e.timestamp for e in batch.keys if e.event_type == KeyEventType.DOWN]
        activity += [e.timestamp for e in batch.scrolls]
        activity += [e.timestamp for e in batch.touches]
        activity += [e.timestamp for e in batch.clipboard]
        for ts in sorted(activity):
            self._record_activity(ts)

        return (
            len(batch.pointer) + len(batch.keys) + len(batch.scrolls)
            + len(batch.touches) + len(batch.motions) + len(batch.clipboard)
        )

    def _record_activity(self, ts: float) -> None:
        if ts < self._last_activity:
            # Late delivery; keep the timestamp but do not rewind the tracker
            self._activity.append(ts)
            return
        if self._first_interaction is None:
            self._first_interaction = ts
        if ts - self._last_activity > IDLE_GAP_MS:
            self._idle_gaps += 1
        self._last_activity = ts
        self._activity.append(ts)

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def collector_now(self) -> float:
        """Current time expressed on the collector's clock."""
        return self._clock() - self._offset

    def snapshot(self) -> RawSample:
        """Freeze the current buffer contents into a RawSample."""
        return RawSample(
            pointer=tuple(self._pointer),
            keys=tuple(self._keys),
            scrolls=tuple(self._scrolls),
            touches=tuple(self._touches),
            motions=tuple(self._motions),
            clipboard=tuple(self._clipboard),
            activity=tuple(sorted(self._activity)),
            environment=self.environment,
            started_at=self.started_at,
            captured_at=max(self.collector_now(), self.started_at),
            first_interaction_at=self._first_interaction,
            idle_gaps=self._idle_gaps,
        )

    @property
    def counts(self) -> Tuple[int, int, int]:
        """(pointer, keys, activity) sizes, for logging."""
        return len(self._pointer), len(self._keys), len(self._activity)
