"""
Behavioral Feature Extractor

Converts a RawSample snapshot into a frozen FeatureSet.

Architecture:
- Pure function of the snapshot (no hidden state between calls)
- O(buffer) per call, numpy kernels from processors.statistics
- Short or empty buffers give neutral values, never NaN

Features extracted:
- keystroke interval / dwell / flight time mean and std
- pointer velocity, acceleration and path curvature
- scroll velocity and direction changes, touch pressure and radius
- interval entropy, micro-timing composite, timing skewness/kurtosis
- time to first interaction, session duration, idle gaps
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from gatekeeper.processors import statistics as st
from gatekeeper.schemas.inputs import (
    EnvironmentSnapshot,
    KeyEventType,
    PointerEventType,
    RawSample,
)

# Modifier keys never produce keystroke timings
MODIFIER_KEYS = frozenset({"Shift", "Control", "Alt", "Meta"})

# Plausibility windows (ms)
MAX_FLIGHT_MS = 5000.0
MAX_INTERVAL_MS = 5000.0
MAX_DWELL_MS = 2000.0


@dataclass(frozen=True)
class FeatureSet:
    """Derived behavioral features for one assessment."""
    # Keyboard
    keystroke_interval_avg: float = 0.0
    keystroke_interval_std: float = 0.0
    keystroke_dwell_avg: float = 0.0
    keystroke_dwell_std: float = 0.0
    keystrokes: int = 0
    flight_time_avg: float = 0.0
    flight_time_std: float = 0.0

    # Pointer
    mouse_velocity_avg: float = 0.0
    mouse_velocity_std: float = 0.0
    mouse_acceleration_avg: float = 0.0
    mouse_acceleration_std: float = 0.0
    mouse_curvature_avg: float = 0.0
    mouse_movements: int = 0
    mouse_clicks: int = 0
    no_pointer_movement: bool = True
    linear_movement: bool = False

    # Scroll / touch / clipboard
    scroll_events: int = 0
    scroll_velocity_avg: float = 0.0
    scroll_direction_changes: int = 0
    touch_events: int = 0
    touch_pressure_avg: float = 0.0
    touch_radius_avg: float = 0.0
    copy_paste_events: int = 0
    motion_events: int = 0

    # Timing (seconds for durations, [0, 1] for entropies)
    time_to_first_interaction: float = 0.0
    session_duration: float = 0.0
    idle_gaps: int = 0
    timing_entropy: float = st.NEUTRAL_ENTROPY
    micro_timing_entropy: float = st.NEUTRAL_ENTROPY
    timing_skewness: float = 0.0
    timing_kurtosis: float = 0.0

    environment: EnvironmentSnapshot = field(default_factory=EnvironmentSnapshot)

    def summary(self) -> Dict[str, Any]:
        """Behavior summary sent to the validation backend (no environment)."""
        data = asdict(self)
        data.pop("environment")
        return data


def _safe(value: float, lo: float = 0.0, hi: Optional[float] = None) -> float:
    if not math.isfinite(value):
        return lo
    value = max(lo, value)
    return value if hi is None else min(hi, value)


class FeatureExtractor:
    """
    Stateless RawSample -> FeatureSet transformation.
    """

    def extract(self, sample: RawSample) -> FeatureSet:
        keyboard = self._keyboard(sample)
        pointer = self._pointer(sample)
        scroll = self._scroll(sample)
        touch = self._touch(sample)

        duration = _safe((sample.captured_at - sample.started_at) / 1000.0)
        if sample.first_interaction_at is not None:
            ttfi = _safe((sample.first_interaction_at - sample.started_at) / 1000.0)
        else:
            ttfi = duration

        activity = sorted(sample.activity)
        gaps = st.intervals(activity)

        return FeatureSet(
            **keyboard,
            **pointer,
            **scroll,
            **touch,
            copy_paste_events=len(sample.clipboard),
            motion_events=len(sample.motions),
            time_to_first_interaction=ttfi,
            session_duration=duration,
            idle_gaps=sample.idle_gaps,
            timing_entropy=_safe(st.interval_entropy(activity), hi=1.0),
            micro_timing_entropy=_safe(st.micro_timing(activity), hi=1.0),
            timing_skewness=_safe(st.skewness(gaps), lo=-1e6),
            timing_kurtosis=_safe(st.kurtosis(gaps), lo=-3.0),
            environment=sample.environment,
        )

    # -------------------------------------------------------------------------
    # Per-category extraction
    # -------------------------------------------------------------------------

    def _keyboard(self, sample: RawSample) -> Dict[str, Any]:
        pending: Dict[str, float] = {}
        intervals: List[float] = []
        dwells: List[float] = []
        flights: List[float] = []
        last_up: Optional[float] = None
        keystrokes = 0

        for event in sorted(sample.keys, key=lambda e: e.timestamp):
            if event.key in MODIFIER_KEYS:
                continue
            t = event.timestamp
            if event.event_type == KeyEventType.DOWN:
                if last_up is not None:
                    flight = t - last_up
                    if 0 < flight < MAX_FLIGHT_MS:
                        flights.append(flight)
                if pending:
                    interval = t - max(pending.values())
                    if 0 < interval < MAX_INTERVAL_MS:
                        intervals.append(interval)
                pending[event.code] = t
                keystrokes += 1
            else:
                down = pending.pop(event.code, None)
                if down is not None:
                    dwell = t - down
                    if 0 < dwell < MAX_DWELL_MS:
                        dwells.append(dwell)
                last_up = t

        return {
            "keystroke_interval_avg": st.mean(intervals),
            "keystroke_interval_std": st.std(intervals),
            "keystroke_dwell_avg": st.mean(dwells),
            "keystroke_dwell_std": st.std(dwells),
            "keystrokes": keystrokes,
            "flight_time_avg": st.mean(flights),
            "flight_time_std": st.std(flights),
        }

    def _pointer(self, sample: RawSample) -> Dict[str, Any]:
        moves = [e for e in sample.pointer if e.event_type == PointerEventType.MOVE]
        clicks = len(sample.pointer) - len(moves)
        moves.sort(key=lambda e: e.timestamp)

        pts = np.array([(e.x, e.y, e.timestamp) for e in moves], dtype=np.float64).reshape(-1, 3)
        pts = pts[np.all(np.isfinite(pts), axis=1)]
        xy = pts[:, :2]

        velocities = np.zeros(0)
        accelerations = np.zeros(0)
        if pts.shape[0] >= 2:
            dt = np.diff(pts[:, 2])
            dist = np.hypot(np.diff(pts[:, 0]), np.diff(pts[:, 1]))
            valid = dt > 0
            velocities = dist[valid] / dt[valid]
            if velocities.size >= 2:
                accelerations = np.diff(velocities) / dt[valid][1:]

        curvatures = st.path_curvatures(xy)

        return {
            "mouse_velocity_avg": st.mean(velocities),
            "mouse_velocity_std": st.std(velocities),
            "mouse_acceleration_avg": _safe(st.mean(accelerations), lo=-1e6),
            "mouse_acceleration_std": st.std(accelerations),
            "mouse_curvature_avg": st.mean(curvatures),
            "mouse_movements": int(xy.shape[0]),
            "mouse_clicks": clicks,
            "no_pointer_movement": xy.shape[0] == 0,
            "linear_movement": st.is_linear(xy),
        }

    def _scroll(self, sample: RawSample) -> Dict[str, Any]:
        scrolls = sorted(sample.scrolls, key=lambda e: e.timestamp)
        velocities: List[float] = []
        changes = 0
        last_dir = 0
        for prev, cur in zip(scrolls, scrolls[1:]):
            dt = cur.timestamp - prev.timestamp
            if dt <= 0:
                continue
            dy = cur.y - prev.y
            velocities.append(abs(dy) / dt)
            direction = (dy > 0) - (dy < 0)
            if direction != 0 and last_dir != 0 and direction != last_dir:
                changes += 1
            if direction != 0:
                last_dir = direction

        return {
            "scroll_events": len(scrolls),
            "scroll_velocity_avg": st.mean(velocities),
            "scroll_direction_changes": changes,
        }

    def _touch(self, sample: RawSample) -> Dict[str, Any]:
        pressures = [t.force for t in sample.touches if t.force is not None and t.force > 0]
        radii = [
            (t.radius_x + t.radius_y) / 2.0
            for t in sample.touches
            if t.radius_x is not None and t.radius_y is not None
        ]
        return {
            "touch_events": len(sample.touches),
            "touch_pressure_avg": st.mean(pressures),
            "touch_radius_avg": st.mean(radii),
        }
