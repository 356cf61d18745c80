"""
Telemetry Buffer Unit Tests

Tests ring-buffer bounds, activity / idle-gap tracking and the
collector clock offset used when freezing snapshots.
"""

import pytest

from gatekeeper.processors.buffer import TelemetryBuffer
from gatekeeper.schemas.inputs import (
    KeyEvent,
    KeyEventType,
    MotionEvent,
    PointerEvent,
    TelemetryBatch,
)

from tests.conftest import human_environment, straight_path


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def pointer_at(*timestamps: float):
    return [PointerEvent(x=float(i), y=0.0, timestamp=t) for i, t in enumerate(timestamps)]


# =============================================================================
# Ingestion
# =============================================================================

class TestIngestion:
    """Batches are appended into bounded per-category buffers."""

    def test_append_returns_event_count(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0))
        batch = TelemetryBatch(
            pointer=straight_path(3),
            keys=[KeyEvent(code="KeyA", event_type=KeyEventType.DOWN, timestamp=1200)],
            motions=[MotionEvent(x=0.1, y=0.2, z=9.8, timestamp=1300)],
        )
        assert buffer.append(batch) == 5

    def test_ring_is_bounded(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0), capacity=5)
        buffer.append(TelemetryBatch(pointer=straight_path(8)))
        sample = buffer.snapshot()
        assert len(sample.pointer) == 5
        # Oldest entries are evicted first
        assert sample.pointer[0].timestamp == straight_path(8)[3].timestamp

    def test_snapshot_is_detached(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0))
        buffer.append(TelemetryBatch(pointer=straight_path(2)))
        sample = buffer.snapshot()
        buffer.append(TelemetryBatch(pointer=straight_path(2, start=5000)))
        assert len(sample.pointer) == 2
        assert len(buffer.snapshot().pointer) == 4

    def test_environment_is_carried(self):
        env = human_environment()
        buffer = TelemetryBuffer(environment=env, started_at=0, clock=FakeClock(0))
        assert buffer.snapshot().environment == env


# =============================================================================
# Activity Tracking
# =============================================================================

class TestActivity:
    """First interaction and idle gaps."""

    def test_first_interaction(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0))
        buffer.append(TelemetryBatch(pointer=pointer_at(700, 800)))
        assert buffer.snapshot().first_interaction_at == 700

    def test_idle_gap_counting(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0))
        buffer.append(TelemetryBatch(pointer=pointer_at(1000, 5000, 5100, 9000)))
        assert buffer.snapshot().idle_gaps == 2

    def test_page_load_counts_as_activity(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0))
        buffer.append(TelemetryBatch(pointer=pointer_at(4000)))
        assert buffer.snapshot().idle_gaps == 1

    def test_key_up_and_motion_are_not_activity(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0))
        buffer.append(TelemetryBatch(
            keys=[KeyEvent(code="KeyA", event_type=KeyEventType.UP, timestamp=500)],
            motions=[MotionEvent(timestamp=600)],
        ))
        sample = buffer.snapshot()
        assert sample.activity == ()
        assert sample.first_interaction_at is None

    def test_batches_out_of_order_within_batch(self):
        buffer = TelemetryBuffer(started_at=0, clock=FakeClock(0))
        buffer.append(TelemetryBatch(pointer=pointer_at(2000, 1000)))
        sample = buffer.snapshot()
        assert sample.activity == (1000.0, 2000.0)
        assert sample.first_interaction_at == 1000


# =============================================================================
# Clock Offset
# =============================================================================

class TestClockOffset:
    """Snapshot times are on the collector's clock."""

    def test_captured_at_follows_collector_clock(self):
        clock = FakeClock(1_700_000_000_000.0)
        buffer = TelemetryBuffer(started_at=250.0, clock=clock)
        clock.now += 4000
        sample = buffer.snapshot()
        assert sample.started_at == 250.0
        assert sample.captured_at == pytest.approx(4250.0)

    def test_default_start_is_local_now(self):
        clock = FakeClock(10_000.0)
        buffer = TelemetryBuffer(clock=clock)
        assert buffer.started_at == 10_000.0
        assert buffer.collector_now() == 10_000.0

    def test_captured_never_before_start(self):
        clock = FakeClock(5000.0)
        buffer = TelemetryBuffer(started_at=100.0, clock=clock)
        clock.now -= 1000
        assert buffer.snapshot().captured_at == 100.0
