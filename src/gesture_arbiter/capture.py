"""Per-hand motion capture that turns controller readings into samples.

A hand presses its trigger, streams readings while drawing, then
releases. The readings collected in between become one GestureSample,
handed to a sink (normally `GestureArbiterEngine.submit_sample`).

Usage:
    capture = MotionCapture(engine.submit_sample, min_sample_interval_ms=12.0)
    capture.press(hand_id=0)
    for reading in controller_stream():
        capture.update(0, reading.angular_velocity, reading.acceleration,
                       reading.orientation, timestamp=reading.t)
    capture.release(0)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Sequence

import numpy as np

from gesture_arbiter.modes import ENTRY_LENGTH
from gesture_arbiter.samples import GestureSample

logger = logging.getLogger("gesture_arbiter.capture")

_ZERO3 = (0.0, 0.0, 0.0)


class _HandBuffer:
    """Records collected for one hand between press and release."""

    def __init__(self, started: float):
        self.started = started
        self.last_ms: Optional[float] = None
        self.rows: list[np.ndarray] = []


class MotionCapture:
    """Collects controller readings per hand and emits finished samples.

    Readings closer together than `min_sample_interval_ms` are dropped so
    the sample rate stays roughly even across controllers. Thread-safe:
    readings for different hands may arrive from different threads.
    """

    def __init__(
        self,
        sink: Callable[[GestureSample], None],
        min_sample_interval_ms: float = 12.0,
        on_draw: Optional[Callable[[bool], None]] = None,
    ):
        self._sink = sink
        self.min_sample_interval_ms = min_sample_interval_ms
        self._on_draw = on_draw
        self._lock = threading.Lock()
        self._buffers: dict[int, _HandBuffer] = {}

    def is_drawing(self, hand_id: Optional[int] = None) -> bool:
        with self._lock:
            if hand_id is None:
                return bool(self._buffers)
            return hand_id in self._buffers

    def press(self, hand_id: int, timestamp: Optional[float] = None):
        """Start collecting for hand_id. A second press restarts it."""
        now = time.monotonic() if timestamp is None else timestamp
        with self._lock:
            self._buffers[hand_id] = _HandBuffer(started=now)
        logger.debug("Hand %d started drawing", hand_id)
        if self._on_draw is not None:
            self._on_draw(True)

    def update(
        self,
        hand_id: int,
        angular_velocity: Sequence[float],
        acceleration: Sequence[float] = _ZERO3,
        orientation: Sequence[float] = _ZERO3,
        timestamp: Optional[float] = None,
    ) -> bool:
        """Add one reading. Returns False when it was dropped."""
        now = time.monotonic() if timestamp is None else timestamp
        with self._lock:
            buf = self._buffers.get(hand_id)
            if buf is None:
                return False
            elapsed_ms = (now - buf.started) * 1000.0
            if buf.last_ms is not None and elapsed_ms - buf.last_ms < self.min_sample_interval_ms:
                return False

            row = np.zeros(ENTRY_LENGTH, dtype=np.float32)
            row[0] = elapsed_ms
            row[1:4] = np.asarray(angular_velocity, dtype=np.float32)[:3]
            row[4:7] = np.asarray(acceleration, dtype=np.float32)[:3]
            row[7:10] = np.asarray(orientation, dtype=np.float32)[:3]
            buf.rows.append(row)
            buf.last_ms = elapsed_ms
        return True

    def release(self, hand_id: int) -> Optional[GestureSample]:
        """Finish the gesture for hand_id and hand it to the sink.

        Returns:
            The sample, or None when nothing was recorded.
        """
        with self._lock:
            buf = self._buffers.pop(hand_id, None)
            drawing = bool(self._buffers)
        if self._on_draw is not None and not drawing:
            self._on_draw(False)
        if buf is None or not buf.rows:
            logger.debug("Hand %d released without readings", hand_id)
            return None

        sample = GestureSample(np.stack(buf.rows))
        logger.debug("Hand %d finished gesture with %d entries", hand_id, sample.entry_count)
        self._sink(sample)
        return sample

    def cancel(self, hand_id: Optional[int] = None):
        """Drop in-progress readings without emitting a sample."""
        with self._lock:
            if hand_id is None:
                self._buffers.clear()
            else:
                self._buffers.pop(hand_id, None)
