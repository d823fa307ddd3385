"""Motion samples and gesture ids.

A gesture sample is an ordered sequence of fixed-width records: a
timestamp, 3D angular velocity and six auxiliary channels per record.
Samples are immutable once captured.
"""

from __future__ import annotations

import threading
import time
from typing import Iterable, Optional, Sequence

import numpy as np

from gesture_arbiter.errors import InvalidSampleError
from gesture_arbiter.modes import ENTRY_LENGTH


class GestureSample:
    """Read-only (N, 10) float32 array of motion records."""

    __slots__ = ("_data",)

    def __init__(self, data: np.ndarray | Sequence[float] | Sequence[Sequence[float]]):
        arr = np.array(data, dtype=np.float32)
        if arr.ndim == 1:
            if arr.size % ENTRY_LENGTH != 0:
                raise InvalidSampleError(
                    f"flat sample length {arr.size} is not a multiple of {ENTRY_LENGTH}"
                )
            arr = arr.reshape(-1, ENTRY_LENGTH)
        elif arr.ndim != 2 or (arr.size and arr.shape[1] != ENTRY_LENGTH):
            raise InvalidSampleError(f"expected shape (N, {ENTRY_LENGTH}), got {arr.shape}")
        if arr.size == 0:
            arr = arr.reshape(0, ENTRY_LENGTH)
        arr.setflags(write=False)
        self._data = arr

    @classmethod
    def coerce(cls, data) -> Optional[GestureSample]:
        """Wrap raw input, passing through existing samples and None."""
        if data is None or isinstance(data, GestureSample):
            return data
        return cls(data)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def entry_count(self) -> int:
        return int(self._data.shape[0])

    @property
    def angular_velocity(self) -> np.ndarray:
        """Columns 1-3 of every record, shape (N, 3)."""
        return self._data[:, 1:4]

    def flat(self) -> np.ndarray:
        return self._data.reshape(-1)

    def tolist(self) -> list[list[float]]:
        return self._data.tolist()

    def __len__(self) -> int:
        return self.entry_count

    def __repr__(self) -> str:
        return f"GestureSample(entries={self.entry_count})"


def flatten_samples(samples: Iterable[GestureSample]) -> tuple[np.ndarray, list[int]]:
    """Concatenate samples into one contiguous payload.

    Returns:
        (payload, entry_counts) where payload is a 1-D float32 array and
        entry_counts holds the number of records contributed by each sample.
    """
    samples = list(samples)
    entry_counts = [s.entry_count for s in samples]
    if not samples:
        return np.zeros(0, dtype=np.float32), entry_counts
    payload = np.concatenate([s.flat() for s in samples]).astype(np.float32)
    return payload, entry_counts


def split_payload(payload: np.ndarray, entry_counts: Sequence[int]) -> list[GestureSample]:
    """Inverse of flatten_samples."""
    samples = []
    offset = 0
    for count in entry_counts:
        size = count * ENTRY_LENGTH
        samples.append(GestureSample(payload[offset:offset + size]))
        offset += size
    return samples


class GestureIdClock:
    """Hands out gesture ids: milliseconds since the clock was created.

    Ids are strictly increasing so two gestures finishing within the same
    millisecond never collide.
    """

    def __init__(self):
        self._start = time.monotonic()
        self._last = -1
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            elapsed = int((time.monotonic() - self._start) * 1000)
            self._last = max(elapsed, self._last + 1)
            return self._last
