"""Sample recording and replay: capture gesture sessions to disk.

Recorded sessions are used for:
- Reproducible tests without a controller attached
- Replaying a player's enrollment through a fresh engine
- Offline tuning of thresholds with the CLI `replay` command
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

from gesture_arbiter.modes import ENTRY_LENGTH
from gesture_arbiter.samples import GestureSample


@dataclass
class RecordedSample:
    """A single gesture in a recording."""
    timestamp: float  # seconds from recording start
    entries: list[list[float]]  # (N, 10) records as nested lists
    label: Optional[str] = None
    gesture_id: Optional[int] = None

    def to_sample(self) -> GestureSample:
        return GestureSample(self.entries if self.entries else np.zeros((0, ENTRY_LENGTH)))


class SampleRecorder:
    """Records gesture samples to a file.

    Usage:
        recorder = SampleRecorder()
        recorder.start()
        engine.on(GESTURE_TRIGGERED, lambda e: recorder.add(engine.cache.get(e.gesture_id)))
        ...
        recorder.save("session.json")
    """

    def __init__(self):
        self._samples: list[RecordedSample] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        """Begin a new recording session."""
        self._samples = []
        self._start_time = time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of samples captured."""
        self._recording = False
        return len(self._samples)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def duration(self) -> float:
        if not self._samples:
            return 0.0
        return self._samples[-1].timestamp

    def add(
        self,
        sample: Optional[GestureSample],
        label: Optional[str] = None,
        gesture_id: Optional[int] = None,
    ):
        """Add a sample to the recording.

        Args:
            sample: The captured gesture; None is ignored.
            label: Optional expected label, used by offline evaluation.
            gesture_id: Optional engine-assigned id.
        """
        if not self._recording or sample is None:
            return

        self._samples.append(RecordedSample(
            timestamp=time.monotonic() - self._start_time,
            entries=sample.tolist(),
            label=label,
            gesture_id=gesture_id,
        ))

    def save(self, path: str | Path):
        """Save recording to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": 1,
            "sample_count": len(self._samples),
            "duration": self.duration,
            "samples": [asdict(s) for s in self._samples],
        }

        with open(path, "w") as f:
            json.dump(data, f)

    def save_compact(self, path: str | Path) -> Path:
        """Save in compact binary format (numpy npz): one flat payload plus per-sample counts."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        counts = np.array([len(s.entries) for s in self._samples], dtype=np.int32)
        if self._samples and counts.sum() > 0:
            payload = np.concatenate([
                np.array(s.entries, dtype=np.float32).reshape(-1, ENTRY_LENGTH) for s in self._samples
            ])
        else:
            payload = np.zeros((0, ENTRY_LENGTH), dtype=np.float32)
        meta = json.dumps([
            {"label": s.label, "gesture_id": s.gesture_id} for s in self._samples
        ])

        np.savez_compressed(
            path,
            timestamps=np.array([s.timestamp for s in self._samples], dtype=np.float64),
            payload=payload,
            entry_counts=counts,
            meta=np.array([meta]),
        )
        return path


class SamplePlayer:
    """Replays a recorded session.

    Usage:
        player = SamplePlayer.load("session.json")
        for rec in player.play():
            engine.on_sample_recorded(rec.to_sample())
    """

    def __init__(self, samples: list[RecordedSample]):
        self._samples = samples

    @classmethod
    def load(cls, path: str | Path) -> SamplePlayer:
        """Load a recording from JSON or npz."""
        path = Path(path)

        if path.suffix == ".npz":
            return cls._load_compact(path)

        with open(path) as f:
            data = json.load(f)

        samples = [
            RecordedSample(
                timestamp=s.get("timestamp", 0.0),
                entries=s["entries"],
                label=s.get("label"),
                gesture_id=s.get("gesture_id"),
            )
            for s in data["samples"]
        ]
        return cls(samples)

    @classmethod
    def _load_compact(cls, path: Path) -> SamplePlayer:
        data = np.load(path, allow_pickle=False)
        timestamps = data["timestamps"]
        payload = data["payload"]
        counts = data["entry_counts"]
        meta = json.loads(str(data["meta"][0]))

        samples = []
        offset = 0
        for i, n in enumerate(counts):
            n = int(n)
            info = meta[i] if i < len(meta) else {}
            samples.append(RecordedSample(
                timestamp=float(timestamps[i]),
                entries=payload[offset:offset + n].tolist(),
                label=info.get("label"),
                gesture_id=info.get("gesture_id"),
            ))
            offset += n
        return cls(samples)

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def labels(self) -> list[str]:
        return sorted({s.label for s in self._samples if s.label})

    def play(self) -> Iterator[RecordedSample]:
        """Iterate through all samples instantly (no timing)."""
        yield from self._samples

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedSample]:
        """Replay at original timing (or scaled by speed factor)."""
        start = time.monotonic()
        for rec in self._samples:
            target_time = rec.timestamp / speed
            elapsed = time.monotonic() - start
            if target_time > elapsed:
                time.sleep(target_time - elapsed)
            yield rec

    def get(self, index: int) -> Optional[RecordedSample]:
        if 0 <= index < len(self._samples):
            return self._samples[index]
        return None
