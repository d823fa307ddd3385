"""Persisted training state and its load/save contract.

The whole record is written as one JSON document:

    {
      "version": 1,
      "train_data": {...},
      "stats": {...},
      "smart_train_snapshots": {"circle": [[[...10 floats...], ...], ...]}
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from gesture_arbiter.samples import GestureSample
from gesture_arbiter.stats import StatsStore

logger = logging.getLogger("gesture_arbiter.train_data")

FORMAT_VERSION = 1


@dataclass
class TrainData:
    """Per-target progress, recognizer preferences and lifetime counters."""
    train_progress: dict[int, float] = field(default_factory=dict)
    use_user_gesture: dict[int, bool] = field(default_factory=dict)
    use_predefined_user_gesture: dict[str, bool] = field(default_factory=dict)
    user_gesture_count: dict[str, int] = field(default_factory=dict)
    common_gesture_count: dict[str, int] = field(default_factory=dict)
    failed_gesture_count: dict[str, int] = field(default_factory=dict)

    @staticmethod
    def _inc(counter: dict[str, int], target: Union[int, str]) -> int:
        key = str(target)
        counter[key] = counter.get(key, 0) + 1
        return counter[key]

    def inc_user_gesture_count(self, target: Union[int, str]) -> int:
        return self._inc(self.user_gesture_count, target)

    def inc_common_gesture_count(self, target: Union[int, str]) -> int:
        return self._inc(self.common_gesture_count, target)

    def inc_failed_gesture_count(self, target: Union[int, str]) -> int:
        return self._inc(self.failed_gesture_count, target)

    def mark_user_preferred(self, target: Union[int, str]):
        """Prefer the user-trained recognizer for target. Idempotent."""
        if isinstance(target, int):
            self.use_user_gesture[target] = True
        else:
            self.use_predefined_user_gesture[target] = True

    def total(self) -> int:
        return (
            sum(self.user_gesture_count.values())
            + sum(self.common_gesture_count.values())
            + sum(self.failed_gesture_count.values())
        )

    def summary(self) -> dict[str, int]:
        return {
            "user": sum(self.user_gesture_count.values()),
            "common": sum(self.common_gesture_count.values()),
            "failed": sum(self.failed_gesture_count.values()),
            "total": self.total(),
        }

    def to_dict(self) -> dict:
        return {
            "train_progress": {str(k): v for k, v in self.train_progress.items()},
            "use_user_gesture": {str(k): v for k, v in self.use_user_gesture.items()},
            "use_predefined_user_gesture": dict(self.use_predefined_user_gesture),
            "user_gesture_count": dict(self.user_gesture_count),
            "common_gesture_count": dict(self.common_gesture_count),
            "failed_gesture_count": dict(self.failed_gesture_count),
        }

    @classmethod
    def from_dict(cls, data: dict) -> TrainData:
        return cls(
            train_progress={int(k): float(v) for k, v in data.get("train_progress", {}).items()},
            use_user_gesture={int(k): bool(v) for k, v in data.get("use_user_gesture", {}).items()},
            use_predefined_user_gesture={
                str(k): bool(v) for k, v in data.get("use_predefined_user_gesture", {}).items()
            },
            user_gesture_count={str(k): int(v) for k, v in data.get("user_gesture_count", {}).items()},
            common_gesture_count={str(k): int(v) for k, v in data.get("common_gesture_count", {}).items()},
            failed_gesture_count={str(k): int(v) for k, v in data.get("failed_gesture_count", {}).items()},
        )


@dataclass
class PersistedState:
    """Everything the engine writes to disk, as one unit."""
    train_data: TrainData = field(default_factory=TrainData)
    stats: StatsStore = field(default_factory=StatsStore)
    smart_train_snapshots: dict[str, list[GestureSample]] = field(default_factory=dict)


class TrainDataStore:
    """Loads and saves PersistedState as a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> PersistedState:
        """Load state; a missing or unreadable file yields fresh state."""
        if not self.path.exists():
            logger.debug("No train data at %s, starting fresh", self.path)
            return PersistedState()

        try:
            with open(self.path) as f:
                data = json.load(f)
            state = PersistedState(
                train_data=TrainData.from_dict(data.get("train_data", {})),
                stats=StatsStore.from_dict(data.get("stats", {})),
                smart_train_snapshots={
                    label: [GestureSample(s) for s in samples]
                    for label, samples in data.get("smart_train_snapshots", {}).items()
                },
            )
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Loading train data from %s failed: %s", self.path, e)
            return PersistedState()

        summary = state.train_data.summary()
        logger.info(
            "Train data loaded - user:%d/%d common:%d/%d fail:%d/%d",
            summary["user"], summary["total"],
            summary["common"], summary["total"],
            summary["failed"], summary["total"],
        )
        return state

    def save(self, state: PersistedState):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": FORMAT_VERSION,
            "train_data": state.train_data.to_dict(),
            "stats": state.stats.to_dict(),
            "smart_train_snapshots": {
                label: [s.tolist() for s in samples]
                for label, samples in state.smart_train_snapshots.items()
            },
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(data, f)
        tmp.replace(self.path)
        logger.debug("Train data saved to %s", self.path)
