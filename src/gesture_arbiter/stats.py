"""Per-label error and confidence statistics used by arbitration.

Statistics are grouped in scopes. Predefined gestures use one scope per
classifier path ("<classifier>_<subClassifier>"); labels inside a scope
are strings, integer target indices are stored stringified.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, asdict
from typing import Optional, Union


def classifier_path(classifier: str, sub_classifier: Optional[str]) -> str:
    return f"{classifier}_{sub_classifier or ''}"


@dataclass
class GestureStat:
    """Counters for one label. Never negative; only reset() zeros them."""
    common_error_count: int = 0
    user_error_count: int = 0
    common_confidence: float = 0.0
    user_confidence: float = 0.0

    def add_common_error(self):
        self.common_error_count += 1

    def add_user_error(self):
        self.user_error_count += 1

    def add_common_confidence(self, conf: float):
        self.common_confidence += max(0.0, conf)

    def add_user_confidence(self, conf: float):
        self.user_confidence += max(0.0, conf)

    @property
    def favors_common(self) -> bool:
        return self.common_confidence >= self.user_confidence


class StatScope:
    """Statistics for every label of one classifier scope."""

    def __init__(self):
        self.populated = False
        self._stats: dict[str, GestureStat] = {}

    def get(self, label: Union[int, str]) -> Optional[GestureStat]:
        return self._stats.get(str(label))

    def ensure(self, label: Union[int, str]) -> GestureStat:
        """Return the stat for label, creating an empty one if missing."""
        key = str(label)
        if key not in self._stats:
            self._stats[key] = GestureStat()
        return self._stats[key]

    def __contains__(self, label: Union[int, str]) -> bool:
        return str(label) in self._stats

    def labels(self) -> list[str]:
        return list(self._stats)

    def reset(self):
        self._stats.clear()
        self.populated = False

    def to_dict(self) -> dict:
        return {
            "populated": self.populated,
            "stats": {label: asdict(stat) for label, stat in self._stats.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> StatScope:
        scope = cls()
        scope.populated = bool(data.get("populated", False))
        for label, values in data.get("stats", {}).items():
            stat = GestureStat(
                common_error_count=max(0, int(values.get("common_error_count", 0))),
                user_error_count=max(0, int(values.get("user_error_count", 0))),
                common_confidence=max(0.0, float(values.get("common_confidence", 0.0))),
                user_confidence=max(0.0, float(values.get("user_confidence", 0.0))),
            )
            scope._stats[str(label)] = stat
        return scope


class StatsStore:
    """All stat scopes held by the engine."""

    def __init__(self):
        self._scopes: dict[str, StatScope] = {}
        self._lock = threading.RLock()

    def scope(self, path: str) -> StatScope:
        """Get the scope for path, creating it if needed."""
        with self._lock:
            if path not in self._scopes:
                self._scopes[path] = StatScope()
            return self._scopes[path]

    def find(self, path: str) -> Optional[StatScope]:
        with self._lock:
            return self._scopes.get(path)

    def reset(self, path: Optional[str] = None):
        with self._lock:
            if path is None:
                for scope in self._scopes.values():
                    scope.reset()
            elif path in self._scopes:
                self._scopes[path].reset()

    def paths(self) -> list[str]:
        with self._lock:
            return list(self._scopes)

    def to_dict(self) -> dict:
        with self._lock:
            return {path: scope.to_dict() for path, scope in self._scopes.items()}

    @classmethod
    def from_dict(cls, data: dict) -> StatsStore:
        store = cls()
        for path, scope_data in (data or {}).items():
            store._scopes[path] = StatScope.from_dict(scope_data)
        return store
