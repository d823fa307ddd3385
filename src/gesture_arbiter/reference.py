"""Reference recognizer: DTW template matching on angular velocity.

Stands in for the production matcher so the engine can be exercised end
to end (CLI replay, demos, integration tests). Each sample's angular
velocity path is resampled to a fixed length, normalized, and compared
with Dynamic Time Warping.

Usage:
    recognizer = TemplateRecognizer()
    recognizer.register_predefined("demo", "", "circle", [s1, s2])
    engine = GestureArbiterEngine(recognizer)
"""

from __future__ import annotations

import math
import threading
from typing import Sequence

import numpy as np

from gesture_arbiter.modes import SecurityLevel
from gesture_arbiter.recognizer import (
    CustomResult,
    PredefinedResult,
    Recognizer,
    SignatureResult,
    Target,
    TrainResult,
)
from gesture_arbiter.samples import GestureSample, split_payload

TRAINING_STEPS = 5

ERR_TRAIN_INCONSISTENT = -201
ERR_NOT_ENROLLED = -301
ERR_NO_MATCH = -302


def _resample_path(points: np.ndarray, n_points: int = 32) -> np.ndarray:
    """Resample a path to a fixed number of evenly-spaced points."""
    if len(points) == 0:
        return np.zeros((n_points, 3), dtype=np.float32)
    if len(points) < 2:
        return np.tile(points[0], (n_points, 1)).astype(np.float32)

    diffs = np.diff(points, axis=0)
    seg_lengths = np.linalg.norm(diffs, axis=1)
    cum_length = np.concatenate([[0], np.cumsum(seg_lengths)])
    total = cum_length[-1]

    if total < 1e-8:
        return np.tile(points[0], (n_points, 1)).astype(np.float32)

    target_lengths = np.linspace(0, total, n_points)
    resampled = np.zeros((n_points, points.shape[1]), dtype=np.float32)

    for i, target in enumerate(target_lengths):
        idx = np.searchsorted(cum_length, target, side="right") - 1
        idx = min(idx, len(points) - 2)
        seg_remain = target - cum_length[idx]
        seg_len = seg_lengths[idx] if seg_lengths[idx] > 1e-8 else 1e-8
        resampled[i] = points[idx] + (seg_remain / seg_len) * diffs[idx]

    return resampled


def _normalize(points: np.ndarray) -> np.ndarray:
    """Center at origin and scale to unit spread."""
    pts = points.astype(np.float64) - points.mean(axis=0)
    scale = float(np.sqrt((pts ** 2).sum(axis=1).mean()))
    if scale < 1e-8:
        return pts.astype(np.float32)
    return (pts / scale).astype(np.float32)


def _dtw_distance_fast(s: np.ndarray, t: np.ndarray, window: int = 8) -> float:
    """DTW with Sakoe-Chiba band constraint. Returns average per-step cost."""
    n, m = len(s), len(t)
    if n == 0 or m == 0:
        return float("inf")

    cost = np.full((n + 1, m + 1), float("inf"), dtype=np.float64)
    cost[0, 0] = 0.0

    for i in range(1, n + 1):
        j_start = max(1, i - window)
        j_end = min(m, i + window)
        for j in range(j_start, j_end + 1):
            d = float(np.linalg.norm(s[i - 1] - t[j - 1]))
            cost[i, j] = d + min(cost[i - 1, j], cost[i, j - 1], cost[i - 1, j - 1])

    return cost[n, m] / (n + m)


class TemplateRecognizer(Recognizer):
    """In-memory DTW recognizer implementing the full oracle contract."""

    def __init__(
        self,
        n_points: int = 32,
        similar_threshold: float = 0.35,
        train_threshold: float = 0.45,
        verify_threshold: float = 0.45,
        custom_threshold: float = 0.6,
    ):
        self.n_points = n_points
        self.similar_threshold = similar_threshold
        self.train_threshold = train_threshold
        self.verify_threshold = verify_threshold
        self.custom_threshold = custom_threshold

        self._signatures: dict[int, list[np.ndarray]] = {}
        self._custom: dict[Target, list[np.ndarray]] = {}
        self._predefined: dict[tuple[str, str], dict[str, list[np.ndarray]]] = {}
        self._lock = threading.Lock()

    def _path(self, sample: GestureSample) -> np.ndarray:
        return _normalize(_resample_path(sample.angular_velocity, self.n_points))

    def _mean_distance(self, path: np.ndarray, templates: list[np.ndarray]) -> float:
        if not templates:
            return float("inf")
        return float(np.mean([_dtw_distance_fast(path, t) for t in templates]))

    def distance(self, first: GestureSample, second: GestureSample) -> float:
        return _dtw_distance_fast(self._path(first), self._path(second))

    # --- predefined templates ---

    def register_predefined(
        self, classifier: str, sub_classifier: str, label: str, samples: Sequence[GestureSample]
    ):
        """Add template samples for a developer-defined gesture."""
        with self._lock:
            scope = self._predefined.setdefault((classifier, sub_classifier or ""), {})
            scope.setdefault(label, []).extend(self._path(s) for s in samples)

    def predefined_labels(self, classifier: str, sub_classifier: str) -> list[str]:
        with self._lock:
            return sorted(self._predefined.get((classifier, sub_classifier or ""), {}))

    # --- oracle contract ---

    def train(self, target: int, sample: GestureSample) -> TrainResult:
        path = self._path(sample)
        with self._lock:
            templates = self._signatures.get(target, [])
            if len(templates) >= TRAINING_STEPS:
                templates = []
            if templates:
                dist = self._mean_distance(path, templates)
                if dist > self.train_threshold:
                    return TrainResult(
                        progress=len(templates) / TRAINING_STEPS,
                        error_code=ERR_TRAIN_INCONSISTENT,
                    )
            templates = templates + [path]
            self._signatures[target] = templates
            progress = len(templates) / TRAINING_STEPS

            level = SecurityLevel.NONE
            if len(templates) == TRAINING_STEPS:
                level = self._security_level(templates)
        return TrainResult(progress=progress, security_level=level, action_index=target)

    def _security_level(self, templates: list[np.ndarray]) -> SecurityLevel:
        pairs = [
            _dtw_distance_fast(templates[i], templates[j])
            for i in range(len(templates))
            for j in range(i + 1, len(templates))
        ]
        spread = float(np.mean(pairs)) if pairs else 0.0
        if spread < 0.1:
            return SecurityLevel.VERY_HIGH
        if spread < 0.2:
            return SecurityLevel.HIGH
        if spread < 0.3:
            return SecurityLevel.NORMAL
        if spread < 0.4:
            return SecurityLevel.POOR
        return SecurityLevel.VERY_POOR

    def identify_signature(self, sample: GestureSample, targets: Sequence[int]) -> SignatureResult:
        path = self._path(sample)
        with self._lock:
            enrolled = {
                t: self._signatures[t] for t in targets
                if len(self._signatures.get(t, [])) >= TRAINING_STEPS
            }
            if not enrolled:
                return SignatureResult(error_code=ERR_NOT_ENROLLED)
            scored = {t: self._mean_distance(path, tpl) for t, tpl in enrolled.items()}
        best = min(scored, key=scored.get)  # type: ignore
        if scored[best] > self.verify_threshold:
            return SignatureResult(error_code=ERR_NO_MATCH)
        return SignatureResult(match=best)

    def identify_predefined(
        self,
        classifier: str,
        sub_classifier: str,
        labels: Sequence[str],
        sample: GestureSample,
    ) -> PredefinedResult:
        path = self._path(sample)
        with self._lock:
            scope = self._predefined.get((classifier, sub_classifier or ""), {})
            scored = {
                label: self._mean_distance(path, scope[label])
                for label in labels if scope.get(label)
            }
        if not scored:
            return PredefinedResult()
        ranked = sorted(scored.items(), key=lambda kv: kv[1])
        best_label, best_dist = ranked[0]
        # score > 1.0 is a pass
        score = 2.0 * math.exp(-best_dist)
        if len(ranked) > 1 and ranked[1][1] > 1e-8:
            confidence = max(0.0, 1.0 - best_dist / ranked[1][1])
        else:
            confidence = math.exp(-best_dist)
        return PredefinedResult(gesture=best_label, score=score, confidence=confidence)

    def identify_custom(self, sample: GestureSample, targets: Sequence[Target]) -> CustomResult:
        path = self._path(sample)
        with self._lock:
            scored = {
                t: self._mean_distance(path, self._custom[t])
                for t in targets if self._custom.get(t)
            }
        if not scored:
            return CustomResult()
        best = min(scored, key=scored.get)  # type: ignore
        if scored[best] > self.custom_threshold:
            return CustomResult()
        return CustomResult(best_match=best, confidence=math.exp(-scored[best]))

    def set_custom_gesture(self, target: Target, payload: np.ndarray, entry_counts: Sequence[int]):
        paths = [self._path(s) for s in split_payload(payload, entry_counts)]
        with self._lock:
            self._custom[target] = paths

    def is_similar(self, first: GestureSample, second: GestureSample) -> bool:
        return self.distance(first, second) <= self.similar_threshold

    def delete_target(self, target: int) -> bool:
        with self._lock:
            return self._signatures.pop(target, None) is not None

    def is_custom_gesture_existed(self, sample: GestureSample) -> bool:
        path = self._path(sample)
        with self._lock:
            templates = list(self._custom.values())
        return any(self._mean_distance(path, tpl) <= self.custom_threshold for tpl in templates)

    def signature_progress(self, target: int) -> float:
        with self._lock:
            return len(self._signatures.get(target, [])) / TRAINING_STEPS

    def custom_targets(self) -> list[Target]:
        with self._lock:
            return list(self._custom)
