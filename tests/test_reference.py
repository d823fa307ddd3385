"""Tests for the DTW reference recognizer."""

import numpy as np
import pytest

from gesture_arbiter.modes import ENTRY_LENGTH, SecurityLevel
from gesture_arbiter.reference import (
    ERR_NO_MATCH,
    ERR_NOT_ENROLLED,
    ERR_TRAIN_INCONSISTENT,
    TemplateRecognizer,
)
from gesture_arbiter.samples import GestureSample, flatten_samples


def shape(kind: str, n: int = 50, amplitude: float = 1.0) -> GestureSample:
    t = np.linspace(0, 2 * np.pi, n)
    data = np.zeros((n, ENTRY_LENGTH), dtype=np.float32)
    data[:, 0] = np.arange(n) * 12.0
    if kind == "circle":
        data[:, 1] = np.cos(t)
        data[:, 2] = np.sin(t)
    elif kind == "line":
        data[:, 1] = t
    elif kind == "wave":
        data[:, 1] = t
        data[:, 2] = np.sin(3 * t)
    data[:, 1:4] *= amplitude
    return GestureSample(data)


class TestTraining:
    def test_progress_steps(self):
        rec = TemplateRecognizer()
        results = [rec.train(101, shape("circle")) for _ in range(5)]
        assert [r.progress for r in results] == pytest.approx([0.2, 0.4, 0.6, 0.8, 1.0])
        assert all(r.action_index == 101 for r in results)
        assert results[-1].security_level == SecurityLevel.VERY_HIGH
        assert rec.signature_progress(101) == 1.0

    def test_inconsistent_attempt(self):
        rec = TemplateRecognizer(train_threshold=0.05)
        rec.train(1, shape("circle"))
        result = rec.train(1, shape("line"))
        assert result.failed
        assert result.error_code == ERR_TRAIN_INCONSISTENT
        assert result.progress == pytest.approx(0.2)

    def test_completed_target_restarts(self):
        rec = TemplateRecognizer()
        for _ in range(5):
            rec.train(1, shape("circle"))
        assert rec.train(1, shape("wave")).progress == pytest.approx(0.2)

    def test_delete_target(self):
        rec = TemplateRecognizer()
        rec.train(1, shape("circle"))
        assert rec.delete_target(1)
        assert not rec.delete_target(1)
        assert rec.signature_progress(1) == 0.0


class TestIdentifySignature:
    def test_not_enrolled(self):
        result = TemplateRecognizer().identify_signature(shape("circle"), [1])
        assert result.error_code == ERR_NOT_ENROLLED

    def test_match_and_reject(self):
        rec = TemplateRecognizer(verify_threshold=0.05)
        for _ in range(5):
            rec.train(7, shape("circle"))
        assert rec.identify_signature(shape("circle", amplitude=2.0), [7]).match == 7
        assert rec.identify_signature(shape("line"), [7]).error_code == ERR_NO_MATCH


class TestPredefined:
    @pytest.fixture
    def rec(self):
        rec = TemplateRecognizer()
        rec.register_predefined("demo", "", "circle", [shape("circle")])
        rec.register_predefined("demo", "", "line", [shape("line")])
        return rec

    def test_labels(self, rec):
        assert rec.predefined_labels("demo", "") == ["circle", "line"]

    def test_best_label_passes(self, rec):
        result = rec.identify_predefined("demo", "", ["circle", "line"], shape("circle"))
        assert result.gesture == "circle"
        assert result.score == pytest.approx(2.0)
        assert result.confidence == pytest.approx(1.0)

    def test_restricted_to_requested_labels(self, rec):
        result = rec.identify_predefined("demo", "", ["line"], shape("circle"))
        assert result.gesture == "line"
        assert result.score < 2.0

    def test_unknown_classifier(self, rec):
        assert rec.identify_predefined("other", "", ["circle"], shape("circle")).gesture == ""


class TestCustom:
    def test_set_and_identify(self):
        rec = TemplateRecognizer()
        payload, counts = flatten_samples([shape("circle"), shape("circle", amplitude=1.5)])
        rec.set_custom_gesture("circle", payload, counts)
        payload, counts = flatten_samples([shape("wave")])
        rec.set_custom_gesture(3, payload, counts)

        result = rec.identify_custom(shape("circle"), ["circle", 3])
        assert result.best_match == "circle"
        assert result.confidence == pytest.approx(1.0)
        assert rec.identify_custom(shape("wave"), [3]).best_match == 3
        assert rec.custom_targets() == ["circle", 3]

    def test_no_match_over_threshold(self):
        rec = TemplateRecognizer(custom_threshold=0.05)
        payload, counts = flatten_samples([shape("circle")])
        rec.set_custom_gesture("circle", payload, counts)
        assert rec.identify_custom(shape("line"), ["circle"]).best_match is None
        assert rec.identify_custom(shape("circle"), ["heart"]).best_match is None

    def test_is_custom_gesture_existed(self):
        rec = TemplateRecognizer(custom_threshold=0.05)
        assert not rec.is_custom_gesture_existed(shape("circle"))
        payload, counts = flatten_samples([shape("circle")])
        rec.set_custom_gesture(1, payload, counts)
        assert rec.is_custom_gesture_existed(shape("circle"))
        assert not rec.is_custom_gesture_existed(shape("line"))


class TestSimilarity:
    def test_scale_invariant(self):
        rec = TemplateRecognizer()
        assert rec.is_similar(shape("circle"), shape("circle", amplitude=4.0))

    def test_different_shapes(self):
        rec = TemplateRecognizer(similar_threshold=0.05)
        assert not rec.is_similar(shape("circle"), shape("line"))
        assert rec.distance(shape("circle"), shape("line")) > rec.distance(shape("circle"), shape("circle"))
