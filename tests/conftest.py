"""Shared fixtures: a scripted recognizer and a synchronous engine."""

from collections import deque
from concurrent.futures import Executor, Future

import numpy as np
import pytest

from gesture_arbiter.engine import GestureArbiterEngine
from gesture_arbiter.events import EVENT_NAMES
from gesture_arbiter.modes import ENTRY_LENGTH, SecurityLevel
from gesture_arbiter.recognizer import (
    CustomResult,
    InlineExecutor,
    PredefinedResult,
    Recognizer,
    SignatureResult,
    TrainResult,
)
from gesture_arbiter.samples import GestureSample


def make_sample(entries: int = 40, seed: int = 0) -> GestureSample:
    rng = np.random.default_rng(seed)
    data = rng.normal(size=(entries, ENTRY_LENGTH)).astype(np.float32)
    data[:, 0] = np.arange(entries) * 12.0
    return GestureSample(data)


class FakeRecognizer(Recognizer):
    """Recognizer whose answers are queued up by the test.

    When a queue is empty a neutral default is returned.
    """

    def __init__(self):
        self.train_results: deque = deque()
        self.signature_results: deque = deque()
        self.predefined_results: deque = deque()
        self.custom_results: deque = deque()
        self.similar = True
        self.calls: list[tuple] = []
        self.custom_gestures: dict = {}
        self.deleted: list[int] = []
        self.closed = False

    def train(self, target, sample):
        self.calls.append(("train", target, sample.entry_count))
        if self.train_results:
            return self.train_results.popleft()
        return TrainResult(progress=0.2, security_level=SecurityLevel.NONE, action_index=target)

    def identify_signature(self, sample, targets):
        self.calls.append(("identify_signature", list(targets)))
        if self.signature_results:
            return self.signature_results.popleft()
        return SignatureResult(match=targets[0])

    def identify_predefined(self, classifier, sub_classifier, labels, sample):
        self.calls.append(("identify_predefined", classifier, sub_classifier, list(labels)))
        if self.predefined_results:
            return self.predefined_results.popleft()
        return PredefinedResult()

    def identify_custom(self, sample, targets):
        self.calls.append(("identify_custom", list(targets)))
        if self.custom_results:
            return self.custom_results.popleft()
        return CustomResult()

    def set_custom_gesture(self, target, payload, entry_counts):
        self.calls.append(("set_custom_gesture", target, list(entry_counts)))
        self.custom_gestures[target] = (np.array(payload), list(entry_counts))

    def is_similar(self, first, second):
        self.calls.append(("is_similar",))
        if callable(self.similar):
            return self.similar(first, second)
        return self.similar

    def delete_target(self, target):
        self.calls.append(("delete_target", target))
        self.deleted.append(target)
        return True

    def close(self):
        self.closed = True

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def sample_factory():
    return make_sample


@pytest.fixture
def fake():
    return FakeRecognizer()


class DeferredExecutor(Executor):
    """Executor that holds jobs until the test releases them."""

    def __init__(self):
        self.pending: list = []

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            future.set_running_or_notify_cancel()
            future.set_result(fn(*args, **kwargs))


@pytest.fixture
def engine(fake):
    eng = GestureArbiterEngine(fake, executor=InlineExecutor())
    yield eng
    eng.close()


@pytest.fixture
def events(engine):
    """Every event the engine raises, grouped by name."""
    seen = {name: [] for name in EVENT_NAMES}
    for name in EVENT_NAMES:
        if name == "gesture_triggered":
            continue
        engine.on(name, seen[name].append)
    return seen
