"""Contract of the pattern-matching oracle the engine drives.

The engine never scores samples itself. Everything that compares motion
data goes through a `Recognizer`; its methods are plain blocking calls
and the engine decides on which executor they run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from gesture_arbiter.modes import SecurityLevel
from gesture_arbiter.samples import GestureSample

Target = Union[int, str]


@dataclass
class TrainResult:
    """Outcome of one incremental signature training step."""
    progress: float
    security_level: SecurityLevel = SecurityLevel.NONE
    error_code: int = 0
    action_index: Optional[int] = None

    @property
    def failed(self) -> bool:
        return self.error_code != 0


@dataclass
class SignatureResult:
    match: Optional[int] = None
    error_code: int = 0


@dataclass
class PredefinedResult:
    gesture: str = ""
    score: float = 0.0
    confidence: float = 0.0


@dataclass
class CustomResult:
    best_match: Optional[Target] = None
    confidence: float = 0.0


class Recognizer(ABC):
    """Opaque scoring engine for signatures, predefined and custom gestures."""

    @abstractmethod
    def train(self, target: int, sample: GestureSample) -> TrainResult:
        ...

    @abstractmethod
    def identify_signature(self, sample: GestureSample, targets: Sequence[int]) -> SignatureResult:
        ...

    @abstractmethod
    def identify_predefined(
        self,
        classifier: str,
        sub_classifier: str,
        labels: Sequence[str],
        sample: GestureSample,
    ) -> PredefinedResult:
        ...

    @abstractmethod
    def identify_custom(self, sample: GestureSample, targets: Sequence[Target]) -> CustomResult:
        ...

    @abstractmethod
    def set_custom_gesture(self, target: Target, payload: np.ndarray, entry_counts: Sequence[int]):
        """Index a batch of samples, flattened into one payload, under target."""

    @abstractmethod
    def is_similar(self, first: GestureSample, second: GestureSample) -> bool:
        ...

    @abstractmethod
    def delete_target(self, target: int) -> bool:
        ...

    def is_custom_gesture_existed(self, sample: GestureSample) -> bool:
        return False

    def close(self):
        """Release engine resources."""
        pass


class InlineExecutor(Executor):
    """Executor that runs each job immediately on the submitting thread.

    Gives deterministic ordering for tests and one-shot CLI runs.
    """

    def __init__(self):
        self._shutdown = False

    def submit(self, fn, /, *args, **kwargs) -> Future:
        if self._shutdown:
            raise RuntimeError("cannot schedule new futures after shutdown")
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False):
        self._shutdown = True
