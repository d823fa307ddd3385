"""Incremental signature training with mistouch and consistency filtering.

A signature is enrolled over several attempts. The recognizer reports a
progress fraction after each attempt; the coordinator decides which
failed attempts are worth reporting and when a bad enrollment must be
discarded:

- fewer than COMMON_MISTOUCH_THRESHOLD entries: accidental tap, ignored
- shorter than 65% of the first accepted attempt: too few samples
- otherwise: inconsistent with the earlier attempts

Three strikes, or any error before progress reaches 0.5, rolls the
target back to zero.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable

from gesture_arbiter.errors import SIGN_TOO_FEW_WORD, EngineError, ErrorKind
from gesture_arbiter.events import SignatureTrainedEvent
from gesture_arbiter.modes import (
    COMMON_MISTOUCH_THRESHOLD,
    FIRST_STEP_PROGRESS,
    MAX_TRAIN_FAIL_COUNT,
    ROLLBACK_PROGRESS,
    TRAIN_DATA_THRESHOLD_RATIO,
    SecurityLevel,
)
from gesture_arbiter.recognizer import Recognizer, TrainResult
from gesture_arbiter.samples import GestureSample
from gesture_arbiter.train_data import TrainData

logger = logging.getLogger("gesture_arbiter.training")


@dataclass
class TrainingBundle:
    """State carried through one training round trip."""
    gesture_id: int
    target: int
    samples: list[GestureSample] = field(default_factory=list)
    progress: float = 0.0

    @property
    def last_size(self) -> int:
        return self.samples[-1].entry_count if self.samples else 0


class TrainingCoordinator:
    """Interprets recognizer training results and drives rollback.

    Not thread-safe on its own; the engine calls it under its lock.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        train_data: TrainData,
        emit: Callable[[SignatureTrainedEvent], None],
        mistouch_threshold: int = COMMON_MISTOUCH_THRESHOLD,
        size_ratio: float = TRAIN_DATA_THRESHOLD_RATIO,
        max_fail_count: int = MAX_TRAIN_FAIL_COUNT,
    ):
        self._recognizer = recognizer
        self.train_data = train_data
        self._emit = emit
        self.mistouch_threshold = mistouch_threshold
        self.size_ratio = size_ratio
        self.max_fail_count = max_fail_count

        self.fail_count = 0
        self.first_sample_sizes: dict[int, int] = {}
        self.security_too_low_count = 0

    @property
    def is_low_secure_signature(self) -> bool:
        """True once enrollment was discarded more than twice in a row."""
        return self.security_too_low_count > 2

    def reset_fail_count(self):
        self.fail_count = 0

    def begin(self, gesture_id: int, target: int, sample: GestureSample) -> TrainingBundle:
        return TrainingBundle(gesture_id=gesture_id, target=target, samples=[sample])

    def first_sample_size(self, target: int) -> int:
        """Entry count of the first accepted attempt for target, 0 if unknown."""
        return self.first_sample_sizes.get(target, 0)

    def on_result(self, bundle: TrainingBundle, result: TrainResult):
        """Continuation for one recognizer train() call."""
        progress = result.progress
        size = bundle.last_size

        if math.isclose(progress, FIRST_STEP_PROGRESS) and not result.failed:
            if bundle.samples and self.first_sample_size(bundle.target) == 0:
                self.first_sample_sizes[bundle.target] = size
                logger.debug("First train data size for target %d: %d", bundle.target, size)
        elif progress >= 1.0 and not result.failed:
            self.first_sample_sizes.pop(bundle.target, None)
            self.security_too_low_count = 0
        else:
            logger.debug("Train data size for target %d: %d", bundle.target, size)

        if result.failed:
            self._on_error(bundle, result, size)
        elif result.action_index is not None:
            logger.debug(
                "Signature %d progress %.2f security %s",
                bundle.target, progress, result.security_level.name,
            )
            self.fail_count = 0
            self.train_data.train_progress[bundle.target] = progress
            self._notify(bundle, progress, result.security_level, None)
        else:
            logger.debug("Training result for %d carried neither action nor error", bundle.target)

        bundle.progress = progress

    def _on_error(self, bundle: TrainingBundle, result: TrainResult, size: int):
        progress = result.progress
        logger.debug(
            "Add signature %d failed with %d (progress %.2f, fail count %d, size %d)",
            bundle.target, result.error_code, progress, self.fail_count, size,
        )

        if size < self.mistouch_threshold:
            logger.debug("Mistouch of %d entries suppressed", size)
            return

        first_size = self.first_sample_size(bundle.target)
        if first_size <= 0 or progress < FIRST_STEP_PROGRESS:
            self._notify(bundle, 0.0, SecurityLevel.NONE, EngineError.recognizer(result.error_code))
            return

        self.fail_count += 1
        should_rollback = self.fail_count >= self.max_fail_count or progress < ROLLBACK_PROGRESS

        if size < first_size * self.size_ratio:
            logger.debug("Signature too short compared to first attempt")
            self._notify(
                bundle, progress, SecurityLevel.NONE,
                EngineError(ErrorKind.TOO_FEW_SAMPLES, SIGN_TOO_FEW_WORD, "Sign too few words"),
            )
            if should_rollback:
                self._rollback(bundle, result.error_code)
            return

        if should_rollback:
            self._rollback(bundle, result.error_code)
        else:
            logger.debug("Signature inconsistent with earlier attempts")
            self._notify(
                bundle, progress, SecurityLevel.NONE,
                EngineError(ErrorKind.INCONSISTENT_SIGNATURE, result.error_code),
            )

    def _rollback(self, bundle: TrainingBundle, code: int):
        logger.info("Rolling back signature training for target %d", bundle.target)
        self._recognizer.delete_target(bundle.target)
        self.train_data.train_progress[bundle.target] = 0.0
        self.fail_count = 0
        self.first_sample_sizes.pop(bundle.target, None)
        self.security_too_low_count += 1
        self._notify(
            bundle, 0.0, SecurityLevel.NONE,
            EngineError(ErrorKind.TRAINING_ABORTED, code, "Training aborted"),
        )

    def _notify(self, bundle: TrainingBundle, progress: float, level: SecurityLevel, error):
        self._emit(SignatureTrainedEvent(
            gesture_id=bundle.gesture_id,
            target=bundle.target,
            progress=progress,
            security_level=level,
            error=error,
        ))
