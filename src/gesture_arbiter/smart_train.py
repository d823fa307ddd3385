"""Promotes high-confidence common-gesture matches into a user gesture.

While smart-train mode is active, every sample the common recognizer
scores above SMART_TRAIN_PASS_THRESHOLD for the current target is kept
as a candidate. When the mode is left the best candidates are replayed
into the custom trainer and committed under the target's label.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Optional

from gesture_arbiter.custom import CustomGestureTrainer
from gesture_arbiter.modes import SMART_TRAIN_MIN_CANDIDATES, SMART_TRAIN_PASS_THRESHOLD
from gesture_arbiter.recognizer import Target
from gesture_arbiter.samples import GestureSample
from gesture_arbiter.train_data import TrainData

logger = logging.getLogger("gesture_arbiter.smart_train")


@dataclass
class SmartTrainCandidate:
    score: float
    seq: int  # insertion order, breaks score ties in favour of later samples
    sample: GestureSample


class SmartTrainSelector:
    """Score-ordered candidate buffer with flush-and-commit."""

    def __init__(
        self,
        trainer: CustomGestureTrainer,
        train_data: TrainData,
        pass_threshold: float = SMART_TRAIN_PASS_THRESHOLD,
        min_candidates: int = SMART_TRAIN_MIN_CANDIDATES,
    ):
        self._trainer = trainer
        self.train_data = train_data
        self.pass_threshold = pass_threshold
        self.min_candidates = min_candidates
        self._candidates: list[SmartTrainCandidate] = []
        self._seq = itertools.count()
        # label -> ordered samples of the last commit, replayed by stats refresh
        self.snapshots: dict[str, list[GestureSample]] = {}

    def __len__(self) -> int:
        return len(self._candidates)

    def offer(self, score: float, sample: GestureSample) -> bool:
        """Keep sample if its score passes the threshold."""
        if score <= self.pass_threshold:
            return False
        self._candidates.append(SmartTrainCandidate(score, next(self._seq), sample))
        logger.debug("Smart train candidate added, score %.3f (%d buffered)", score, len(self._candidates))
        return True

    def ordered(self) -> list[SmartTrainCandidate]:
        """Candidates by descending score."""
        return sorted(self._candidates, key=lambda c: (c.score, c.seq), reverse=True)

    def flush(self, target: Target) -> Optional[list[GestureSample]]:
        """Commit buffered candidates under target, then clear the buffer.

        Returns:
            The samples replayed, best first, or None when fewer than
            min_candidates were buffered.
        """
        ordered = self.ordered()
        logger.debug("Smart train flush for %r with %d candidates", target, len(ordered))
        self._candidates.clear()

        if len(ordered) < self.min_candidates:
            return None

        logger.debug(
            "Smart train order for %r: %s",
            target, ", ".join(f"{c.score:.4f}" for c in ordered),
        )
        samples = [c.sample for c in ordered]
        self._trainer.clear()
        for sample in samples:
            self._trainer.add(sample)

        self.train_data.mark_user_preferred(target)
        self._trainer.commit(target)
        if not isinstance(target, int):
            self.snapshots[target] = samples
        logger.info("Smart train completed for %r", target)
        return samples

    def clear(self):
        self._candidates.clear()
