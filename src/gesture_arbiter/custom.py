"""User-defined gestures: similarity-gated batches and the player cache."""

from __future__ import annotations

import logging
from typing import Iterable

from gesture_arbiter.recognizer import Recognizer, Target
from gesture_arbiter.samples import GestureSample, flatten_samples

logger = logging.getLogger("gesture_arbiter.custom")


class CustomGestureTrainer:
    """Accumulates repeated samples of one gesture before indexing them.

    The first sample of a batch is always accepted. Later samples are kept
    only if the recognizer finds them similar to at least one sample
    already in the batch.
    """

    def __init__(self, recognizer: Recognizer):
        self._recognizer = recognizer
        self._batch: list[GestureSample] = []

    @property
    def batch(self) -> list[GestureSample]:
        return list(self._batch)

    def __len__(self) -> int:
        return len(self._batch)

    def add(self, sample: GestureSample) -> bool:
        """Offer a sample to the batch. Returns True if it was accepted."""
        if not self._batch:
            logger.debug("Adding first custom sample")
            self._batch.append(sample)
            return True

        has_similar = False
        for i, previous in enumerate(self._batch):
            similar = self._recognizer.is_similar(previous, sample)
            logger.debug("Custom sample vs [%d]: %s", i, similar)
            if similar:
                has_similar = True

        if has_similar:
            self._batch.append(sample)
        return has_similar

    def commit(self, target: Target) -> int:
        """Index the batch under target and clear it. Returns samples committed."""
        count = len(self._batch)
        if count == 0:
            return 0
        payload, entry_counts = flatten_samples(self._batch)
        logger.info("Setting custom gesture %r from %d samples", target, count)
        self._recognizer.set_custom_gesture(target, payload, entry_counts)
        self._batch.clear()
        return count

    def clear(self):
        self._batch.clear()


class PlayerGestureCache:
    """Long-lived per-target store of raw samples for AddPlayerGesture mode.

    Samples are not similarity filtered; they are committed only on an
    explicit set_player_gesture().
    """

    def __init__(self, recognizer: Recognizer):
        self._recognizer = recognizer
        self._cache: dict[int, list[GestureSample]] = {}

    def add(self, sample: GestureSample, targets: Iterable[int]) -> dict[int, int]:
        """Append sample under every target. Returns the new count per target."""
        counts = {}
        for index in targets:
            self._cache.setdefault(index, []).append(sample)
            counts[index] = len(self._cache[index])
        return counts

    def count(self, index: int) -> int:
        return len(self._cache.get(index, []))

    def set_player_gesture(self, targets: Iterable[int], clear_on_set: bool = True) -> dict[int, int]:
        """Commit cached samples to the recognizer.

        Returns:
            {target: number of samples committed}; targets with nothing
            cached are skipped.
        """
        result = {}
        for index in targets:
            cache = self._cache.get(index)
            if not cache:
                continue
            logger.debug("Player gesture count - %d: %d", index, len(cache))
            payload, entry_counts = flatten_samples(cache)
            result[index] = len(cache)
            self._recognizer.set_custom_gesture(index, payload, entry_counts)
            if clear_on_set:
                cache.clear()
        return result

    def clear(self):
        self._cache.clear()
