"""Chooses between the common recognizer and the user-trained recognizer.

The two recognizers have different error profiles per label and per
player. For each predefined identification the arbiter looks at the
statistics of the label the common recognizer returned:

1. no stats for the label: trust the common result
2. the common path errs more often than the user path, or both err
   equally but the user path has the higher accumulated confidence:
   ask the custom recognizer
3. custom agrees: report it; custom disagrees: report it unless the
   custom label's own history shows the common path is more reliable
4. custom gave nothing usable: fall back to the common result

When the common recognizer itself fails, the custom recognizer is asked
directly over the current targets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from gesture_arbiter.modes import COMMON_PASS_SCORE
from gesture_arbiter.recognizer import CustomResult, PredefinedResult
from gesture_arbiter.stats import GestureStat, StatScope

logger = logging.getLogger("gesture_arbiter.arbitration")

SOURCE_COMMON = "common"
SOURCE_USER = "user"
SOURCE_BOTH = "both"


@dataclass
class ArbitrationResult:
    gesture: str
    source: Optional[str] = None  # None when nothing matched

    @property
    def matched(self) -> bool:
        return bool(self.gesture)


class Arbiter:
    """Stats-weighted selection between common and user results."""

    def __init__(self, pass_score: float = COMMON_PASS_SCORE):
        self.pass_score = pass_score

    def common_passed(self, common: PredefinedResult) -> bool:
        return bool(common.gesture) and common.score > self.pass_score

    @staticmethod
    def should_query_custom(stat: GestureStat) -> bool:
        compare_custom = (
            stat.common_error_count == stat.user_error_count and not stat.favors_common
        )
        return stat.common_error_count > stat.user_error_count or compare_custom

    def decide(
        self,
        common: PredefinedResult,
        scope: Optional[StatScope],
        targets: Sequence[str],
        identify_custom: Callable[[Sequence[str]], CustomResult],
    ) -> ArbitrationResult:
        """Pick the reported label for one identification.

        Args:
            common: Result of the common recognizer over `targets`.
            scope: Statistics for the current classifier, if any.
            targets: Predefined labels currently being identified.
            identify_custom: Queries the user-trained recognizer over a
                label set.
        """
        if not self.common_passed(common):
            logger.debug("Common identify failed, trying user gesture over %s", list(targets))
            if not targets:
                return ArbitrationResult("")
            custom = identify_custom(targets)
            if custom.best_match is not None and str(custom.best_match):
                return ArbitrationResult(str(custom.best_match), SOURCE_USER)
            return ArbitrationResult("")

        stat = scope.get(common.gesture) if scope is not None else None
        if stat is None:
            return ArbitrationResult(common.gesture, SOURCE_COMMON)

        logger.debug(
            "Stats for %s - commonErr:%d userErr:%d commonConf:%.3f userConf:%.3f",
            common.gesture, stat.common_error_count, stat.user_error_count,
            stat.common_confidence, stat.user_confidence,
        )
        if not self.should_query_custom(stat):
            return ArbitrationResult(common.gesture, SOURCE_COMMON)

        custom = identify_custom(targets)
        best = str(custom.best_match) if custom.best_match is not None else ""
        if not best or best not in targets:
            return ArbitrationResult(common.gesture, SOURCE_COMMON)

        if best == common.gesture:
            return ArbitrationResult(best, SOURCE_BOTH)

        other = scope.get(best)
        if other is not None and other.common_error_count < other.user_error_count:
            # user path is worse for that label, keep the known-good baseline
            return ArbitrationResult(common.gesture, SOURCE_COMMON)
        return ArbitrationResult(best, SOURCE_USER)
