"""Tests for common/user recognizer arbitration."""

import pytest

from gesture_arbiter.arbitration import Arbiter, SOURCE_BOTH, SOURCE_COMMON, SOURCE_USER
from gesture_arbiter.recognizer import CustomResult, PredefinedResult
from gesture_arbiter.stats import GestureStat, StatScope

TARGETS = ["circle", "heart", "star"]


class CustomSpy:
    def __init__(self, result=None):
        self.result = result or CustomResult()
        self.queried = []

    def __call__(self, labels):
        self.queried.append(list(labels))
        return self.result


def passing(label, score=1.5):
    return PredefinedResult(gesture=label, score=score, confidence=0.7)


@pytest.fixture
def arbiter():
    return Arbiter(pass_score=1.0)


class TestCommonFailure:
    def test_score_must_exceed_pass_score(self, arbiter):
        assert not arbiter.common_passed(PredefinedResult("circle", 1.0))
        assert arbiter.common_passed(PredefinedResult("circle", 1.01))
        assert not arbiter.common_passed(PredefinedResult("", 5.0))

    def test_falls_back_to_user(self, arbiter):
        spy = CustomSpy(CustomResult("heart", 0.8))
        result = arbiter.decide(PredefinedResult("circle", 0.4), None, TARGETS, spy)
        assert result.gesture == "heart"
        assert result.source == SOURCE_USER
        assert spy.queried == [TARGETS]

    def test_nothing_matched(self, arbiter):
        result = arbiter.decide(PredefinedResult(), None, TARGETS, CustomSpy())
        assert not result.matched
        assert result.source is None

    def test_no_targets(self, arbiter):
        spy = CustomSpy(CustomResult("heart"))
        result = arbiter.decide(PredefinedResult(), None, [], spy)
        assert not result.matched
        assert spy.queried == []


class TestCommonPassed:
    def test_no_stats_trusts_common(self, arbiter):
        spy = CustomSpy(CustomResult("heart"))
        result = arbiter.decide(passing("circle"), StatScope(), TARGETS, spy)
        assert (result.gesture, result.source) == ("circle", SOURCE_COMMON)
        assert spy.queried == []

    def test_common_erring_more_queries_user(self, arbiter):
        scope = StatScope()
        scope.ensure("circle").common_error_count = 3
        scope.ensure("circle").user_error_count = 1
        spy = CustomSpy(CustomResult("heart", 0.9))

        result = arbiter.decide(passing("circle"), scope, TARGETS, spy)
        assert (result.gesture, result.source) == ("heart", SOURCE_USER)
        assert spy.queried == [TARGETS]

    def test_agreement_reports_both(self, arbiter):
        scope = StatScope()
        scope.ensure("circle").common_error_count = 2
        result = arbiter.decide(passing("circle"), scope, TARGETS, CustomSpy(CustomResult("circle")))
        assert (result.gesture, result.source) == ("circle", SOURCE_BOTH)

    def test_common_favoured_skips_query(self, arbiter):
        scope = StatScope()
        stat = scope.ensure("circle")
        stat.common_confidence = 2.0
        stat.user_confidence = 1.0
        spy = CustomSpy(CustomResult("heart"))
        result = arbiter.decide(passing("circle"), scope, TARGETS, spy)
        assert result.source == SOURCE_COMMON
        assert spy.queried == []

    def test_equal_errors_user_confident_queries_custom(self, arbiter):
        scope = StatScope()
        stat = scope.ensure("circle")
        stat.common_error_count = 2
        stat.user_error_count = 2
        stat.common_confidence = 0.5
        stat.user_confidence = 0.9
        spy = CustomSpy(CustomResult("circle", 0.9))

        result = arbiter.decide(passing("circle"), scope, TARGETS, spy)
        assert spy.queried == [TARGETS]
        assert (result.gesture, result.source) == ("circle", SOURCE_BOTH)
        assert Arbiter.should_query_custom(stat)

    def test_equal_errors_higher_user_confidence_queries(self, arbiter):
        scope = StatScope()
        stat = scope.ensure("circle")
        stat.common_error_count = stat.user_error_count = 1
        stat.user_confidence = 3.0
        spy = CustomSpy(CustomResult("heart"))
        result = arbiter.decide(passing("circle"), scope, TARGETS, spy)
        assert result.gesture == "heart"
        assert spy.queried

    def test_user_label_with_worse_history_keeps_common(self, arbiter):
        scope = StatScope()
        scope.ensure("circle").common_error_count = 2
        heart = scope.ensure("heart")
        heart.user_error_count = 4
        heart.common_error_count = 1
        result = arbiter.decide(passing("circle"), scope, TARGETS, CustomSpy(CustomResult("heart")))
        assert (result.gesture, result.source) == ("circle", SOURCE_COMMON)

    def test_empty_user_result_keeps_common(self, arbiter):
        scope = StatScope()
        scope.ensure("circle").common_error_count = 2
        result = arbiter.decide(passing("circle"), scope, TARGETS, CustomSpy())
        assert (result.gesture, result.source) == ("circle", SOURCE_COMMON)

    def test_user_label_outside_targets_ignored(self, arbiter):
        scope = StatScope()
        scope.ensure("circle").common_error_count = 2
        result = arbiter.decide(passing("circle"), scope, TARGETS, CustomSpy(CustomResult("square")))
        assert result.gesture == "circle"


class TestShouldQueryCustom:
    def test_fresh_stat_favours_common(self):
        assert not Arbiter.should_query_custom(GestureStat())

    def test_user_erring_more(self):
        assert not Arbiter.should_query_custom(GestureStat(common_error_count=1, user_error_count=2))
