"""
Pytest tests for AntiRepeatService
"""

from datetime import datetime, timedelta, timezone

import pytest

from dailyquiz.domain.selection import SelectionCriteria
from dailyquiz.schemas.question import Difficulty
from dailyquiz.services.anti_repeat import AntiRepeatService
from tests.fakes import InMemoryQuestionStore, make_question

REFERENCE = datetime(2025, 6, 1, 22, 0, tzinfo=timezone.utc)


def days_ago(days):
    return REFERENCE - timedelta(days=days)


class TestThresholds:
    def setup_method(self):
        self.service = AntiRepeatService(InMemoryQuestionStore())

    def test_relaxation_ladder(self):
        assert [self.service.threshold_days(level) for level in range(5)] == [30, 21, 14, 10, 7]
        assert self.service.max_level == 4

    def test_level_out_of_range_raises(self):
        with pytest.raises(ValueError):
            self.service.threshold_days(5)
        with pytest.raises(ValueError):
            self.service.threshold_days(-1)

    def test_cutoff_is_relative_to_reference(self):
        assert self.service.cutoff(REFERENCE, 2) == days_ago(14)


class TestEvaluate:
    def setup_method(self):
        self.service = AntiRepeatService(InMemoryQuestionStore(), max_exposure_bias=10)

    def test_recently_used_question_waits_for_relaxation(self):
        question = make_question("q1", last_used_at=days_ago(25))

        strict = self.service.evaluate(question, REFERENCE, 0)
        relaxed = self.service.evaluate(question, REFERENCE, 1)

        assert strict.is_eligible is False
        assert strict.days_since_last_used == 25
        assert strict.reason == "Used 25 days ago, threshold is 30 days"
        assert relaxed.is_eligible is True
        assert relaxed.reason is None

    def test_never_used_question_is_eligible(self):
        info = self.service.evaluate(make_question("q1"), REFERENCE, 0)

        assert info.is_eligible is True
        assert info.days_since_last_used is None

    def test_exposure_ceiling_only_at_strictest_level(self):
        question = make_question("q1", exposure_count=12)

        strict = self.service.evaluate(question, REFERENCE, 0)
        relaxed = self.service.evaluate(question, REFERENCE, 1)

        assert strict.is_eligible is False
        assert strict.reason.startswith("Overexposed (12 times)")
        assert relaxed.is_eligible is True


class TestEligibleQuestions:
    def setup_method(self):
        self.store = InMemoryQuestionStore(
            [
                make_question("fresh"),
                make_question("used-25", last_used_at=days_ago(25)),
                make_question("overexposed", exposure_count=11),
                make_question("hard-1", difficulty=Difficulty.HARD),
            ]
        )
        self.service = AntiRepeatService(self.store, max_exposure_bias=10)

    def _criteria(self, **kwargs):
        values = dict(
            difficulty=Difficulty.EASY,
            exclude_question_ids=[],
            max_days_since_last_used=30,
            max_exposure_count=10,
        )
        values.update(kwargs)
        return SelectionCriteria(**values)

    def test_level_zero_applies_recency_and_exposure(self):
        result = self.service.get_eligible_questions(self._criteria(), 0, REFERENCE)

        assert [q.id for q in result] == ["fresh"]

    def test_relaxed_level_drops_exposure_ceiling(self):
        result = self.service.get_eligible_questions(self._criteria(), 1, REFERENCE)

        assert [q.id for q in result] == ["fresh", "used-25", "overexposed"]
        criteria, cutoff = self.store.eligible_calls[-1]
        assert criteria.max_exposure_count is None
        assert cutoff == days_ago(21)

    def test_excluded_ids_are_skipped(self):
        result = self.service.get_eligible_questions(
            self._criteria(exclude_question_ids=["fresh"]), 0, REFERENCE
        )

        assert result == []


class TestUsageAndStats:
    def setup_method(self):
        self.store = InMemoryQuestionStore(
            [
                make_question("e-00", exposure_count=0),
                make_question("e-01", exposure_count=2, last_used_at=days_ago(25)),
                make_question("e-02", exposure_count=4, last_used_at=days_ago(8)),
            ]
        )
        self.service = AntiRepeatService(self.store)

    def test_update_usage_increments_exposure(self):
        updated = self.service.update_question_usage(["e-00", "e-01"], REFERENCE)

        assert updated == 2
        assert self.store.questions["e-00"].exposure_count == 1
        assert self.store.questions["e-01"].exposure_count == 3
        assert self.store.questions["e-00"].last_used_at == REFERENCE
        assert self.store.questions["e-02"].exposure_count == 4

    def test_update_usage_with_no_ids_is_noop(self):
        assert self.service.update_question_usage([], REFERENCE) == 0

    def test_availability_stats(self):
        stats = self.service.get_availability_stats(Difficulty.EASY, REFERENCE)

        assert stats["total"] == 3
        assert stats["available"] == {0: 1, 1: 2, 2: 2, 3: 2, 4: 3}
        assert stats["average_exposure"] == 2.0
        assert stats["oldest_last_used"] == days_ago(25)
