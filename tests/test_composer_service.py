"""
Pytest tests for DailyQuizComposerService, wired to in-memory stores
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from dailyquiz.core.clock import FixedClock
from dailyquiz.core.exceptions import (
    DuplicateQuizError,
    NoQuestionsSelectedError,
    QuizNotFoundError,
)
from dailyquiz.schemas.daily_quiz import ComposerConfig, DailyQuizMode
from dailyquiz.schemas.question import Difficulty
from dailyquiz.services.composer import DailyQuizComposerService
from tests.fakes import (
    InMemoryCompositionLogStore,
    InMemoryDailyQuizStore,
    InMemoryQuestionStore,
    RecordingPublisher,
    make_pool,
    make_question,
)

NOW = datetime(2025, 12, 12, 12, 0, tzinfo=timezone.utc)
DROP_AT = datetime(2025, 12, 13, 22, 0, tzinfo=timezone.utc)


class ComposerTestBase:
    def setup_method(self):
        self.question_store = InMemoryQuestionStore(make_pool(easy=10, medium=6, hard=3))
        self.quiz_store = InMemoryDailyQuizStore()
        self.log_store = InMemoryCompositionLogStore()
        self.publisher = RecordingPublisher()
        self.clock = FixedClock(NOW)
        self.composer = self._composer()

    def _composer(self, **kwargs):
        values = dict(
            question_store=self.question_store,
            quiz_store=self.quiz_store,
            log_store=self.log_store,
            publisher=self.publisher,
            clock=self.clock,
            config=ComposerConfig(),
        )
        values.update(kwargs)
        return DailyQuizComposerService(**values)


class TestComposeDailyQuiz(ComposerTestBase):
    def test_happy_path(self):
        response = self.composer.compose_daily_quiz(DROP_AT, DailyQuizMode.MIX)

        assert response.quiz_id == "quiz-1"
        assert len(response.question_ids) == 6
        assert response.relaxation_level == 0
        assert response.template_version == 1
        assert response.template_location == "https://cdn.test/quiz/2025-12-13/v1.json"
        assert response.template_error is None
        assert response.warnings == []

        quiz = self.quiz_store.get_by_id(response.quiz_id)
        assert quiz.template_location == response.template_location
        assert [link.question_id for link in self.quiz_store.get_links(quiz.id)] == (
            response.question_ids
        )
        assert self.publisher.calls == ["2025-12-13/v1"]

    def test_usage_recorded_at_drop_time(self):
        response = self.composer.compose_daily_quiz(DROP_AT)

        for question_id in response.question_ids:
            question = self.question_store.questions[question_id]
            assert question.exposure_count == 1
            assert question.last_used_at == DROP_AT
        assert self.question_store.questions["e-09"].exposure_count == 0

    def test_published_template_has_no_answers(self):
        self.composer.compose_daily_quiz(DROP_AT)

        content = self.publisher.published["2025-12-13/v1"]
        payload = json.loads(content)
        assert b"isCorrect" not in content
        assert payload["id"] == "quiz-1"
        assert payload["metadata"]["difficultyBreakdown"] == {"easy": 3, "medium": 2, "hard": 1}

    def test_composition_log_written(self):
        response = self.composer.compose_daily_quiz(DROP_AT, DailyQuizMode.SPOTLIGHT)

        assert len(self.log_store.logs) == 1
        log = self.log_store.logs[0]
        assert log.daily_quiz_id == response.quiz_id
        assert log.mode == DailyQuizMode.SPOTLIGHT
        assert log.has_errors is False
        assert log.timestamp == NOW
        assert log.final_selection.total_questions == 6
        assert log.final_selection.difficulty_target == {"easy": 3, "medium": 2, "hard": 1}
        assert [step.difficulty for step in log.selection_process] == [
            Difficulty.EASY,
            Difficulty.MEDIUM,
            Difficulty.HARD,
        ]
        assert log.performance.db_queries >= 4

    def test_event_mode_on_plain_day_stores_requested_mode(self):
        drop_at = datetime(2025, 12, 14, 22, 0, tzinfo=timezone.utc)

        response = self.composer.compose_daily_quiz(drop_at, DailyQuizMode.EVENT)

        quiz = self.quiz_store.get_by_id(response.quiz_id)
        assert quiz.mode == DailyQuizMode.EVENT
        assert quiz.theme_plan["mode"] == "mix"
        payload = json.loads(self.publisher.published["2025-12-14/v1"])
        assert payload["mode"] == "mix"

    def test_duplicate_drop_is_rejected(self):
        self.composer.compose_daily_quiz(DROP_AT)

        with pytest.raises(DuplicateQuizError):
            self.composer.compose_daily_quiz(DROP_AT)

        assert self.quiz_store.count() == 1
        assert len(self.log_store.logs) == 2
        failed = self.log_store.logs[-1]
        assert failed.has_errors is True
        assert "already exists" in failed.error_message
        assert failed.daily_quiz_id is None

    def test_duplicate_detected_by_store_constraint(self):
        self.composer.compose_daily_quiz(DROP_AT)
        usage_before = {qid: q.exposure_count for qid, q in self.question_store.questions.items()}

        with patch.object(self.quiz_store, "get_by_drop_at", return_value=None):
            with pytest.raises(DuplicateQuizError):
                self.composer.compose_daily_quiz(DROP_AT)

        assert self.quiz_store.count() == 1
        assert {
            qid: q.exposure_count for qid, q in self.question_store.questions.items()
        } == usage_before

    def test_empty_pool_raises_no_questions(self):
        self.question_store.questions.clear()

        with pytest.raises(NoQuestionsSelectedError):
            self.composer.compose_daily_quiz(DROP_AT)

        assert self.quiz_store.count() == 0
        assert self.log_store.logs[-1].has_errors is True
        assert self.publisher.calls == []

    def test_emergency_quiz_proceeds_with_warnings(self):
        self.question_store = InMemoryQuestionStore(
            [
                make_question(f"e-{i:02d}", exposure_count=i, last_used_at=DROP_AT - timedelta(days=2))
                for i in range(3)
            ]
            + make_pool(easy=0)
        )
        composer = self._composer()

        response = composer.compose_daily_quiz(DROP_AT)

        assert len(response.question_ids) == 6
        assert response.relaxation_level == 5
        assert any(w.startswith("Emergency fallback") for w in response.warnings)
        assert self.log_store.logs[-1].relaxation_level == 5

    def test_publish_failure_keeps_quiz(self):
        self.publisher.fail = True

        response = self.composer.compose_daily_quiz(DROP_AT)

        assert response.template_location is None
        assert "Failed to upload template" in response.template_error
        assert any(w.startswith("Template not published") for w in response.warnings)
        quiz = self.quiz_store.get_by_id(response.quiz_id)
        assert quiz.template_location is None
        assert self.question_store.questions[response.question_ids[0]].exposure_count == 1

    def test_validation_failure_keeps_quiz(self):
        self.question_store.questions = {
            q.id: q for q in make_pool(easy=3, medium=2, hard=1, prompt={"task": "Answer"})
        }

        response = self.composer.compose_daily_quiz(DROP_AT)

        assert response.template_location is None
        assert "prompt missing required field(s) question" in response.template_error
        assert self.publisher.calls == []
        assert self.quiz_store.count() == 1

    def test_log_store_failure_is_not_fatal(self):
        composer = self._composer(log_store=InMemoryCompositionLogStore(fail=True))

        response = composer.compose_daily_quiz(DROP_AT)

        assert response.template_location is not None


class TestTemplatePublishing(ComposerTestBase):
    def test_publish_is_noop_when_already_published(self):
        response = self.composer.compose_daily_quiz(DROP_AT)

        result = self.composer.publish_template(response.quiz_id)

        assert result.published is False
        assert result.template_location == response.template_location
        assert self.publisher.calls == ["2025-12-13/v1"]

    def test_publish_after_failed_upload(self):
        self.publisher.fail = True
        response = self.composer.compose_daily_quiz(DROP_AT)
        self.publisher.fail = False

        result = self.composer.publish_template(response.quiz_id)

        assert result.published is True
        assert result.template_version == 1
        assert result.template_location == "https://cdn.test/quiz/2025-12-13/v1.json"
        assert self.quiz_store.get_by_id(response.quiz_id).has_template

    def test_regenerate_bumps_version(self):
        response = self.composer.compose_daily_quiz(DROP_AT)

        result = self.composer.regenerate_template(response.quiz_id)

        assert result.template_version == 2
        assert result.template_location == "https://cdn.test/quiz/2025-12-13/v2.json"
        quiz = self.quiz_store.get_by_id(response.quiz_id)
        assert quiz.template_version == 2
        assert quiz.template_location == result.template_location

    def test_regenerate_uses_difficulty_recorded_at_selection(self):
        response = self.composer.compose_daily_quiz(DROP_AT)
        first_id = response.question_ids[0]
        edited = self.question_store.questions[first_id]
        edited.difficulty = Difficulty.HARD

        self.composer.regenerate_template(response.quiz_id)

        payload = json.loads(self.publisher.published["2025-12-13/v2"])
        by_id = {q["id"]: q for q in payload["questions"]}
        assert by_id[first_id]["difficulty"] == "easy"
        assert payload["version"] == 2

    def test_unknown_quiz(self):
        with pytest.raises(QuizNotFoundError):
            self.composer.publish_template("missing")
        with pytest.raises(QuizNotFoundError):
            self.composer.regenerate_template("missing")


class TestMonitoring(ComposerTestBase):
    def test_preview_feasible(self):
        preview = self.composer.preview_composition(DROP_AT, DailyQuizMode.EVENT)

        assert preview.feasible is True
        assert preview.preview_mode is True
        assert preview.theme_plan["event"] == "Taylor Swift's Birthday"
        assert preview.difficulty_distribution == {"easy": 3, "medium": 2, "hard": 1}
        assert preview.available_questions == {"easy": 10, "medium": 6, "hard": 3}
        assert preview.warnings == ["This is a preview - no records will be created"]
        assert self.quiz_store.count() == 0
        assert self.log_store.logs == []

    def test_preview_reports_shortage(self):
        self.question_store.questions = {q.id: q for q in make_pool(easy=1, medium=6, hard=3)}

        preview = self.composer.preview_composition(DROP_AT)

        assert preview.feasible is False
        assert "Insufficient easy questions: need 3, have 1" in preview.warnings
        assert "easy: reduced from 3 to 1 (deficit: 2)" in preview.warnings

    def test_preview_reports_existing_quiz(self):
        self.composer.compose_daily_quiz(DROP_AT)

        preview = self.composer.preview_composition(DROP_AT)

        assert preview.feasible is False
        assert any("already exists" in w for w in preview.warnings)

    def test_composition_stats(self):
        self.composer.compose_daily_quiz(DROP_AT)

        stats = self.composer.get_composition_stats()

        assert stats.total_quizzes == 1
        assert stats.average_relaxation_level == 0.0
        assert stats.theme_distribution == {"trivia": 6}
        assert stats.by_difficulty == {"easy": 10, "medium": 6, "hard": 3}

    def test_health_with_recent_quiz(self):
        self.clock.instant = DROP_AT - timedelta(hours=1)
        self.composer.compose_daily_quiz(DROP_AT)

        health = self.composer.get_system_health()

        assert health.healthy is True
        assert health.issues == []
        assert health.recent_compositions[0].question_count == 6

    def test_health_flags_small_pool_and_no_compositions(self):
        self.question_store.questions = {q.id: q for q in make_pool(easy=2, medium=6, hard=3)}

        health = self.composer.get_system_health()

        assert health.healthy is False
        assert "Low easy question count: 2 (minimum: 10)" in health.issues
        assert "No recent quiz compositions found" in health.issues

    def test_health_check_failure_is_reported(self):
        with patch.object(self.log_store, "list_since", side_effect=RuntimeError("db down")):
            health = self.composer.get_system_health()

        assert health.healthy is False
        assert health.issues == ["Health check failed: db down"]

    def test_recent_composition_logs(self):
        self.composer.compose_daily_quiz(DROP_AT)
        self.composer.compose_daily_quiz(DROP_AT + timedelta(days=1))

        result = self.composer.get_recent_composition_logs(limit=1)

        assert result.pagination.total == 2
        assert len(result.logs) == 1
        assert result.logs[0].drop_at_utc == DROP_AT + timedelta(days=1)
        assert result.logs[0].question_count == 6

    def test_configuration_options(self):
        options = self.composer.get_configuration_options()

        assert DailyQuizMode.SPOTLIGHT in options.modes
        assert len(options.themes) == 19
        assert options.default_config.target_question_count == 6
