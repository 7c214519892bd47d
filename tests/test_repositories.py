"""
Pytest tests for the SQLAlchemy repositories against an in-memory SQLite database
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dailyquiz.core.database import Base
from dailyquiz.core.exceptions import DuplicateQuizError, QuizNotFoundError
from dailyquiz.domain.daily_quiz_domain import QuizQuestionLink
from dailyquiz.domain.selection import SelectionCriteria
from dailyquiz.models import DailyQuizQuestion
from dailyquiz.repositories import (
    CompositionLogRepository,
    DailyQuizRepository,
    QuestionRepository,
)
from dailyquiz.schemas.daily_quiz import (
    CompositionLog,
    DailyQuizMode,
    FinalSelectionLog,
    PerformanceLog,
)
from dailyquiz.schemas.question import Difficulty

DROP_AT = datetime(2025, 12, 13, 22, 0, tzinfo=timezone.utc)


def question_row(question_id, difficulty="easy", **kwargs):
    row = {
        "id": question_id,
        "question_type": "life-trivia",
        "difficulty": difficulty,
        "themes_json": ["trivia"],
        "subjects_json": [],
        "prompt_json": {"task": "Answer", "question": f"{question_id}?"},
        "choices_json": [{"id": "a", "text": "A"}],
        "correct_json": {"choiceId": "a"},
        "approved": True,
        "disabled": False,
        "exposure_count": 0,
    }
    row.update(kwargs)
    return row


def link(question_id, difficulty="easy"):
    return QuizQuestionLink(
        question_id=question_id, difficulty=difficulty, question_type="life-trivia"
    )


class RepositoryTestBase:
    def setup_method(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=self.engine)
        self.db = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)()
        self.questions = QuestionRepository(self.db)
        self.quizzes = DailyQuizRepository(self.db)
        self.logs = CompositionLogRepository(self.db)

    def teardown_method(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()


class TestQuestionRepository(RepositoryTestBase):
    def setup_method(self):
        super().setup_method()
        self.questions.create_bulk(
            [
                question_row("e-00", exposure_count=2),
                question_row("e-01", exposure_count=0, last_used_at=DROP_AT - timedelta(days=40)),
                question_row("e-02", exposure_count=0),
                question_row("e-03", exposure_count=0, last_used_at=DROP_AT - timedelta(days=3)),
                question_row("e-04", exposure_count=12),
                question_row("e-05", approved=False),
                question_row("e-06", disabled=True),
                question_row("m-00", difficulty="medium"),
            ]
        )

    def _criteria(self, **kwargs):
        values = dict(
            difficulty=Difficulty.EASY,
            exclude_question_ids=[],
            max_days_since_last_used=30,
            max_exposure_count=10,
        )
        values.update(kwargs)
        return SelectionCriteria(**values)

    def test_find_eligible_filters_and_orders(self):
        result = self.questions.find_eligible(self._criteria(), DROP_AT - timedelta(days=30))

        # exposure asc, never used before used, then id
        assert [q.id for q in result] == ["e-02", "e-01", "e-00"]
        assert result[1].last_used_at == DROP_AT - timedelta(days=40)
        assert result[1].last_used_at.tzinfo is not None

    def test_find_eligible_without_exposure_ceiling(self):
        result = self.questions.find_eligible(
            self._criteria(max_exposure_count=None, exclude_question_ids=["e-02"]),
            DROP_AT - timedelta(days=30),
        )

        assert [q.id for q in result] == ["e-01", "e-00", "e-04"]

    def test_find_least_exposed_ignores_recency(self):
        result = self.questions.find_least_exposed(Difficulty.EASY, ["e-02"], 2)

        assert [q.id for q in result] == ["e-01", "e-03"]

    def test_domain_data_carries_no_answer(self):
        question = self.questions.get_by_ids(["e-00"])[0]

        assert not hasattr(question, "correct_json")
        assert question.choices == [{"id": "a", "text": "A"}]

    def test_increment_usage(self):
        updated = self.questions.increment_usage(["e-00", "e-02"], DROP_AT)

        assert updated == 2
        by_id = {q.id: q for q in self.questions.get_by_ids(["e-00", "e-02"])}
        assert by_id["e-00"].exposure_count == 3
        assert by_id["e-02"].exposure_count == 1
        assert by_id["e-02"].last_used_at == DROP_AT

    def test_count_available_and_summary(self):
        assert self.questions.count_available(Difficulty.EASY) == 5
        assert (
            self.questions.count_available(Difficulty.EASY, DROP_AT - timedelta(days=7)) == 4
        )

        total, average, oldest = self.questions.exposure_summary(Difficulty.EASY)
        assert total == 5
        assert average == pytest.approx(14 / 5)
        assert oldest == DROP_AT - timedelta(days=40)


class TestDailyQuizRepository(RepositoryTestBase):
    def setup_method(self):
        super().setup_method()
        self.questions.create_bulk(
            [question_row("e-00"), question_row("e-01"), question_row("m-00", "medium")]
        )

    def _create(self, drop_at=DROP_AT, links=None):
        return self.quizzes.create_with_questions(
            drop_at,
            DailyQuizMode.MIX,
            {"schemaVersion": 1, "mode": "mix", "themes": ["lyrics"]},
            links if links is not None else [link("e-01"), link("e-00"), link("m-00", "medium")],
        )

    def test_create_with_questions(self):
        quiz = self._create()

        assert quiz.id
        assert quiz.drop_at_utc == DROP_AT
        assert quiz.template_version == 1
        assert quiz.template_location is None
        assert [item.question_id for item in self.quizzes.get_links(quiz.id)] == [
            "e-01",
            "e-00",
            "m-00",
        ]
        assert self.quizzes.get_by_drop_at(DROP_AT).id == quiz.id

    def test_duplicate_drop_time(self):
        self._create()

        with pytest.raises(DuplicateQuizError):
            self._create(links=[link("e-00")])

        assert self.quizzes.count() == 1

    def test_failed_link_insert_rolls_back_quiz(self):
        with pytest.raises(IntegrityError):
            self._create(links=[link("e-00"), link("e-00")])

        assert self.quizzes.count() == 0
        assert self.db.query(DailyQuizQuestion).count() == 0

    def test_update_template(self):
        quiz = self._create()

        updated = self.quizzes.update_template(quiz.id, 2, "https://cdn.test/quiz/2025-12-13/v2.json")

        assert updated.template_version == 2
        assert self.quizzes.get_by_id(quiz.id).has_template

    def test_update_template_unknown_quiz(self):
        with pytest.raises(QuizNotFoundError):
            self.quizzes.update_template("missing", 1, "somewhere")

    def test_find_missing_template(self):
        soon = self._create(DROP_AT)
        published = self._create(DROP_AT + timedelta(minutes=5), links=[link("e-00")])
        self.quizzes.update_template(published.id, 1, "https://cdn.test/x.json")
        self._create(DROP_AT + timedelta(hours=1), links=[link("e-00")])

        result = self.quizzes.find_missing_template(
            DROP_AT - timedelta(minutes=10), DROP_AT + timedelta(minutes=10)
        )

        assert [q.id for q in result] == [soon.id]

    def test_find_in_drop_window(self):
        inside = self._create(DROP_AT)
        self._create(DROP_AT + timedelta(hours=3), links=[link("e-00")])
        self._create(DROP_AT - timedelta(minutes=1), links=[link("e-00")])

        result = self.quizzes.find_in_drop_window(DROP_AT, DROP_AT + timedelta(hours=3))

        assert [q.id for q in result] == [inside.id]

    def test_list_recent_counts_questions(self):
        first = self._create(DROP_AT)
        second = self._create(DROP_AT + timedelta(days=1), links=[link("e-00")])

        rows = self.quizzes.list_recent(limit=10)

        assert [(quiz.id, count) for quiz, count in rows] == [(second.id, 1), (first.id, 3)]
        assert self.quizzes.list_recent(since=DROP_AT + timedelta(hours=1))[0][0].id == second.id
        assert len(self.quizzes.list_recent(limit=1, offset=1)) == 1


class TestCompositionLogRepository(RepositoryTestBase):
    def _log(self, **kwargs):
        values = dict(
            timestamp=datetime.now(timezone.utc),
            target_date=DROP_AT,
            mode=DailyQuizMode.MIX,
            theme_plan={"schemaVersion": 1, "mode": "mix", "themes": ["lyrics"]},
            final_selection=FinalSelectionLog(total_questions=6, theme_distribution={"lyrics": 2}),
            relaxation_level=1,
            warnings=["Emergency fallback: only found 2/3 easy questions"],
            performance=PerformanceLog(duration_ms=12, db_queries=7),
        )
        values.update(kwargs)
        return CompositionLog(**values)

    def test_create_and_list_since(self):
        log_id = self.logs.create(self._log())

        logs = self.logs.list_since(datetime.now(timezone.utc) - timedelta(days=1))

        assert log_id
        assert len(logs) == 1
        assert logs[0].relaxation_level == 1
        assert logs[0].final_selection.theme_distribution == {"lyrics": 2}
        assert logs[0].warnings == ["Emergency fallback: only found 2/3 easy questions"]
        assert logs[0].target_date == DROP_AT

    def test_failed_composition_log(self):
        self.logs.create(
            self._log(has_errors=True, error_message="Daily quiz already exists", relaxation_level=0)
        )

        logs = self.logs.list_since(datetime.now(timezone.utc) - timedelta(days=1))

        assert logs[0].has_errors is True
        assert logs[0].daily_quiz_id is None

    def test_list_since_excludes_older_logs(self):
        self.logs.create(self._log())

        assert self.logs.list_since(datetime.now(timezone.utc) + timedelta(days=1)) == []
