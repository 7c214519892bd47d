import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dailyquiz.core.exceptions import DuplicateQuizError, QuizNotFoundError
from dailyquiz.domain.daily_quiz_domain import (
    DailyQuizData,
    DailyQuizDomain,
    QuizQuestionLink,
)
from dailyquiz.models.daily_quiz import DailyQuiz, DailyQuizQuestion
from dailyquiz.repositories.interfaces import DailyQuizStore
from dailyquiz.schemas.daily_quiz import DailyQuizMode

logger = logging.getLogger(__name__)


class DailyQuizRepository(DailyQuizStore):
    """Repository for DailyQuiz database operations following DDD pattern"""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, quiz_id: str) -> Optional[DailyQuiz]:
        return self.db.query(DailyQuiz).filter(DailyQuiz.id == quiz_id).first()

    def get_by_id(self, quiz_id: str) -> Optional[DailyQuizData]:
        """Get a daily quiz by ID"""
        quiz = self._get_row(quiz_id)
        return DailyQuizDomain.to_data(quiz) if quiz else None

    def get_by_drop_at(self, drop_at_utc: datetime) -> Optional[DailyQuizData]:
        """Get the daily quiz scheduled for an exact drop time"""
        quiz = (
            self.db.query(DailyQuiz).filter(DailyQuiz.drop_at_utc == drop_at_utc).first()
        )
        return DailyQuizDomain.to_data(quiz) if quiz else None

    def create_with_questions(
        self,
        drop_at_utc: datetime,
        mode: DailyQuizMode,
        theme_plan: dict,
        links: List[QuizQuestionLink],
    ) -> DailyQuizData:
        """Create the quiz and its question links in a single transaction"""
        db_quiz = DailyQuiz(
            drop_at_utc=drop_at_utc,
            mode=mode.value,
            theme_plan_json=theme_plan,
            template_version=1,
            template_location=None,
        )
        try:
            self.db.add(db_quiz)
            # flush to get the generated id before inserting the links
            self.db.flush()
            self.db.add_all(
                [
                    DailyQuizQuestion(
                        daily_quiz_id=db_quiz.id,
                        question_id=link.question_id,
                        difficulty=link.difficulty,
                        question_type=link.question_type,
                        position=position,
                    )
                    for position, link in enumerate(links)
                ]
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if "drop_at_utc" in str(e.orig):
                raise DuplicateQuizError(drop_at_utc) from e
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(db_quiz)
        return DailyQuizDomain.to_data(db_quiz)

    def update_template(
        self, quiz_id: str, template_version: int, template_location: str
    ) -> DailyQuizData:
        """Record a published template version and where it lives"""
        quiz = self._get_row(quiz_id)
        if not quiz:
            raise QuizNotFoundError(quiz_id)
        quiz.template_version = template_version
        quiz.template_location = template_location
        self.db.commit()
        self.db.refresh(quiz)
        return DailyQuizDomain.to_data(quiz)

    def get_links(self, quiz_id: str) -> List[QuizQuestionLink]:
        links = (
            self.db.query(DailyQuizQuestion)
            .filter(DailyQuizQuestion.daily_quiz_id == quiz_id)
            .order_by(DailyQuizQuestion.position.asc())
            .all()
        )
        return [DailyQuizDomain.to_link(link) for link in links]

    def find_missing_template(
        self, drop_after: datetime, drop_until: datetime
    ) -> List[DailyQuizData]:
        quizzes = (
            self.db.query(DailyQuiz)
            .filter(
                DailyQuiz.drop_at_utc > drop_after,
                DailyQuiz.drop_at_utc <= drop_until,
                DailyQuiz.template_location.is_(None),
            )
            .order_by(DailyQuiz.drop_at_utc.asc())
            .all()
        )
        return [DailyQuizDomain.to_data(quiz) for quiz in quizzes]

    def find_in_drop_window(
        self, window_start: datetime, window_end: datetime
    ) -> List[DailyQuizData]:
        quizzes = (
            self.db.query(DailyQuiz)
            .filter(
                DailyQuiz.drop_at_utc >= window_start,
                DailyQuiz.drop_at_utc < window_end,
            )
            .order_by(DailyQuiz.drop_at_utc.asc())
            .all()
        )
        return [DailyQuizDomain.to_data(quiz) for quiz in quizzes]

    def list_recent(
        self, limit: int = 10, offset: int = 0, since: Optional[datetime] = None
    ) -> List[Tuple[DailyQuizData, int]]:
        """Recent quizzes with their question counts, newest drop first"""
        question_count = func.count(DailyQuizQuestion.id)
        query = (
            self.db.query(DailyQuiz, question_count)
            .outerjoin(DailyQuizQuestion, DailyQuizQuestion.daily_quiz_id == DailyQuiz.id)
            .group_by(DailyQuiz.id)
        )
        if since is not None:
            query = query.filter(DailyQuiz.drop_at_utc >= since)
        rows = (
            query.order_by(DailyQuiz.drop_at_utc.desc()).offset(offset).limit(limit).all()
        )
        return [(DailyQuizDomain.to_data(quiz), int(count)) for quiz, count in rows]

    def count(self) -> int:
        return self.db.query(DailyQuiz).count()
