from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session

from dailyquiz.core.clock import as_utc
from dailyquiz.domain.question_domain import QuestionData, QuestionDomain
from dailyquiz.domain.selection import SelectionCriteria
from dailyquiz.models.question import Question
from dailyquiz.repositories.interfaces import QuestionStore
from dailyquiz.schemas.question import Difficulty


class QuestionRepository(QuestionStore):
    """Repository for Question pool queries following DDD pattern"""

    def __init__(self, db: Session):
        self.db = db

    def _pool_query(self, difficulty: Difficulty):
        return self.db.query(Question).filter(
            and_(
                Question.approved.is_(True),
                Question.disabled.is_(False),
                Question.difficulty == difficulty.value,
            )
        )

    @staticmethod
    def _anti_repeat_order():
        return (
            Question.exposure_count.asc(),
            Question.last_used_at.asc().nullsfirst(),
            Question.id.asc(),
        )

    def get_by_ids(self, question_ids: List[str]) -> List[QuestionData]:
        if not question_ids:
            return []
        questions = self.db.query(Question).filter(Question.id.in_(question_ids)).all()
        return QuestionDomain.to_data_list(questions)

    def find_eligible(
        self, criteria: SelectionCriteria, last_used_before: Optional[datetime]
    ) -> List[QuestionData]:
        query = self._pool_query(criteria.difficulty)

        if criteria.exclude_question_ids:
            query = query.filter(~Question.id.in_(criteria.exclude_question_ids))

        if last_used_before is not None:
            query = query.filter(
                or_(
                    Question.last_used_at.is_(None),
                    Question.last_used_at < last_used_before,
                )
            )

        if criteria.max_exposure_count is not None:
            query = query.filter(Question.exposure_count <= criteria.max_exposure_count)

        questions = query.order_by(*self._anti_repeat_order()).all()
        return QuestionDomain.to_data_list(questions)

    def find_least_exposed(
        self, difficulty: Difficulty, exclude_ids: List[str], limit: int
    ) -> List[QuestionData]:
        if limit <= 0:
            return []
        query = self._pool_query(difficulty)
        if exclude_ids:
            query = query.filter(~Question.id.in_(exclude_ids))
        questions = query.order_by(*self._anti_repeat_order()).limit(limit).all()
        return QuestionDomain.to_data_list(questions)

    def increment_usage(self, question_ids: List[str], used_at: datetime) -> int:
        """Bump exposure_count and stamp last_used_at for every selected question"""
        if not question_ids:
            return 0
        result = self.db.execute(
            update(Question)
            .where(Question.id.in_(question_ids))
            .values(
                exposure_count=Question.exposure_count + 1,
                last_used_at=used_at,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def count_available(
        self, difficulty: Difficulty, last_used_before: Optional[datetime] = None
    ) -> int:
        query = self._pool_query(difficulty)
        if last_used_before is not None:
            query = query.filter(
                or_(
                    Question.last_used_at.is_(None),
                    Question.last_used_at < last_used_before,
                )
            )
        return query.count()

    def exposure_summary(
        self, difficulty: Difficulty
    ) -> Tuple[int, float, Optional[datetime]]:
        total, average, oldest = (
            self.db.query(
                func.count(Question.id),
                func.avg(Question.exposure_count),
                func.min(Question.last_used_at),
            )
            .filter(
                and_(
                    Question.approved.is_(True),
                    Question.disabled.is_(False),
                    Question.difficulty == difficulty.value,
                )
            )
            .one()
        )
        return int(total or 0), float(average or 0.0), as_utc(oldest)

    def create_bulk(self, question_data_list: List[dict]) -> List[Question]:
        """Create multiple question entries"""
        db_questions = [Question(**data) for data in question_data_list]
        self.db.add_all(db_questions)
        self.db.commit()
        for question in db_questions:
            self.db.refresh(question)
        return db_questions
