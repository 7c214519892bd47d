import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from dailyquiz.core.clock import as_utc
from dailyquiz.domain.question_domain import QuestionData
from dailyquiz.domain.selection import AntiRepeatInfo, SelectionCriteria
from dailyquiz.repositories.interfaces import QuestionStore
from dailyquiz.schemas.daily_quiz import RELAXATION_DAYS
from dailyquiz.schemas.question import Difficulty

logger = logging.getLogger(__name__)


class AntiRepeatService:
    """
    Recency and exposure policy for the question pool.

    Relaxation levels 0..4 map to day thresholds 30, 21, 14, 10, 7: a question
    is eligible when it was never used or was last used before
    `reference_time - threshold`. The exposure ceiling only applies at level 0,
    so heavily used questions come back once the constraint is loosened.
    """

    def __init__(
        self,
        question_store: QuestionStore,
        relaxation_days: Optional[List[int]] = None,
        max_exposure_bias: int = 10,
    ):
        self.question_store = question_store
        self.relaxation_days = list(relaxation_days or RELAXATION_DAYS)
        self.max_exposure_bias = max_exposure_bias

    @property
    def max_level(self) -> int:
        return len(self.relaxation_days) - 1

    def threshold_days(self, relaxation_level: int) -> int:
        if relaxation_level < 0 or relaxation_level > self.max_level:
            raise ValueError(
                f"Relaxation level must be between 0 and {self.max_level}, got {relaxation_level}"
            )
        return self.relaxation_days[relaxation_level]

    def cutoff(self, reference_time: datetime, relaxation_level: int) -> datetime:
        return as_utc(reference_time) - timedelta(days=self.threshold_days(relaxation_level))

    def evaluate(
        self,
        question: QuestionData,
        reference_time: datetime,
        relaxation_level: int = 0,
    ) -> AntiRepeatInfo:
        """Explain whether a single question passes the policy at a level"""
        threshold = self.threshold_days(relaxation_level)
        days_since_last_used = None
        if question.last_used_at is not None:
            delta = as_utc(reference_time) - as_utc(question.last_used_at)
            days_since_last_used = delta.days

        is_eligible = True
        reason = None

        if question.last_used_at is not None and as_utc(question.last_used_at) >= self.cutoff(
            reference_time, relaxation_level
        ):
            is_eligible = False
            reason = f"Used {days_since_last_used} days ago, threshold is {threshold} days"
        elif relaxation_level == 0 and question.exposure_count > self.max_exposure_bias:
            is_eligible = False
            reason = (
                f"Overexposed ({question.exposure_count} times), "
                f"ceiling is {self.max_exposure_bias} at the strictest level"
            )

        return AntiRepeatInfo(
            days_since_last_used=days_since_last_used,
            exposure_count=question.exposure_count,
            is_eligible=is_eligible,
            relaxation_level=relaxation_level,
            reason=reason,
        )

    def get_eligible_questions(
        self,
        criteria: SelectionCriteria,
        relaxation_level: int,
        reference_time: datetime,
    ) -> List[QuestionData]:
        """Fetch candidates for one difficulty at one relaxation level"""
        if relaxation_level > 0 and criteria.max_exposure_count is not None:
            criteria = SelectionCriteria(
                difficulty=criteria.difficulty,
                exclude_question_ids=criteria.exclude_question_ids,
                max_days_since_last_used=criteria.max_days_since_last_used,
                preferred_themes=criteria.preferred_themes,
                subject_diversity=criteria.subject_diversity,
                max_exposure_count=None,
            )

        cutoff = self.cutoff(reference_time, relaxation_level)
        questions = self.question_store.find_eligible(criteria, cutoff)

        logger.debug(
            f"Found {len(questions)} eligible {criteria.difficulty.value} questions "
            f"at relaxation level {relaxation_level} "
            f"({self.threshold_days(relaxation_level)} day threshold)"
        )
        return questions

    def update_question_usage(self, question_ids: List[str], used_at: datetime) -> int:
        """Increment exposure and stamp last use for the selected questions"""
        if not question_ids:
            return 0
        updated = self.question_store.increment_usage(question_ids, as_utc(used_at))
        logger.debug(f"Updated usage tracking for {updated} questions")
        return updated

    def get_availability_stats(
        self, difficulty: Difficulty, reference_time: datetime
    ) -> Dict[str, Any]:
        """Pool size and eligible counts per relaxation level, for debugging pool health"""
        total, average_exposure, oldest_last_used = self.question_store.exposure_summary(
            difficulty
        )
        available = {
            level: self.question_store.count_available(
                difficulty, self.cutoff(reference_time, level)
            )
            for level in range(len(self.relaxation_days))
        }
        return {
            "total": total,
            "available": available,
            "average_exposure": average_exposure,
            "oldest_last_used": oldest_last_used,
        }
