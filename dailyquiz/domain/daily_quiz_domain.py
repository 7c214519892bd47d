from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from dailyquiz.core.clock import as_utc
from dailyquiz.models.composition_log import CompositionLogRecord
from dailyquiz.models.daily_quiz import DailyQuiz, DailyQuizQuestion
from dailyquiz.schemas.daily_quiz import CompositionLog, DailyQuizMode, ThemePlan


@dataclass
class DailyQuizData:
    """Domain entity for a composed daily quiz"""

    id: str
    drop_at_utc: datetime
    mode: DailyQuizMode
    theme_plan: Dict[str, Any]
    template_version: int = 1
    template_location: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def has_template(self) -> bool:
        return bool(self.template_location)

    def plan(self) -> ThemePlan:
        return ThemePlan.from_snapshot(self.theme_plan)


@dataclass
class QuizQuestionLink:
    """Quiz membership of a question, with difficulty/type as they were at selection"""

    question_id: str
    difficulty: str
    question_type: str


class DailyQuizDomain:
    """Domain logic for DailyQuiz entities"""

    @staticmethod
    def to_data(quiz: DailyQuiz) -> DailyQuizData:
        return DailyQuizData(
            id=quiz.id,
            drop_at_utc=as_utc(quiz.drop_at_utc),
            mode=DailyQuizMode(quiz.mode),
            theme_plan=dict(quiz.theme_plan_json or {}),
            template_version=quiz.template_version,
            template_location=quiz.template_location or None,
            created_at=as_utc(quiz.created_at),
        )

    @staticmethod
    def to_link(link: DailyQuizQuestion) -> QuizQuestionLink:
        return QuizQuestionLink(
            question_id=link.question_id,
            difficulty=link.difficulty,
            question_type=link.question_type,
        )

    @staticmethod
    def log_to_dict(log: CompositionLog) -> dict:
        """Convert CompositionLog to dictionary for repository"""
        data = log.model_dump(mode="json")
        return {
            "daily_quiz_id": log.daily_quiz_id,
            "target_date": log.target_date,
            "mode": log.mode.value,
            "theme_plan_json": data["theme_plan"],
            "selection_process_json": data["selection_process"],
            "final_selection_json": data["final_selection"],
            "warnings_json": data["warnings"],
            "performance_json": data["performance"],
            "relaxation_level": log.relaxation_level,
            "has_errors": log.has_errors,
            "error_message": log.error_message,
        }

    @staticmethod
    def record_to_log(record: CompositionLogRecord) -> CompositionLog:
        return CompositionLog(
            timestamp=as_utc(record.created_at or record.target_date),
            target_date=as_utc(record.target_date),
            mode=DailyQuizMode(record.mode),
            daily_quiz_id=record.daily_quiz_id,
            theme_plan=record.theme_plan_json or {},
            selection_process=record.selection_process_json or [],
            final_selection=record.final_selection_json or {},
            relaxation_level=record.relaxation_level,
            warnings=record.warnings_json or [],
            performance=record.performance_json or {"duration_ms": 0, "db_queries": 0},
            has_errors=record.has_errors,
            error_message=record.error_message,
        )

    @staticmethod
    def themes_of(quiz: DailyQuizData) -> List[str]:
        themes = quiz.theme_plan.get("themes") or []
        if isinstance(themes, str):
            return [themes]
        return list(themes)
