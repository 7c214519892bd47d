from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from dailyquiz.core.clock import as_utc
from dailyquiz.models.question import Question
from dailyquiz.schemas.question import Difficulty, QuestionType


@dataclass
class QuestionData:
    """Domain entity for a pool question, detached from the ORM session"""

    id: str
    question_type: QuestionType
    difficulty: Difficulty
    themes: List[str] = field(default_factory=list)
    subjects: List[str] = field(default_factory=list)
    prompt: Optional[Dict[str, Any]] = None
    choices: Optional[List[Any]] = None
    media: Optional[List[Any]] = None
    approved: bool = True
    disabled: bool = False
    exposure_count: int = 0
    last_used_at: Optional[datetime] = None


class QuestionDomain:
    """Domain logic for Question entities"""

    @staticmethod
    def to_data(question: Question) -> QuestionData:
        """Convert Question model to QuestionData. The answer payload is never carried over."""
        return QuestionData(
            id=question.id,
            question_type=QuestionType(question.question_type),
            difficulty=Difficulty(question.difficulty),
            themes=list(question.themes_json or []),
            subjects=list(question.subjects_json or []),
            prompt=question.prompt_json,
            choices=question.choices_json,
            media=question.media_json,
            approved=bool(question.approved),
            disabled=bool(question.disabled),
            exposure_count=question.exposure_count or 0,
            last_used_at=as_utc(question.last_used_at),
        )

    @staticmethod
    def to_data_list(questions: List[Question]) -> List[QuestionData]:
        return [QuestionDomain.to_data(question) for question in questions]

    @staticmethod
    def as_selected(
        question: QuestionData, difficulty: str, question_type: str
    ) -> QuestionData:
        """Overlay the difficulty/type recorded when the quiz was composed"""
        return replace(
            question,
            difficulty=Difficulty(difficulty),
            question_type=QuestionType(question_type),
        )

    @staticmethod
    def average_exposure(questions: List[QuestionData]) -> float:
        if not questions:
            return 0.0
        return sum(q.exposure_count for q in questions) / len(questions)

    @staticmethod
    def theme_distribution(questions: List[QuestionData]) -> Dict[str, int]:
        distribution: Dict[str, int] = {}
        for question in questions:
            for theme in question.themes:
                distribution[theme] = distribution.get(theme, 0) + 1
        return distribution

    @staticmethod
    def subject_distribution(questions: List[QuestionData]) -> Dict[str, int]:
        distribution: Dict[str, int] = {}
        for question in questions:
            for subject in question.subjects:
                distribution[subject] = distribution.get(subject, 0) + 1
        return distribution

    @staticmethod
    def difficulty_breakdown(questions: List[QuestionData]) -> Dict[str, int]:
        breakdown = {difficulty.value: 0 for difficulty in Difficulty}
        for question in questions:
            breakdown[question.difficulty.value] += 1
        return breakdown
