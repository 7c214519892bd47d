import json
import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from dailyquiz.core.clock import as_utc, isoformat_z
from dailyquiz.core.exceptions import TemplateValidationError
from dailyquiz.domain.daily_quiz_domain import DailyQuizData
from dailyquiz.domain.question_domain import QuestionData, QuestionDomain
from dailyquiz.schemas.daily_quiz import (
    QuizTemplate,
    TemplateMetadata,
    TemplateQuestion,
    ThemePlan,
)
from dailyquiz.schemas.question import DIFFICULTY_ORDER, QuestionType

logger = logging.getLogger(__name__)

# Keys removed at any depth of prompt, choices and media
SANITIZE_DENY_LIST: FrozenSet[str] = frozenset(
    {
        # correctness
        "isCorrect",
        "correct",
        "correctness",
        "correctAnswer",
        "correctIndex",
        "answer",
        "explanation",
        # scoring
        "weight",
        "scoringHints",
        # authoring and media pipeline internals
        "internalNotes",
        "adminComments",
        "adminNotes",
        "internalPath",
        "processingStatus",
    }
)

# Checked against the serialized template, separately from the stripping above
LEAK_MARKERS = tuple(sorted(SANITIZE_DENY_LIST))

_BASE_PROMPT_FIELDS = ("task",)

PROMPT_REQUIRED_FIELDS: Dict[QuestionType, tuple] = {
    QuestionType.ALBUM_YEAR_GUESS: _BASE_PROMPT_FIELDS + ("album",),
    QuestionType.SONG_ALBUM_MATCH: _BASE_PROMPT_FIELDS + ("left", "right"),
    QuestionType.FILL_BLANK: _BASE_PROMPT_FIELDS + ("text",),
    QuestionType.GUESS_BY_LYRIC: _BASE_PROMPT_FIELDS + ("lyric",),
    QuestionType.ODD_ONE_OUT: _BASE_PROMPT_FIELDS + ("setRule",),
    QuestionType.AI_VISUAL: _BASE_PROMPT_FIELDS,
    QuestionType.SOUND_ALIKE_SNIPPET: _BASE_PROMPT_FIELDS,
    QuestionType.MOOD_MATCH: _BASE_PROMPT_FIELDS + ("moodTags",),
    QuestionType.INSPIRATION_MAP: _BASE_PROMPT_FIELDS,
    QuestionType.LIFE_TRIVIA: _BASE_PROMPT_FIELDS + ("question",),
    QuestionType.TIMELINE_ORDER: _BASE_PROMPT_FIELDS + ("items",),
    QuestionType.POPULARITY_MATCH: _BASE_PROMPT_FIELDS + ("asOf",),
    QuestionType.LONGEST_SONG: _BASE_PROMPT_FIELDS,
    QuestionType.TRACKLIST_ORDER: _BASE_PROMPT_FIELDS + ("album", "tracks"),
    QuestionType.OUTFIT_ERA: _BASE_PROMPT_FIELDS,
    QuestionType.LYRIC_MASHUP: _BASE_PROMPT_FIELDS + ("snippets", "optionsPerSnippet"),
    QuestionType.SPEED_TAP: _BASE_PROMPT_FIELDS + ("targetRule", "roundSeconds", "grid"),
    QuestionType.REVERSE_AUDIO: _BASE_PROMPT_FIELDS,
    QuestionType.ONE_SECOND: _BASE_PROMPT_FIELDS,
}

_DIFFICULTY_RANK = {difficulty: rank for rank, difficulty in enumerate(DIFFICULTY_ORDER)}


def strip_denied(value: Any, deny_list: FrozenSet[str] = SANITIZE_DENY_LIST) -> Any:
    """Copy of a JSON value with every deny-listed key removed at any depth"""
    if isinstance(value, dict):
        return {
            key: strip_denied(item, deny_list)
            for key, item in value.items()
            if key not in deny_list
        }
    if isinstance(value, list):
        return [strip_denied(item, deny_list) for item in value]
    return value


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _leaked_markers(payload: Any) -> List[str]:
    serialized = canonical_json(payload)
    return [marker for marker in LEAK_MARKERS if f'"{marker}":' in serialized]


class TemplateService:
    """Builds, checks and serializes the answer-free quiz template"""

    def generate_template(
        self,
        quiz: DailyQuizData,
        questions: List[QuestionData],
        theme_plan: ThemePlan,
        generated_at: datetime,
    ) -> QuizTemplate:
        logger.debug(f"Generating template for daily quiz {quiz.id}")

        ordered = self.sort_questions(questions)
        template_questions = [
            self.to_template_question(question, order_index)
            for order_index, question in enumerate(ordered)
        ]

        template = QuizTemplate(
            id=quiz.id,
            drop_at_utc=isoformat_z(quiz.drop_at_utc),
            mode=theme_plan.mode,
            theme_plan=theme_plan.to_snapshot(),
            questions=template_questions,
            version=quiz.template_version,
            metadata=TemplateMetadata(
                generated_at=isoformat_z(as_utc(generated_at)),
                total_questions=len(ordered),
                difficulty_breakdown=QuestionDomain.difficulty_breakdown(ordered),
                theme_breakdown=QuestionDomain.theme_distribution(ordered),
            ),
        )

        logger.debug(
            f"Generated template v{template.version} with {len(template.questions)} questions"
        )
        return template

    @staticmethod
    def sort_questions(questions: List[QuestionData]) -> List[QuestionData]:
        """Easy, medium, hard, then by id within a difficulty"""
        return sorted(questions, key=lambda q: (_DIFFICULTY_RANK[q.difficulty], q.id))

    @staticmethod
    def to_template_question(question: QuestionData, order_index: int) -> TemplateQuestion:
        choices = question.choices if isinstance(question.choices, list) else None
        media = question.media if isinstance(question.media, list) else None
        return TemplateQuestion(
            id=question.id,
            question_type=question.question_type,
            difficulty=question.difficulty,
            themes=list(question.themes),
            subjects=list(question.subjects),
            prompt=strip_denied(question.prompt) if question.prompt else None,
            choices=strip_denied(choices) if choices is not None else None,
            media=strip_denied(media) if media is not None else None,
            order_index=order_index,
        )

    @staticmethod
    def missing_prompt_fields(
        question_type: QuestionType, prompt: Optional[Dict[str, Any]]
    ) -> List[str]:
        prompt = prompt or {}
        return [field for field in PROMPT_REQUIRED_FIELDS[question_type] if field not in prompt]

    def validate_template(self, template: QuizTemplate) -> List[str]:
        """
        Structural checks plus a leak scan of each serialized question and of
        the rest of the template (theme plan, metadata).

        Returns the list of issues; an empty list means the template can be
        published.
        """
        issues: List[str] = []

        if not template.id:
            issues.append("Template missing ID")
        if not template.drop_at_utc:
            issues.append("Template missing drop time")
        if not template.questions:
            issues.append("Template has no questions")
        if template.version < 1:
            issues.append("Template version must be >= 1")

        payload = template.to_payload()
        previous_rank = -1
        for i, question in enumerate(template.questions):
            prefix = f"Question {i + 1}"

            if not question.id:
                issues.append(f"{prefix}: missing ID")
            if not question.prompt:
                issues.append(f"{prefix}: missing prompt")
            else:
                missing = self.missing_prompt_fields(question.question_type, question.prompt)
                if missing:
                    issues.append(
                        f"{prefix}: prompt missing required field(s) {', '.join(missing)} "
                        f"for {question.question_type.value}"
                    )
            if question.order_index != i:
                issues.append(f"{prefix}: incorrect order index")

            rank = _DIFFICULTY_RANK[question.difficulty]
            if rank < previous_rank:
                issues.append(f"{prefix}: difficulty {question.difficulty.value} out of order")
            previous_rank = max(previous_rank, rank)

            leaked = _leaked_markers(payload["questions"][i])
            if leaked:
                issues.append(
                    f"{prefix}: contains answer data that should be stripped ({', '.join(leaked)})"
                )

        envelope = {key: value for key, value in payload.items() if key != "questions"}
        leaked = _leaked_markers(envelope)
        if leaked:
            issues.append(
                f"Template: contains answer data that should be stripped ({', '.join(leaked)})"
            )

        if template.metadata.total_questions != len(template.questions):
            issues.append("Metadata total questions mismatch")

        breakdown_total = sum(template.metadata.difficulty_breakdown.values())
        if breakdown_total != len(template.questions):
            issues.append("Metadata difficulty breakdown mismatch")

        return issues

    def ensure_valid(self, template: QuizTemplate) -> None:
        issues = self.validate_template(template)
        if issues:
            raise TemplateValidationError(issues)

    @staticmethod
    def serialize_template(template: QuizTemplate) -> bytes:
        """Canonical UTF-8 JSON: sorted keys, no whitespace"""
        return canonical_json(template.to_payload()).encode("utf-8")

    @staticmethod
    def build_template_path(drop_at: datetime, version: int) -> str:
        return f"{as_utc(drop_at):%Y-%m-%d}/v{version}"

    def get_template_stats(self, template: QuizTemplate) -> Dict[str, Any]:
        question_types: Dict[str, int] = {}
        total_choices = 0
        media_count = 0

        for question in template.questions:
            type_name = question.question_type.value
            question_types[type_name] = question_types.get(type_name, 0) + 1
            if question.choices:
                total_choices += len(question.choices)
            if question.media:
                media_count += len(question.media)

        count = len(template.questions)
        return {
            "size": len(self.serialize_template(template)),
            "question_types": question_types,
            "media_count": media_count,
            "average_choices_per_question": total_choices / count if count else 0.0,
        }
