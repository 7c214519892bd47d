from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from dailyquiz.core.clock import as_utc
from dailyquiz.core.config import settings
from dailyquiz.schemas.question import Difficulty, QuestionTheme, QuestionType

# Bump when a field is added to the stored theme plan snapshot
THEME_PLAN_SCHEMA_VERSION = 1

RELAXATION_DAYS = [30, 21, 14, 10, 7]


class DailyQuizMode(str, Enum):
    MIX = "mix"
    SPOTLIGHT = "spotlight"
    EVENT = "event"


class ThemePlan(BaseModel):
    """
    Themes emphasized for one drop.

    Stored verbatim inside the quiz row and the published template, so the
    snapshot carries its own schema version:

        {"schemaVersion": 1, "mode": "mix", "themes": ["lyrics", ...],
         "weights": {"lyrics": 2, ...}, "spotlight": "timeline",
         "event": "Speak Now Anniversary"}
    """

    schema_version: int = Field(THEME_PLAN_SCHEMA_VERSION, alias="schemaVersion")
    mode: DailyQuizMode
    themes: List[QuestionTheme] = []
    weights: Optional[Dict[str, int]] = None
    spotlight: Optional[QuestionTheme] = None
    event: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_snapshot(cls, snapshot: Optional[Dict[str, Any]]) -> "ThemePlan":
        """Load a stored snapshot; snapshots written before versioning count as v1"""
        data = dict(snapshot or {})
        version = data.get("schemaVersion", 1)
        if version > THEME_PLAN_SCHEMA_VERSION:
            raise ValueError(
                f"Theme plan snapshot schema v{version} is newer than supported "
                f"v{THEME_PLAN_SCHEMA_VERSION}"
            )
        data["schemaVersion"] = version
        data.setdefault("mode", DailyQuizMode.MIX.value)
        return cls.model_validate(data)


class ComposerConfig(BaseModel):
    target_question_count: int = Field(6, gt=0)
    difficulty_distribution: Dict[Difficulty, int] = {
        Difficulty.EASY: 3,
        Difficulty.MEDIUM: 2,
        Difficulty.HARD: 1,
    }
    anti_repeat_days: List[int] = RELAXATION_DAYS
    max_exposure_bias: int = 10
    min_unique_themes: int = 3
    max_subject_overlap: int = 2

    @validator("anti_repeat_days")
    def validate_anti_repeat_days(cls, v):
        if not v:
            raise ValueError("anti_repeat_days cannot be empty")
        if any(later > earlier for earlier, later in zip(v, v[1:])):
            raise ValueError("anti_repeat_days must be non-increasing")
        return v

    @classmethod
    def from_settings(cls, **overrides) -> "ComposerConfig":
        values = {
            "target_question_count": settings.COMPOSER_TARGET_QUESTION_COUNT,
            "difficulty_distribution": {
                Difficulty.EASY: settings.COMPOSER_EASY_COUNT,
                Difficulty.MEDIUM: settings.COMPOSER_MEDIUM_COUNT,
                Difficulty.HARD: settings.COMPOSER_HARD_COUNT,
            },
            "max_exposure_bias": settings.COMPOSER_MAX_EXPOSURE_BIAS,
            "min_unique_themes": settings.COMPOSER_MIN_UNIQUE_THEMES,
            "max_subject_overlap": settings.COMPOSER_MAX_SUBJECT_OVERLAP,
        }
        values.update(overrides)
        return cls(**values)


# ===========================================================
# Template artifact
# ===========================================================


class TemplateQuestion(BaseModel):
    id: str
    question_type: QuestionType = Field(..., alias="questionType")
    difficulty: Difficulty
    themes: List[str] = []
    subjects: List[str] = []
    prompt: Optional[Dict[str, Any]] = None
    choices: Optional[List[Any]] = None
    media: Optional[List[Any]] = None
    order_index: int = Field(..., alias="orderIndex")

    class Config:
        populate_by_name = True


class TemplateMetadata(BaseModel):
    generated_at: str = Field(..., alias="generatedAt")
    total_questions: int = Field(..., alias="totalQuestions")
    difficulty_breakdown: Dict[str, int] = Field(..., alias="difficultyBreakdown")
    theme_breakdown: Dict[str, int] = Field(..., alias="themeBreakdown")

    class Config:
        populate_by_name = True


class QuizTemplate(BaseModel):
    id: str
    drop_at_utc: str = Field(..., alias="dropAtUTC")
    mode: DailyQuizMode
    theme_plan: Dict[str, Any] = Field(..., alias="themePlan")
    questions: List[TemplateQuestion]
    version: int
    metadata: TemplateMetadata

    class Config:
        populate_by_name = True

    def to_payload(self) -> Dict[str, Any]:
        """Artifact dict in the published wire shape (optional keys omitted)"""
        payload = self.model_dump(mode="json", by_alias=True)
        for question in payload["questions"]:
            for optional_key in ("choices", "media"):
                if question.get(optional_key) is None:
                    question.pop(optional_key, None)
        return payload


# ===========================================================
# Composition log
# ===========================================================


class DifficultySelectionLog(BaseModel):
    difficulty: Difficulty
    target: int
    attempted: int
    candidates_seen: int
    selected: int
    relaxation_level: int
    emergency: bool = False
    issues: List[str] = []


class FinalSelectionLog(BaseModel):
    total_questions: int = 0
    difficulty_actual: Dict[str, int] = {}
    difficulty_target: Dict[str, int] = {}
    theme_distribution: Dict[str, int] = {}
    average_exposure: float = 0.0
    oldest_last_used: Optional[datetime] = None
    newest_last_used: Optional[datetime] = None


class PerformanceLog(BaseModel):
    duration_ms: int
    db_queries: int


class CompositionLog(BaseModel):
    timestamp: datetime
    target_date: datetime
    mode: DailyQuizMode
    daily_quiz_id: Optional[str] = None
    theme_plan: Dict[str, Any] = {}
    selection_process: List[DifficultySelectionLog] = []
    final_selection: FinalSelectionLog = FinalSelectionLog()
    relaxation_level: int = 0
    warnings: List[str] = []
    performance: PerformanceLog
    has_errors: bool = False
    error_message: Optional[str] = None


# ===========================================================
# API schemas
# ===========================================================


class ComposeRequest(BaseModel):
    drop_at_utc: datetime = Field(..., description="UTC instant the quiz becomes visible")
    mode: DailyQuizMode = DailyQuizMode.MIX

    @validator("drop_at_utc")
    def normalize_drop_at(cls, v):
        return as_utc(v)


class CompositionResponse(BaseModel):
    quiz_id: str
    drop_at_utc: datetime
    mode: DailyQuizMode
    question_ids: List[str]
    relaxation_level: int
    template_version: int
    template_location: Optional[str] = None
    template_error: Optional[str] = None
    warnings: List[str] = []


class TemplatePublishResponse(BaseModel):
    quiz_id: str
    template_version: int
    template_location: str
    published: bool = Field(
        ..., description="False when the template was already published for this version"
    )


class PreviewResponse(BaseModel):
    preview_mode: bool = True
    drop_at_utc: datetime
    mode: DailyQuizMode
    theme_plan: Dict[str, Any]
    estimated_questions: int
    difficulty_distribution: Dict[str, int]
    available_questions: Dict[str, int]
    warnings: List[str] = []
    feasible: bool


class CompositionStatsResponse(BaseModel):
    total_quizzes: int
    average_relaxation_level: float
    theme_distribution: Dict[str, int]
    recent_warnings: List[str]
    by_difficulty: Dict[str, int]


class RecentComposition(BaseModel):
    id: str
    drop_at_utc: datetime
    mode: DailyQuizMode
    question_count: int


class SystemHealthResponse(BaseModel):
    healthy: bool
    issues: List[str]
    recommendations: List[str]
    last_check: datetime
    question_pool_stats: Optional[CompositionStatsResponse] = None
    recent_compositions: List[RecentComposition] = []


class CompositionLogEntry(BaseModel):
    id: str
    drop_at_utc: datetime
    mode: DailyQuizMode
    themes: List[str]
    question_count: int
    template_version: int
    template_location: Optional[str] = None
    created_at: Optional[datetime] = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int


class CompositionLogListResponse(BaseModel):
    logs: List[CompositionLogEntry]
    pagination: Pagination


class ConfigurationOptionsResponse(BaseModel):
    modes: List[DailyQuizMode]
    themes: List[QuestionTheme]
    default_config: ComposerConfig
