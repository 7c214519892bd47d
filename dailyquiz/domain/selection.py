from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dailyquiz.domain.question_domain import QuestionData
from dailyquiz.schemas.question import Difficulty

# Reported when a difficulty had to be filled by the emergency fallback
EMERGENCY_RELAXATION_LEVEL = 5


@dataclass
class SelectionCriteria:
    """Eligibility query for one difficulty at one relaxation level"""

    difficulty: Difficulty
    exclude_question_ids: List[str]
    max_days_since_last_used: int
    preferred_themes: List[str] = field(default_factory=list)
    subject_diversity: List[str] = field(default_factory=list)
    max_exposure_count: Optional[int] = None


@dataclass
class AntiRepeatInfo:
    days_since_last_used: Optional[int]
    exposure_count: int
    is_eligible: bool
    relaxation_level: int
    reason: Optional[str] = None


@dataclass
class DifficultySelection:
    difficulty: Difficulty
    target: int
    questions: List[QuestionData] = field(default_factory=list)
    relaxation_level: int = 0
    levels_tried: int = 0
    candidates_seen: int = 0
    emergency: bool = False
    # Per-level notes for the composition log
    issues: List[str] = field(default_factory=list)
    # Emergency and shortfall warnings, surfaced on the result
    warnings: List[str] = field(default_factory=list)


@dataclass
class SelectionResult:
    questions: List[QuestionData]
    relaxation_level: int = 0
    average_exposure_count: float = 0.0
    theme_distribution: Dict[str, int] = field(default_factory=dict)
    subject_distribution: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    by_difficulty: List[DifficultySelection] = field(default_factory=list)

    @property
    def question_ids(self) -> List[str]:
        return [q.id for q in self.questions]
