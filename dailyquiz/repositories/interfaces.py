"""
Narrow store interfaces the composer depends on.

The SQLAlchemy repositories implement these against the database; tests use
in-memory implementations so selection can run without one.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from dailyquiz.domain.daily_quiz_domain import DailyQuizData, QuizQuestionLink
from dailyquiz.domain.question_domain import QuestionData
from dailyquiz.domain.selection import SelectionCriteria
from dailyquiz.schemas.daily_quiz import CompositionLog, DailyQuizMode
from dailyquiz.schemas.question import Difficulty


class QuestionStore(ABC):
    @abstractmethod
    def find_eligible(
        self, criteria: SelectionCriteria, last_used_before: Optional[datetime]
    ) -> List[QuestionData]:
        """
        Approved, enabled questions of criteria.difficulty outside the exclusion
        set, never used or last used before the cutoff, under the exposure
        ceiling when one is set. Ordered by exposure, then last use (nulls
        first), then id.
        """

    @abstractmethod
    def find_least_exposed(
        self, difficulty: Difficulty, exclude_ids: List[str], limit: int
    ) -> List[QuestionData]:
        """Approved, enabled questions ignoring recency, least exposed first"""

    @abstractmethod
    def get_by_ids(self, question_ids: List[str]) -> List[QuestionData]:
        pass

    @abstractmethod
    def increment_usage(self, question_ids: List[str], used_at: datetime) -> int:
        pass

    @abstractmethod
    def count_available(
        self, difficulty: Difficulty, last_used_before: Optional[datetime] = None
    ) -> int:
        pass

    @abstractmethod
    def exposure_summary(
        self, difficulty: Difficulty
    ) -> Tuple[int, float, Optional[datetime]]:
        """(total, average exposure, oldest last use) over approved, enabled questions"""


class DailyQuizStore(ABC):
    @abstractmethod
    def get_by_id(self, quiz_id: str) -> Optional[DailyQuizData]:
        pass

    @abstractmethod
    def get_by_drop_at(self, drop_at_utc: datetime) -> Optional[DailyQuizData]:
        pass

    @abstractmethod
    def create_with_questions(
        self,
        drop_at_utc: datetime,
        mode: DailyQuizMode,
        theme_plan: dict,
        links: List[QuizQuestionLink],
    ) -> DailyQuizData:
        """
        Create the quiz row and every link in one transaction. Raises
        DuplicateQuizError when the drop time is already taken.
        """

    @abstractmethod
    def update_template(
        self, quiz_id: str, template_version: int, template_location: str
    ) -> DailyQuizData:
        pass

    @abstractmethod
    def get_links(self, quiz_id: str) -> List[QuizQuestionLink]:
        pass

    @abstractmethod
    def find_missing_template(
        self, drop_after: datetime, drop_until: datetime
    ) -> List[DailyQuizData]:
        """Quizzes dropping in (drop_after, drop_until] that have no template location"""

    @abstractmethod
    def find_in_drop_window(
        self, window_start: datetime, window_end: datetime
    ) -> List[DailyQuizData]:
        """Quizzes dropping in [window_start, window_end), earliest first"""

    @abstractmethod
    def list_recent(
        self, limit: int = 10, offset: int = 0, since: Optional[datetime] = None
    ) -> List[Tuple[DailyQuizData, int]]:
        """(quiz, question count) pairs, newest drop first"""

    @abstractmethod
    def count(self) -> int:
        pass


class CompositionLogStore(ABC):
    @abstractmethod
    def create(self, log: CompositionLog) -> str:
        pass

    @abstractmethod
    def list_since(self, since: datetime, limit: int = 100) -> List[CompositionLog]:
        pass


class ArtifactPublisher(ABC):
    @abstractmethod
    def publish(self, path: str, content: bytes) -> str:
        """Store content under path and return its public location"""


def count_by_difficulty(store: QuestionStore) -> Dict[str, int]:
    return {d.value: store.count_available(d) for d in Difficulty}
