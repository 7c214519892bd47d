from .composition_log_repository import CompositionLogRepository
from .daily_quiz_repository import DailyQuizRepository
from .question_repository import QuestionRepository

__all__ = ["QuestionRepository", "DailyQuizRepository", "CompositionLogRepository"]
