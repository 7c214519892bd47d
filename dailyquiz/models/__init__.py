from .composition_log import CompositionLogRecord
from .daily_quiz import DailyQuiz, DailyQuizQuestion
from .question import Question

__all__ = ["Question", "DailyQuiz", "DailyQuizQuestion", "CompositionLogRecord"]
