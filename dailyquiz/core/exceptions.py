from datetime import datetime
from typing import List


class ComposerError(Exception):
    """Base class for daily quiz composition failures"""


class DuplicateQuizError(ComposerError):
    def __init__(self, drop_at_utc: datetime):
        self.drop_at_utc = drop_at_utc
        super().__init__(f"Daily quiz already exists for {drop_at_utc.isoformat()}")


class NoQuestionsSelectedError(ComposerError):
    def __init__(self, message: str = "No questions could be selected for daily quiz"):
        super().__init__(message)


class QuizNotFoundError(ComposerError):
    def __init__(self, quiz_id: str):
        self.quiz_id = quiz_id
        super().__init__(f"Quiz not found: {quiz_id}")


class TemplateValidationError(ComposerError):
    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__(f"Template validation failed: {', '.join(self.issues)}")


class ArtifactPublishError(ComposerError):
    """Raised when the artifact store rejects a template upload"""
