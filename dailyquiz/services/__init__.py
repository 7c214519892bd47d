from .anti_repeat import AntiRepeatService
from .artifact_store import LocalArtifactPublisher, S3ArtifactPublisher
from .composer import DailyQuizComposerService
from .difficulty_distribution import DifficultyDistributionService
from .question_selector import QuestionSelector
from .template import TemplateService
from .theme_planner import ThemePlanner

__all__ = [
    "AntiRepeatService",
    "DailyQuizComposerService",
    "DifficultyDistributionService",
    "LocalArtifactPublisher",
    "QuestionSelector",
    "S3ArtifactPublisher",
    "TemplateService",
    "ThemePlanner",
]
