"""Business logic services."""

from .analytics import AnalyticsService
from .distractor_validator import DistractorValidator
from .distractors import DistractorService
from .question_selector import QuestionSelector
from .recommender import AdaptiveRecommender
from .scoring import ScoringAggregator
from .session_manager import SessionLifecycleManager

__all__ = [
    "AdaptiveRecommender",
    "AnalyticsService",
    "DistractorService",
    "DistractorValidator",
    "QuestionSelector",
    "ScoringAggregator",
    "SessionLifecycleManager",
]
