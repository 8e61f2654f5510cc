"""API routers for the practice engine."""

from .difficulty import router as difficulty_router
from .distractors import router as distractors_router
from .practice import router as practice_router

__all__ = [
    "difficulty_router",
    "distractors_router",
    "practice_router",
]
