"""English Buddy: flashcards and quizzes with XP, streaks and badges."""

from .app import create_app
from .config import Settings, settings
from .progress import ProgressStore
from .quiz import QuizSession

__all__ = ["create_app", "Settings", "settings", "ProgressStore", "QuizSession"]
