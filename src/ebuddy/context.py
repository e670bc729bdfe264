import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from fastapi.templating import Jinja2Templates

from .config import Settings
from .deck import FlashcardDeck
from .models import UserSettings
from .progress import ProgressStore
from .quiz import QuizSession
from .speech import Speaker, build_speaker
from .storage import StateStore, build_state_store, load_section, save_section
from .vocabulary import VocabularyManager

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "settings"


@dataclass
class AppContext:
    """Everything one study profile needs, wired together once at startup."""

    settings: Settings
    backend: StateStore
    vocab_manager: VocabularyManager
    progress: ProgressStore
    quiz: QuizSession
    speaker: Speaker
    templates: Jinja2Templates
    rng: random.Random = field(default_factory=random.Random)
    user_settings: UserSettings = field(default_factory=UserSettings)
    deck: Optional[FlashcardDeck] = None

    def load(self) -> None:
        pool = self.vocab_manager.load_all()
        self.user_settings = load_section(self.backend, SETTINGS_SECTION, UserSettings)
        self.deck = FlashcardDeck(pool, self.progress, self.backend, rng=self.rng)

    def save_user_settings(self, user_settings: UserSettings) -> None:
        self.user_settings = user_settings
        save_section(self.backend, SETTINGS_SECTION, user_settings)

    def reset_all(self) -> None:
        """Wipes every persisted section and returns to first-run defaults."""
        self.quiz.reset()
        self.backend.clear()
        self.progress.reset()
        self.user_settings = UserSettings()
        if self.deck is not None:
            self.deck.reset()
        logger.info("All study state reset to defaults.")


def build_context(
    settings: Settings,
    backend: Optional[StateStore] = None,
    speaker: Optional[Speaker] = None,
    rng: Optional[random.Random] = None,
) -> AppContext:
    backend = backend or build_state_store(settings)
    rng = rng or random.Random()
    progress = ProgressStore(backend, settings=settings)
    return AppContext(
        settings=settings,
        backend=backend,
        vocab_manager=VocabularyManager(settings.VOCAB_DIR),
        progress=progress,
        quiz=QuizSession(progress, rng=rng, settings=settings),
        speaker=speaker or build_speaker(settings),
        templates=Jinja2Templates(directory=settings.TEMPLATE_DIR),
        rng=rng,
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.context
