import logging
import random
import threading
from typing import Dict, List, Optional, Sequence, Union

from .models import CardMode, CardState, CardView, VocabItem
from .progress import ProgressStore
from .storage import StateStore, load_section, save_section

logger = logging.getLogger(__name__)

SECTION = "cards"
ALL = "all"


# --- Sampling primitives ---
def filter_items(
    pool: Sequence[VocabItem],
    category: str = ALL,
    level: Union[int, str] = ALL,
) -> List[VocabItem]:
    """Keeps items matching category and level; "all" matches anything."""
    if level != ALL:
        try:
            level = int(level)
        except (TypeError, ValueError):
            logger.warning(f"Level filter '{level}' is not a number, no cards match")
            return []
    return [
        item
        for item in pool
        if (category == ALL or item.category == category)
        and (level == ALL or item.level == level)
    ]


def sort_unknown_first(
    items: Sequence[VocabItem], known: Dict[str, bool]
) -> List[VocabItem]:
    return sorted(items, key=lambda item: bool(known.get(item.id)))


def shuffle(items: Sequence[VocabItem], rng: Optional[random.Random] = None) -> List[VocabItem]:
    shuffled = list(items)
    (rng or random).shuffle(shuffled)
    return shuffled


# --- Flashcard browsing ---
class FlashcardDeck:
    """Cursor over a filtered slice of the vocabulary pool.

    Marking a card known or unknown counts as an answer for progress.
    """

    def __init__(
        self,
        pool: Sequence[VocabItem],
        progress: ProgressStore,
        backend: StateStore,
        rng: Optional[random.Random] = None,
    ):
        self.pool = tuple(pool)
        self.progress = progress
        self.backend = backend
        self.rng = rng or random.Random()
        self.state = load_section(backend, SECTION, CardState)
        self.items: List[VocabItem] = []
        self.index = 0
        self.revealed = False
        self.category = ALL
        self.level: Union[int, str] = ALL
        self._lock = threading.RLock()
        self.apply_filters()

    def _save(self) -> None:
        try:
            save_section(self.backend, SECTION, self.state)
        except Exception as e:
            logger.error(f"Failed to save card state: {e}")

    def apply_filters(self, category: str = ALL, level: Union[int, str] = ALL) -> None:
        with self._lock:
            self.category = category
            self.level = level
            self.items = sort_unknown_first(
                filter_items(self.pool, category, level), self.state.known
            )
            self.index = 0
            self.revealed = False

    def current(self) -> Optional[VocabItem]:
        with self._lock:
            if not self.items:
                return None
            item = self.items[self.index]
            if self.state.last_card_id != item.id:
                self.state.last_card_id = item.id
                self._save()
            return item

    def next(self) -> Optional[VocabItem]:
        with self._lock:
            if not self.items:
                return None
            self.index = (self.index + 1) % len(self.items)
            self.revealed = False
            return self.current()

    def prev(self) -> Optional[VocabItem]:
        with self._lock:
            if not self.items:
                return None
            self.index = (self.index - 1) % len(self.items)
            self.revealed = False
            return self.current()

    def shuffle(self) -> Optional[VocabItem]:
        with self._lock:
            self.items = shuffle(self.items, self.rng)
            self.index = 0
            self.revealed = False
            return self.current()

    def toggle_reveal(self) -> bool:
        with self._lock:
            self.revealed = not self.revealed
            return self.revealed

    def _mark(self, is_known: bool) -> List[str]:
        with self._lock:
            item = self.current()
            if item is None:
                return []
            self.state.known[item.id] = is_known
            self._save()
            new_badges = self.progress.register_answer(item.category, is_known)
            self.next()
            return new_badges

    def mark_known(self) -> List[str]:
        return self._mark(True)

    def mark_unknown(self) -> List[str]:
        return self._mark(False)

    def toggle_favorite(self) -> bool:
        with self._lock:
            item = self.current()
            if item is None:
                return False
            if item.id in self.state.favorites:
                self.state.favorites.remove(item.id)
            else:
                self.state.favorites.append(item.id)
            self._save()
            return item.id in self.state.favorites

    def last_card(self) -> Optional[VocabItem]:
        for item in self.pool:
            if item.id == self.state.last_card_id:
                return item
        return None

    def reset(self) -> None:
        with self._lock:
            self.state = CardState()
            self.apply_filters()

    def view(self, mode: CardMode) -> Optional[CardView]:
        with self._lock:
            item = self.current()
            if item is None:
                return None
            front_visible = mode != CardMode.JA_EN or self.revealed
            back_visible = mode != CardMode.EN_JA or self.revealed
            return CardView(
                item=item,
                index=self.index,
                total=len(self.items),
                front_visible=front_visible,
                back_visible=back_visible,
                revealed=self.revealed,
                favorite=item.id in self.state.favorites,
                known=self.state.known.get(item.id),
            )
