import logging
import threading
from datetime import date, timedelta
from typing import Callable, List, Optional

from . import badges
from .config import Settings, settings as default_settings
from .models import (
    CATEGORIES,
    BadgeStatus,
    CategoryAccuracy,
    ProgressRecord,
    ProgressSummary,
    RankingEntry,
)
from .storage import StateStore, load_section, save_section

logger = logging.getLogger(__name__)

SECTION = "progress"
XP_PER_LEVEL = 100

RIVALS = [
    RankingEntry(name="AI Haru", score=320),
    RankingEntry(name="AI Luna", score=260),
    RankingEntry(name="AI Kai", score=180),
]


def update_streak(record: ProgressRecord, today: date) -> None:
    """Counts consecutive calendar days with at least one answer."""
    if record.last_study is None:
        record.streak = 1
        record.last_study = today
        return
    if record.last_study == today:
        return
    if today - record.last_study == timedelta(days=1):
        record.streak += 1
    else:
        record.streak = 1
    record.last_study = today


def percent(correct: int, total: int) -> int:
    if not total:
        return 0
    return int(correct / total * 100 + 0.5)


class ProgressStore:
    """Owns the progress record and every mutation applied to it.

    Mutations run under a lock and are written to the backend right away,
    unless ``autosave`` is off, in which case :meth:`flush` writes them.
    """

    def __init__(
        self,
        backend: StateStore,
        today: Callable[[], date] = date.today,
        autosave: bool = True,
        settings: Settings = default_settings,
    ):
        self.backend = backend
        self.today = today
        self.autosave = autosave
        self.xp_correct = settings.XP_CORRECT
        self.xp_incorrect = settings.XP_INCORRECT
        self._lock = threading.Lock()
        self._record = load_section(backend, SECTION, ProgressRecord)
        self._dirty = False

    def snapshot(self) -> ProgressRecord:
        with self._lock:
            return self._record.model_copy(deep=True)

    def register_answer(self, category: Optional[str], is_correct: bool) -> List[str]:
        """Records one answer and returns the badges it newly earned."""
        if category not in CATEGORIES:
            category = None
        with self._lock:
            record = self._record
            record.total += 1
            if category:
                record.category[category].total += 1
            if is_correct:
                record.correct += 1
                if category:
                    record.category[category].correct += 1
                record.correct_streak += 1
                record.xp += self.xp_correct
            else:
                record.correct_streak = 0
                record.xp += self.xp_incorrect
            update_streak(record, self.today())

            earned = badges.evaluate(record, category)
            new_badges = [
                badge_id
                for badge_id, _ in badges.BADGE_CATALOG
                if badge_id in earned and badge_id not in record.badges
            ]
            record.badges.extend(new_badges)
            self._dirty = True
            if self.autosave:
                self._flush_locked()

        for badge_id in new_badges:
            logger.info(f"Badge earned: {badge_id}")
        return new_badges

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()

    def _flush_locked(self) -> None:
        try:
            save_section(self.backend, SECTION, self._record)
        except Exception as e:
            # Stays dirty so the next flush retries.
            logger.error(f"Failed to save progress: {e}")
            return
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def reset(self) -> None:
        with self._lock:
            self._record = ProgressRecord()
            self._dirty = True
            self._flush_locked()
        logger.info("Progress reset to defaults.")


def summarize(record: ProgressRecord) -> ProgressSummary:
    categories = {
        key: CategoryAccuracy(
            total=record.category[key].total,
            correct=record.category[key].correct,
            accuracy=percent(record.category[key].correct, record.category[key].total),
        )
        for key in CATEGORIES
    }
    return ProgressSummary(
        total=record.total,
        correct=record.correct,
        accuracy=percent(record.correct, record.total),
        streak=record.streak,
        xp=record.xp,
        level=record.xp // XP_PER_LEVEL + 1,
        xp_in_level=record.xp % XP_PER_LEVEL,
        categories=categories,
        badges=[
            BadgeStatus(id=badge_id, label=label, earned=badge_id in record.badges)
            for badge_id, label in badges.BADGE_CATALOG
        ],
    )


def leaderboard(name: str, xp: int) -> List[RankingEntry]:
    entries = RIVALS + [RankingEntry(name=name or "You", score=xp)]
    return sorted(entries, key=lambda entry: entry.score, reverse=True)
