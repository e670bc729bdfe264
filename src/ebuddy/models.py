import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

CATEGORIES = ("daily", "business", "it")


# --- Enums ---
class Mode(str, Enum):
    FIXED = "ten"
    SURVIVAL = "survival"
    TIMED = "time"


class Direction(str, Enum):
    EN_JA = "en-ja"
    JA_EN = "ja-en"


class CardMode(str, Enum):
    EN_JA = "en-ja"
    JA_EN = "ja-en"
    BOTH = "both"


class Theme(str, Enum):
    AUTO = "auto"
    LIGHT = "light"
    DARK = "dark"


class Phase(str, Enum):
    SETUP = "setup"
    RUNNING = "running"
    ENDED = "ended"


# --- Vocabulary ---
class VocabItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    en: str
    ja: str
    example_en: str = ""
    category: str
    level: int = 1


# --- Persisted state ---
class CategoryStats(BaseModel):
    total: int = Field(0, ge=0)
    correct: int = Field(0, ge=0)


def default_categories() -> Dict[str, CategoryStats]:
    return {key: CategoryStats() for key in CATEGORIES}


class ProgressRecord(BaseModel):
    """Lifetime study progress. Unknown fields from newer snapshots are kept."""

    model_config = ConfigDict(extra="allow")

    total: int = Field(0, ge=0)
    correct: int = Field(0, ge=0)
    correct_streak: int = Field(0, ge=0)
    streak: int = Field(0, ge=0)
    last_study: Optional[date] = None
    xp: int = Field(0, ge=0)
    badges: List[str] = Field(default_factory=list)
    category: Dict[str, CategoryStats] = Field(default_factory=default_categories)

    @field_validator("last_study", mode="before")
    @classmethod
    def _blank_date_is_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("badges")
    @classmethod
    def _unique_badges(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @field_validator("category", mode="before")
    @classmethod
    def _merge_categories(cls, value: Any) -> Dict[str, CategoryStats]:
        merged = default_categories()
        if not isinstance(value, dict):
            logger.warning(f"Discarding malformed category stats: {value!r}")
            return merged
        for key, stats in value.items():
            try:
                merged[key] = CategoryStats.model_validate(stats)
            except ValidationError:
                logger.warning(f"Discarding malformed stats for category '{key}'")
        return merged

    @model_validator(mode="after")
    def _repair_invariants(self) -> "ProgressRecord":
        if self.correct > self.total:
            logger.warning("Persisted progress has correct > total, clamping.")
            self.correct = self.total
        for stats in self.category.values():
            if stats.correct > stats.total:
                stats.correct = stats.total
        if self.last_study is not None and self.streak < 1:
            self.streak = 1
        return self


class UserSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    theme: Theme = Theme.AUTO
    card_mode: CardMode = CardMode.EN_JA
    quiz_direction: Direction = Direction.EN_JA
    speech: bool = True
    badge_notifications: bool = True


class CardState(BaseModel):
    model_config = ConfigDict(extra="allow")

    favorites: List[str] = Field(default_factory=list)
    known: Dict[str, bool] = Field(default_factory=dict)
    last_card_id: str = ""


# --- Quiz ---
class Question(BaseModel):
    item_id: str
    prompt: str
    answer: str
    options: List[str]
    category: str
    index: int


class AnswerResult(BaseModel):
    item_id: str
    prompt: str
    chosen: str
    correct_answer: str
    is_correct: bool
    new_badges: List[str] = Field(default_factory=list)


class QuizSummary(BaseModel):
    accuracy_percent: int
    correct_fraction: str
    average_seconds: int
    correct_count: int
    answered_count: int
    missed: List[VocabItem]


class QuizSnapshot(BaseModel):
    phase: Phase
    mode: Mode
    direction: Direction
    category: str
    current_index: int
    total_questions: int
    correct_count: int
    question: Optional[Question] = None
    remaining_seconds: Optional[int] = None
    missed: List[VocabItem] = Field(default_factory=list)
    summary: Optional[QuizSummary] = None


# --- Progress views ---
class CategoryAccuracy(BaseModel):
    total: int
    correct: int
    accuracy: int


class BadgeStatus(BaseModel):
    id: str
    label: str
    earned: bool


class ProgressSummary(BaseModel):
    total: int
    correct: int
    accuracy: int
    streak: int
    xp: int
    level: int
    xp_in_level: int
    categories: Dict[str, CategoryAccuracy]
    badges: List[BadgeStatus]


class RankingEntry(BaseModel):
    name: str
    score: int


# --- Flashcards ---
class CardView(BaseModel):
    item: VocabItem
    index: int
    total: int
    front_visible: bool
    back_visible: bool
    revealed: bool
    favorite: bool
    known: Optional[bool] = None
