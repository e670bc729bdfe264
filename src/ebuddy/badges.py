from typing import Optional, Set

from .models import CATEGORIES, ProgressRecord

BADGE_CATALOG = [
    ("first-study", "初回学習"),
    ("ten-correct", "10連続正解"),
    ("daily-20", "Daily 20問"),
    ("business-20", "Business 20問"),
    ("it-20", "IT 20問"),
    ("xp-100", "XP 100"),
]

CORRECT_STREAK_THRESHOLD = 10
XP_THRESHOLD = 100
CATEGORY_THRESHOLD = 20


def evaluate(record: ProgressRecord, category: Optional[str] = None) -> Set[str]:
    """Returns every badge the record currently qualifies for.

    Thresholds are re-checked on each call rather than edge-triggered, so
    calling this repeatedly on the same record yields the same set. Category
    badges are only checked for the category that was just answered.
    """
    earned = set()
    if record.total > 0:
        earned.add("first-study")
    if record.correct_streak >= CORRECT_STREAK_THRESHOLD:
        earned.add("ten-correct")
    if record.xp >= XP_THRESHOLD:
        earned.add("xp-100")
    if category in CATEGORIES and category in record.category:
        if record.category[category].total >= CATEGORY_THRESHOLD:
            earned.add(f"{category}-20")
    return earned
