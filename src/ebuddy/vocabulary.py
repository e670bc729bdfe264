import glob
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from pydantic import ValidationError

from .models import CATEGORIES, VocabItem

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"id", "en", "ja", "category"}

DUMMY_POOL = [
    {"id": "d1", "en": "hello", "ja": "こんにちは", "category": "daily", "level": 1},
    {"id": "d2", "en": "thank you", "ja": "ありがとう", "category": "daily", "level": 1},
    {"id": "b1", "en": "meeting", "ja": "会議", "category": "business", "level": 1},
    {"id": "b2", "en": "deadline", "ja": "締め切り", "category": "business", "level": 2},
    {"id": "i1", "en": "server", "ja": "サーバー", "category": "it", "level": 1},
    {"id": "i2", "en": "bug", "ja": "不具合", "category": "it", "level": 1},
]


def _read_frame(file_path: str) -> pd.DataFrame:
    if file_path.endswith(".json"):
        return pd.read_json(file_path, orient="records", dtype=False, encoding="utf-8")
    return pd.read_csv(file_path, encoding="utf-8", dtype=str, keep_default_na=False)


def _present(value: Any) -> bool:
    return value is not None and value != "" and not (isinstance(value, float) and pd.isna(value))


def _row_to_item(row: Dict[str, Any]) -> Optional[VocabItem]:
    try:
        return VocabItem(
            id=str(row["id"]),
            en=str(row["en"]),
            ja=str(row["ja"]),
            example_en=str(row["example_en"]) if _present(row.get("example_en")) else "",
            category=str(row["category"]),
            level=int(row["level"]) if _present(row.get("level")) else 1,
        )
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning(f"Skipping vocabulary row {row.get('id')!r}: {e}")
        return None


class VocabularyManager:
    """Loads the vocabulary pool once; the pool is read-only afterwards."""

    def __init__(self, directory: str):
        self.directory = directory
        self._pool: Tuple[VocabItem, ...] = ()

    def load_all(self) -> Tuple[VocabItem, ...]:
        items: List[VocabItem] = []
        if not os.path.exists(self.directory):
            os.makedirs(self.directory)
            logger.warning(f"Created directory {self.directory}. Please add JSON or CSV files.")

        files = sorted(
            glob.glob(os.path.join(self.directory, "*.json"))
            + glob.glob(os.path.join(self.directory, "*.csv"))
        )
        for file_path in files:
            try:
                df = _read_frame(file_path)
            except Exception as e:
                logger.error(f"Failed to load {file_path}: {e}")
                continue
            missing = REQUIRED_COLUMNS - set(df.columns)
            if missing:
                logger.error(f"Skipping {file_path}: Missing columns {sorted(missing)}.")
                continue
            df = df.drop_duplicates(subset="id")
            loaded = [_row_to_item(row) for row in df.to_dict("records")]
            items.extend(item for item in loaded if item is not None)
            logger.info(f"Loaded {len(df)} words from {os.path.basename(file_path)}")

        if not items:
            logger.warning("No vocabulary files found. Loading dummy data.")
            items = [VocabItem(**row) for row in DUMMY_POOL]

        unique: Dict[str, VocabItem] = {}
        for item in items:
            if item.category not in CATEGORIES:
                logger.warning(f"Word '{item.id}' has unknown category '{item.category}'.")
            unique.setdefault(item.id, item)
        self._pool = tuple(unique.values())
        return self._pool

    def pool(self) -> Tuple[VocabItem, ...]:
        return self._pool

    def get(self, item_id: str) -> Optional[VocabItem]:
        for item in self._pool:
            if item.id == item_id:
                return item
        return None

    def get_categories(self) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = {}
        for item in self._pool:
            counts[item.category] = counts.get(item.category, 0) + 1
        return [
            {"id": key, "name": key.upper() if key == "it" else key.title(), "count": count}
            for key, count in sorted(counts.items())
        ]
