import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type, TypeVar

import redis
from pydantic import BaseModel, ValidationError

from .config import Settings
from .database import get_db_connection, init_db

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class StateStore(ABC):
    """Abstract key/value store for persisted state sections."""

    @abstractmethod
    def load(self, section: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def save(self, section: str, snapshot: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


def _decode(section: str, raw: Any) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring unreadable '{section}' snapshot: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring '{section}' snapshot of type {type(data).__name__}")
        return None
    return data


class MemoryStateStore(StateStore):
    """Keeps snapshots in process memory, serialized like the real backends."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def load(self, section: str) -> Optional[Dict[str, Any]]:
        return _decode(section, self._data.get(section))

    def save(self, section: str, snapshot: Dict[str, Any]) -> None:
        self._data[section] = json.dumps(snapshot, ensure_ascii=False)

    def clear(self) -> None:
        self._data.clear()


class SQLiteStateStore(StateStore):
    """Stores each section as a JSON blob in the ``state`` table."""

    def __init__(self, settings: Settings):
        self.settings = settings
        init_db(settings)

    def load(self, section: str) -> Optional[Dict[str, Any]]:
        conn = get_db_connection(self.settings)
        try:
            row = conn.execute(
                "SELECT payload FROM state WHERE section=?", (section,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return _decode(section, row["payload"])

    def save(self, section: str, snapshot: Dict[str, Any]) -> None:
        conn = get_db_connection(self.settings)
        with conn:
            conn.execute(
                """
                INSERT INTO state(section, payload, updated_at)
                VALUES(?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(section) DO UPDATE SET
                    payload=excluded.payload,
                    updated_at=excluded.updated_at
                """,
                (section, json.dumps(snapshot, ensure_ascii=False)),
            )
        conn.close()

    def clear(self) -> None:
        conn = get_db_connection(self.settings)
        with conn:
            conn.execute("DELETE FROM state")
        conn.close()


class RedisStateStore(StateStore):
    """Stores each section under ``<prefix>:<section>`` in Redis."""

    def __init__(self, client, prefix: str = "ebuddy"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "ebuddy") -> "RedisStateStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, section: str) -> str:
        return f"{self.prefix}:{section}"

    def load(self, section: str) -> Optional[Dict[str, Any]]:
        return _decode(section, self.client.get(self._key(section)))

    def save(self, section: str, snapshot: Dict[str, Any]) -> None:
        self.client.set(self._key(section), json.dumps(snapshot, ensure_ascii=False))

    def clear(self) -> None:
        keys = list(self.client.scan_iter(match=f"{self.prefix}:*"))
        if keys:
            self.client.delete(*keys)


def build_state_store(settings: Settings) -> StateStore:
    backend = settings.STATE_BACKEND
    if backend == "redis":
        logger.info(f"Using Redis state store at {settings.REDIS_URL}")
        return RedisStateStore.from_url(settings.REDIS_URL, prefix=settings.REDIS_PREFIX)
    if backend == "memory":
        logger.info("Using in-memory state store; progress will not survive a restart.")
        return MemoryStateStore()
    if backend != "sqlite":
        logger.warning(f"Unknown state backend '{backend}', falling back to sqlite.")
    return SQLiteStateStore(settings)


def merge_with_defaults(
    model_cls: Type[ModelT], snapshot: Optional[Dict[str, Any]]
) -> ModelT:
    """Builds ``model_cls`` from a stored snapshot, field by field.

    Fields that are missing or fail validation keep their defaults. Fields the
    model does not know about are carried along untouched.
    """
    if not snapshot:
        return model_cls()
    try:
        return model_cls.model_validate(snapshot)
    except ValidationError as e:
        bad_fields = {error["loc"][0] for error in e.errors() if error["loc"]}
        logger.warning(
            f"Malformed {model_cls.__name__} snapshot, resetting fields: "
            f"{sorted(str(field) for field in bad_fields)}"
        )
    usable = {key: value for key, value in snapshot.items() if key not in bad_fields}
    try:
        return model_cls.model_validate(usable)
    except ValidationError:
        logger.warning(f"Falling back to default {model_cls.__name__}")
        return model_cls()


def load_section(
    store: StateStore, section: str, model_cls: Type[ModelT]
) -> ModelT:
    return merge_with_defaults(model_cls, store.load(section))


def save_section(store: StateStore, section: str, model: BaseModel) -> None:
    store.save(section, model.model_dump(mode="json"))
