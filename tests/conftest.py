import random
from datetime import date
from pathlib import Path

import pytest

from ebuddy.config import Settings
from ebuddy.models import VocabItem
from ebuddy.progress import ProgressStore
from ebuddy.quiz import QuizSession
from ebuddy.storage import MemoryStateStore

ROOT = Path(__file__).resolve().parents[1]

WORDS = [
    ("d1", "breakfast", "朝食", "daily", 1),
    ("d2", "umbrella", "傘", "daily", 1),
    ("d3", "neighbor", "隣人", "daily", 2),
    ("d4", "laundry", "洗濯物", "daily", 2),
    ("b1", "meeting", "会議", "business", 1),
    ("b2", "invoice", "請求書", "business", 1),
    ("b3", "deadline", "締め切り", "business", 2),
    ("i1", "server", "サーバー", "it", 1),
    ("i2", "bug", "不具合", "it", 1),
    ("i3", "backup", "バックアップ", "it", 2),
]


def make_pool(words=WORDS):
    return [
        VocabItem(id=id_, en=en, ja=ja, example_en=f"An example with {en}.", category=cat, level=lvl)
        for id_, en, ja, cat, lvl in words
    ]


class FixedDate:
    """Callable clock returning a settable date."""

    def __init__(self, value: date):
        self.value = value

    def __call__(self) -> date:
        return self.value


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FlakyStateStore(MemoryStateStore):
    """Memory store whose writes fail while ``broken`` is set."""

    def __init__(self):
        super().__init__()
        self.broken = True

    def save(self, section, snapshot):
        if self.broken:
            raise OSError("disk full")
        super().save(section, snapshot)


class ManualCountdown:
    """Countdown driven by explicit ticks instead of a thread."""

    instances = []

    def __init__(self, seconds, on_expire, interval=1.0):
        self.remaining = seconds
        self.on_expire = on_expire
        self.started = False
        self.cancelled = False
        ManualCountdown.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def expired(self):
        return self.remaining <= 0

    def tick(self, seconds=1):
        self.remaining -= seconds
        if self.remaining <= 0:
            self.remaining = 0
            self.on_expire()


@pytest.fixture
def pool():
    return make_pool()


@pytest.fixture
def backend():
    return MemoryStateStore()


@pytest.fixture
def today():
    return FixedDate(date(2024, 1, 1))


@pytest.fixture
def progress(backend, today):
    return ProgressStore(backend, today=today)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def countdowns():
    ManualCountdown.instances = []
    return ManualCountdown.instances


@pytest.fixture
def session(progress, clock, countdowns):
    return QuizSession(
        progress,
        rng=random.Random(7),
        clock=clock,
        countdown_factory=ManualCountdown,
    )


@pytest.fixture
def app_settings(tmp_path):
    settings = Settings()
    settings.LOG_DIR = str(tmp_path / "log")
    settings.DB_DIR = str(tmp_path / "db")
    settings.VOCAB_DIR = str(tmp_path / "vocabulary")
    settings.TEMPLATE_DIR = str(ROOT / "templates")
    settings.STATIC_DIR = str(ROOT / "static")
    settings.STATE_BACKEND = "memory"
    settings.SPEECH_ENGINE = "none"
    settings.AUDIO_DIR = str(tmp_path / "audio")
    return settings
