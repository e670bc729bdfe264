import hashlib
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from gtts import gTTS

from .config import Settings

logger = logging.getLogger(__name__)


class Speaker(ABC):
    """Fire-and-forget text-to-speech. Callers check the user's speech setting."""

    @abstractmethod
    def speak(self, text: str) -> None:
        pass


class NullSpeaker(Speaker):
    """Used where no speech engine is available."""

    def speak(self, text: str) -> None:
        logger.debug(f"Speech unavailable, skipping: {text}")


class ThreadedSpeaker(Speaker):
    """Runs a blocking speech engine on a daemon thread so speak() returns at once."""

    def __init__(self, engine: Callable[[str], None]):
        self.engine = engine
        self._thread = None

    def speak(self, text: str) -> None:
        if not text:
            return
        self._thread = threading.Thread(target=self._run, args=(text,), daemon=True)
        self._thread.start()

    def _run(self, text: str) -> None:
        try:
            self.engine(text)
        except Exception as e:
            logger.error(f"Speech engine failed for '{text}': {e}")

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)


class GTTSEngine:
    """Renders text to an mp3 under ``audio_dir`` with Google Text-to-Speech.

    Files are named by a hash of the text, so each word is only fetched once.
    """

    def __init__(self, audio_dir: str, lang: str = "en"):
        self.audio_dir = audio_dir
        self.lang = lang

    def path_for(self, text: str) -> str:
        digest = hashlib.md5(text.encode("utf-8")).hexdigest()
        return os.path.join(self.audio_dir, f"{digest}.mp3")

    def __call__(self, text: str) -> None:
        path = self.path_for(text)
        if os.path.exists(path):
            return
        os.makedirs(self.audio_dir, exist_ok=True)
        gTTS(text=text, lang=self.lang).save(path)
        logger.info(f"Generated audio for '{text}' at {path}")


def build_speaker(settings: Settings) -> Speaker:
    engine = settings.SPEECH_ENGINE
    if engine == "gtts":
        return ThreadedSpeaker(GTTSEngine(settings.AUDIO_DIR, settings.SPEECH_LANG))
    if engine != "none":
        logger.warning(f"Unknown speech engine '{engine}', speech disabled.")
    return NullSpeaker()
