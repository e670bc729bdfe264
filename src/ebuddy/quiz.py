import logging
import random
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, Union

from .config import Settings, settings as default_settings
from .deck import ALL, filter_items, shuffle
from .models import (
    AnswerResult,
    Direction,
    Mode,
    Phase,
    Question,
    QuizSnapshot,
    QuizSummary,
    VocabItem,
)
from .progress import ProgressStore

logger = logging.getLogger(__name__)


def prompt_for(item: VocabItem, direction: Direction) -> str:
    return item.en if direction == Direction.EN_JA else item.ja


def answer_for(item: VocabItem, direction: Direction) -> str:
    return item.ja if direction == Direction.EN_JA else item.en


def build_options(
    item: VocabItem,
    direction: Direction,
    vocab: Sequence[VocabItem],
    rng: random.Random,
    count: int = 4,
) -> List[str]:
    """Correct answer plus up to ``count - 1`` distinct distractors, shuffled.

    Candidates whose text repeats an option already chosen are skipped; when
    the vocabulary runs out, fewer options are returned.
    """
    answer = answer_for(item, direction)
    options = [answer]
    candidates = shuffle([other for other in vocab if other.id != item.id], rng)
    while len(options) < count and candidates:
        option = answer_for(candidates.pop(), direction)
        if option not in options:
            options.append(option)
    rng.shuffle(options)
    return options


# --- Countdown ---
class Countdown:
    """Ticks once per ``interval`` on a daemon thread until cancelled.

    ``on_expire`` runs on the countdown thread when ``remaining`` reaches 0.
    """

    def __init__(self, seconds: int, on_expire: Callable[[], None], interval: float = 1.0):
        self.remaining = seconds
        self.on_expire = on_expire
        self.interval = interval
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval):
            self.remaining -= 1
            if self.remaining <= 0:
                self.remaining = 0
                if not self._cancelled.is_set():
                    self.on_expire()
                return


# --- Strategy Pattern: Question Generators ---
class QuizGenerator(ABC):
    """Orders a filtered pool into a question sequence."""

    def __init__(self, rng: random.Random):
        self.rng = rng

    @abstractmethod
    def generate(self, pool: Sequence[VocabItem]) -> List[VocabItem]:
        pass


class FixedCountGenerator(QuizGenerator):
    """Fixed-count mode: a random sample of at most ``count`` items."""

    def __init__(self, rng: random.Random, count: int):
        super().__init__(rng)
        self.count = count

    def generate(self, pool: Sequence[VocabItem]) -> List[VocabItem]:
        return shuffle(pool, self.rng)[: self.count]


class PermutationGenerator(QuizGenerator):
    """Survival and timed modes: the whole pool in random order."""

    def generate(self, pool: Sequence[VocabItem]) -> List[VocabItem]:
        return shuffle(pool, self.rng)


class QuizFactory:
    """Factory to select the appropriate generator."""

    @staticmethod
    def create(mode: Mode, rng: random.Random, size: int) -> QuizGenerator:
        if mode == Mode.FIXED:
            return FixedCountGenerator(rng, size)
        return PermutationGenerator(rng)


def _coerce(enum_cls, value, fallback):
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__} '{value}', using '{fallback.value}'")
        return fallback


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


# --- Session ---
class QuizSession:
    """The single active quiz, moving through setup -> running -> ended.

    Every answer is forwarded to the progress store. Starting, retrying,
    reviewing, resetting or ending cancels any running countdown, and a
    countdown that fires late for an older session is ignored.
    """

    def __init__(
        self,
        progress: ProgressStore,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        countdown_factory: Callable[..., Countdown] = Countdown,
        settings: Settings = default_settings,
    ):
        self.progress = progress
        self.rng = rng or random.Random()
        self.clock = clock
        self.countdown_factory = countdown_factory
        self.quiz_size = settings.QUIZ_SIZE
        self.option_count = settings.OPTION_COUNT
        self.timed_seconds = settings.TIMED_SECONDS
        self._lock = threading.RLock()
        self._countdown: Optional[Countdown] = None
        self._generation = 0
        self.vocab: Optional[Sequence[VocabItem]] = None
        self._clear(Mode.FIXED, Direction.EN_JA, ALL)

    def _clear(self, mode: Mode, direction: Direction, category: str) -> None:
        self.mode = mode
        self.direction = direction
        self.category = category
        self.questions: List[VocabItem] = []
        self.current_index = 0
        self.correct_count = 0
        self.missed: List[VocabItem] = []
        self.phase = Phase.SETUP
        self.question: Optional[Question] = None
        self.summary: Optional[QuizSummary] = None
        self.started_at = 0.0

    # --- transitions ---
    def start(
        self,
        mode: Union[Mode, str],
        direction: Union[Direction, str],
        category: str,
        pool: Sequence[VocabItem],
    ) -> Optional[Question]:
        mode = _coerce(Mode, mode, Mode.FIXED)
        direction = _coerce(Direction, direction, Direction.EN_JA)
        with self._lock:
            self.vocab = tuple(pool)
            generator = QuizFactory.create(mode, self.rng, self.quiz_size)
            questions = generator.generate(filter_items(self.vocab, category))
            return self._begin(mode, direction, category, questions)

    def retry(self) -> Optional[Question]:
        with self._lock:
            if self.vocab is None:
                logger.warning("Retry requested before any quiz was started.")
                return None
            return self.start(self.mode, self.direction, self.category, self.vocab)

    def review(self) -> Optional[Question]:
        """Replays the items missed in the session that just ended."""
        with self._lock:
            if self.phase != Phase.ENDED or not self.missed:
                return None
            return self._begin(self.mode, self.direction, self.category, list(self.missed))

    def reset(self) -> None:
        with self._lock:
            self._cancel_countdown()
            self._generation += 1
            self._clear(self.mode, self.direction, self.category)

    def _begin(
        self,
        mode: Mode,
        direction: Direction,
        category: str,
        questions: List[VocabItem],
    ) -> Optional[Question]:
        self._cancel_countdown()
        self._generation += 1
        self._clear(mode, direction, category)
        self.questions = questions
        self.phase = Phase.RUNNING
        self.started_at = self.clock()
        if mode == Mode.TIMED:
            generation = self._generation
            self._countdown = self.countdown_factory(
                self.timed_seconds, lambda: self._expire(generation)
            )
            self._countdown.start()
        logger.info(
            f"Quiz started [Mode: {mode.value}, Direction: {direction.value}, "
            f"Category: {category}, Questions: {len(questions)}]"
        )
        return self.present_question()

    def _cancel_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _expire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self.phase != Phase.RUNNING:
                return
            logger.info("Quiz countdown expired.")
            self.end()

    # --- question loop ---
    def present_question(self) -> Optional[Question]:
        with self._lock:
            if self.phase != Phase.RUNNING:
                return None
            if self.current_index >= len(self.questions):
                self.end()
                return None
            item = self.questions[self.current_index]
            self.question = Question(
                item_id=item.id,
                prompt=prompt_for(item, self.direction),
                answer=answer_for(item, self.direction),
                options=build_options(
                    item, self.direction, self.vocab or (), self.rng, self.option_count
                ),
                category=item.category,
                index=self.current_index,
            )
            return self.question

    def current_item(self) -> Optional[VocabItem]:
        with self._lock:
            if self.phase != Phase.RUNNING or self.current_index >= len(self.questions):
                return None
            return self.questions[self.current_index]

    def submit_answer(self, chosen: str) -> Optional[AnswerResult]:
        with self._lock:
            if self.phase != Phase.RUNNING or self.question is None:
                logger.warning(f"Answer ignored, quiz is {self.phase.value}.")
                return None
            item = self.questions[self.current_index]
            question = self.question
            is_correct = chosen == question.answer
            if is_correct:
                self.correct_count += 1
            else:
                self.missed.append(item)
            new_badges = self.progress.register_answer(item.category, is_correct)
            self.current_index += 1

            result = AnswerResult(
                item_id=item.id,
                prompt=question.prompt,
                chosen=chosen,
                correct_answer=question.answer,
                is_correct=is_correct,
                new_badges=new_badges,
            )
            if self.mode == Mode.SURVIVAL and not is_correct:
                self.end()
            elif self.mode == Mode.TIMED and self._countdown is not None and self._countdown.expired:
                self.end()
            else:
                self.present_question()
            return result

    def submit_option(self, option_index: int) -> Optional[AnswerResult]:
        with self._lock:
            if self.question is None or not (0 <= option_index < len(self.question.options)):
                return None
            return self.submit_answer(self.question.options[option_index])

    def skip(self) -> Optional[Question]:
        with self._lock:
            if self.phase != Phase.RUNNING:
                return None
            self.current_index += 1
            return self.present_question()

    def end(self) -> Optional[QuizSummary]:
        with self._lock:
            if self.phase == Phase.ENDED:
                return self.summary
            if self.phase == Phase.SETUP:
                return None
            self._cancel_countdown()
            self.phase = Phase.ENDED
            self.question = None
            answered = max(1, self.current_index)
            elapsed = self.clock() - self.started_at
            self.summary = QuizSummary(
                accuracy_percent=_round_half_up(self.correct_count / answered * 100),
                correct_fraction=f"{self.correct_count}/{answered}",
                average_seconds=_round_half_up(elapsed / answered),
                correct_count=self.correct_count,
                answered_count=self.current_index,
                missed=list(self.missed),
            )
            logger.info(
                f"Quiz ended [Score: {self.summary.accuracy_percent}%, "
                f"{self.summary.correct_fraction}, Missed: {len(self.missed)}]"
            )
            return self.summary

    def snapshot(self) -> QuizSnapshot:
        with self._lock:
            remaining = None
            if self._countdown is not None:
                remaining = max(0, self._countdown.remaining)
            return QuizSnapshot(
                phase=self.phase,
                mode=self.mode,
                direction=self.direction,
                category=self.category,
                current_index=self.current_index,
                total_questions=len(self.questions),
                correct_count=self.correct_count,
                question=self.question,
                remaining_seconds=remaining,
                missed=list(self.missed),
                summary=self.summary,
            )
