import random
import threading
from datetime import date

from conftest import FixedDate, FlakyStateStore

from ebuddy.models import ProgressRecord
from ebuddy.progress import ProgressStore, leaderboard, summarize, update_streak
from ebuddy.storage import MemoryStateStore, save_section


def _store_with(record: ProgressRecord, today: date) -> ProgressStore:
    backend = MemoryStateStore()
    save_section(backend, "progress", record)
    return ProgressStore(backend, today=FixedDate(today))


def test_correct_answer_updates_counts_xp_and_streaks(progress, backend):
    new_badges = progress.register_answer("daily", True)

    record = progress.snapshot()
    assert record.total == 1
    assert record.correct == 1
    assert record.category["daily"].total == 1
    assert record.category["daily"].correct == 1
    assert record.correct_streak == 1
    assert record.xp == 10
    assert record.streak == 1
    assert record.last_study == date(2024, 1, 1)
    assert new_badges == ["first-study"]
    assert backend.load("progress")["xp"] == 10


def test_wrong_answer_gives_partial_xp_and_resets_correct_streak(progress):
    progress.register_answer("it", True)
    progress.register_answer("it", True)
    progress.register_answer("it", False)

    record = progress.snapshot()
    assert record.total == 3
    assert record.correct == 2
    assert record.category["it"].total == 3
    assert record.category["it"].correct == 2
    assert record.correct_streak == 0
    assert record.xp == 22


def test_missing_or_unknown_category_only_counts_globally(progress):
    progress.register_answer(None, True)
    progress.register_answer("cooking", False)

    record = progress.snapshot()
    assert record.total == 2
    assert record.correct == 1
    assert all(stats.total == 0 for stats in record.category.values())
    assert "cooking" not in record.category


def test_streak_continues_on_the_next_day():
    store = _store_with(
        ProgressRecord(streak=5, last_study=date(2024, 1, 1)), date(2024, 1, 2)
    )
    store.register_answer("daily", True)
    record = store.snapshot()
    assert record.streak == 6
    assert record.last_study == date(2024, 1, 2)


def test_streak_resets_after_a_gap():
    store = _store_with(
        ProgressRecord(streak=5, last_study=date(2024, 1, 1)), date(2024, 1, 5)
    )
    store.register_answer("daily", True)
    assert store.snapshot().streak == 1
    assert store.snapshot().last_study == date(2024, 1, 5)


def test_streak_unchanged_for_a_second_answer_on_the_same_day():
    store = _store_with(
        ProgressRecord(streak=5, last_study=date(2024, 1, 1)), date(2024, 1, 1)
    )
    store.register_answer("daily", False)
    store.register_answer("daily", True)
    assert store.snapshot().streak == 5


def test_streak_resets_when_clock_moves_backward():
    record = ProgressRecord(streak=3, last_study=date(2024, 3, 10))
    update_streak(record, date(2024, 3, 9))
    assert record.streak == 1
    assert record.last_study == date(2024, 3, 9)


def test_ten_correct_badge_survives_a_wrong_answer(progress):
    for _ in range(9):
        progress.register_answer("business", True)
    assert "ten-correct" not in progress.snapshot().badges

    earned = progress.register_answer("business", True)
    assert "ten-correct" in earned
    assert "xp-100" in earned

    progress.register_answer("business", False)
    record = progress.snapshot()
    assert record.correct_streak == 0
    assert "ten-correct" in record.badges


def test_category_badge_is_awarded_for_the_answered_category(progress):
    for i in range(20):
        progress.register_answer("it", i % 2 == 0)

    badges = progress.snapshot().badges
    assert "it-20" in badges
    assert "daily-20" not in badges
    assert "business-20" not in badges


def test_badges_are_never_awarded_twice(progress):
    for _ in range(15):
        progress.register_answer("daily", True)
    badges = progress.snapshot().badges
    assert len(badges) == len(set(badges))


def test_invariants_hold_over_random_answer_sequences(progress):
    rng = random.Random(42)
    previous = progress.snapshot()
    for _ in range(300):
        progress.register_answer(
            rng.choice(["daily", "business", "it", None]), rng.random() < 0.6
        )
        record = progress.snapshot()
        assert record.correct <= record.total
        for stats in record.category.values():
            assert stats.correct <= stats.total
        assert record.xp >= previous.xp
        assert set(previous.badges) <= set(record.badges)
        previous = record


def test_concurrent_answers_are_not_lost(progress):
    def answer():
        for _ in range(50):
            progress.register_answer("daily", True)

    threads = [threading.Thread(target=answer) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    record = progress.snapshot()
    assert record.total == 400
    assert record.correct == 400
    assert record.category["daily"].total == 400
    assert record.xp == 4000


def test_deferred_flush_writes_on_demand(backend, today):
    store = ProgressStore(backend, today=today, autosave=False)
    store.register_answer("daily", True)
    assert backend.load("progress") is None
    assert store.dirty

    store.flush()
    assert backend.load("progress")["total"] == 1
    assert not store.dirty


def test_progress_is_restored_from_the_backend(backend, today):
    ProgressStore(backend, today=today).register_answer("business", True)

    restored = ProgressStore(backend, today=today).snapshot()
    assert restored.total == 1
    assert restored.category["business"].correct == 1
    assert restored.badges == ["first-study"]


def test_reset_returns_to_defaults(progress, backend):
    progress.register_answer("daily", True)
    progress.reset()

    assert progress.snapshot() == ProgressRecord()
    assert backend.load("progress")["total"] == 0


def test_snapshot_is_detached_from_the_live_record(progress):
    snapshot = progress.snapshot()
    snapshot.xp = 999
    snapshot.category["daily"].total = 50
    assert progress.snapshot().xp == 0
    assert progress.snapshot().category["daily"].total == 0


def test_summary_reports_level_accuracy_and_badge_catalog():
    record = ProgressRecord(total=8, correct=1, xp=250, badges=["first-study"])
    record.category["it"].total = 3
    record.category["it"].correct = 2

    summary = summarize(record)
    assert summary.level == 3
    assert summary.xp_in_level == 50
    assert summary.accuracy == 13
    assert summary.categories["it"].accuracy == 67
    assert summary.categories["daily"].accuracy == 0
    earned = {badge.id: badge.earned for badge in summary.badges}
    assert earned["first-study"] is True
    assert earned["xp-100"] is False
    assert len(summary.badges) == 6


def test_leaderboard_places_user_among_rivals():
    board = leaderboard("", 270)
    assert [entry.name for entry in board] == ["AI Haru", "You", "AI Luna", "AI Kai"]
    assert leaderboard("Mika", 0)[-1].name == "Mika"


def test_failed_save_keeps_the_answer_and_retries_on_flush(today, caplog):
    backend = FlakyStateStore()
    store = ProgressStore(backend, today=today)

    assert store.register_answer("daily", True) == ["first-study"]
    assert store.snapshot().total == 1
    assert store.dirty
    assert "disk full" in caplog.text

    backend.broken = False
    store.flush()
    assert not store.dirty
    assert backend.load("progress")["total"] == 1


def test_failed_save_during_reset_is_logged(today, caplog):
    backend = FlakyStateStore()
    store = ProgressStore(backend, today=today)
    store.reset()
    assert store.dirty
    assert "Failed to save progress" in caplog.text
