import random

from conftest import FlakyStateStore

from ebuddy.deck import FlashcardDeck, filter_items, shuffle, sort_unknown_first
from ebuddy.models import CardMode


def test_filter_wildcards_and_exact_matches(pool):
    assert filter_items(pool) == pool
    assert [item.id for item in filter_items(pool, "business")] == ["b1", "b2", "b3"]
    assert [item.id for item in filter_items(pool, "all", 2)] == ["d3", "d4", "b3", "i3"]
    assert [item.id for item in filter_items(pool, "it", "2")] == ["i3"]
    assert filter_items(pool, "cooking") == []


def test_unknown_cards_come_first(pool):
    known = {"d1": True, "b1": True, "d2": False}
    ordered = sort_unknown_first(pool, known)
    known_positions = [i for i, item in enumerate(ordered) if known.get(item.id)]
    unknown_positions = [i for i, item in enumerate(ordered) if not known.get(item.id)]
    assert max(unknown_positions) < min(known_positions)
    assert len(ordered) == len(pool)


def test_shuffle_returns_a_new_permutation(pool):
    original = list(pool)
    shuffled = shuffle(pool, random.Random(3))
    assert pool == original
    assert sorted(item.id for item in shuffled) == sorted(item.id for item in pool)
    assert shuffle(pool, random.Random(3)) == shuffled


def test_shuffle_is_not_biased_toward_original_order(pool):
    rng = random.Random(11)
    first_ids = {shuffle(pool, rng)[0].id for _ in range(200)}
    assert len(first_ids) == len(pool)


def test_deck_wraps_around(pool, progress, backend):
    deck = FlashcardDeck(pool, progress, backend)
    assert deck.current().id == "d1"
    assert deck.prev().id == "i3"
    assert deck.next().id == "d1"
    assert deck.next().id == "d2"


def test_marking_cards_records_answers_and_known_flags(pool, progress, backend):
    deck = FlashcardDeck(pool, progress, backend)
    new_badges = deck.mark_known()
    deck.mark_unknown()

    record = progress.snapshot()
    assert new_badges == ["first-study"]
    assert record.total == 2
    assert record.correct == 1
    assert record.category["daily"].total == 2
    assert deck.state.known == {"d1": True, "d2": False}
    assert deck.current().id == "d3"


def test_known_cards_move_to_the_back_after_refiltering(pool, progress, backend):
    deck = FlashcardDeck(pool, progress, backend)
    deck.mark_known()
    deck.apply_filters("daily")
    assert [item.id for item in deck.items] == ["d2", "d3", "d4", "d1"]


def test_card_state_persists(pool, progress, backend):
    deck = FlashcardDeck(pool, progress, backend)
    deck.next()
    assert deck.toggle_favorite() is True

    restored = FlashcardDeck(pool, progress, backend)
    assert restored.state.favorites == ["d2"]
    assert restored.last_card().id == "d2"

    restored.apply_filters()
    restored.next()
    assert restored.toggle_favorite() is False
    assert restored.state.favorites == []


def test_empty_filter_is_harmless(pool, progress, backend):
    deck = FlashcardDeck(pool, progress, backend)
    deck.apply_filters("cooking")
    assert deck.current() is None
    assert deck.next() is None
    assert deck.mark_known() == []
    assert deck.toggle_favorite() is False
    assert deck.view(CardMode.EN_JA) is None
    assert progress.snapshot().total == 0


def test_view_hides_the_answer_side_until_revealed(pool, progress, backend):
    deck = FlashcardDeck(pool, progress, backend)
    view = deck.view(CardMode.EN_JA)
    assert view.front_visible and not view.back_visible

    view = deck.view(CardMode.JA_EN)
    assert view.back_visible and not view.front_visible

    deck.toggle_reveal()
    view = deck.view(CardMode.JA_EN)
    assert view.front_visible and view.back_visible

    deck.next()
    view = deck.view(CardMode.BOTH)
    assert view.front_visible and view.back_visible and not view.revealed


def test_non_numeric_level_matches_nothing(pool, progress, backend, caplog):
    assert filter_items(pool, "all", "abc") == []
    assert "not a number" in caplog.text

    deck = FlashcardDeck(pool, progress, backend)
    deck.apply_filters("daily", "abc")
    assert deck.items == []
    assert deck.current() is None


def test_failed_card_state_save_still_advances(pool, progress):
    deck = FlashcardDeck(pool, progress, FlakyStateStore())
    assert deck.mark_known() == ["first-study"]
    assert deck.current().id == "d2"
    assert deck.state.known == {"d1": True}
