"""
Tests for dense sibling ordering

normalize_order must always leave positions 1..N, honour the requested
position of the changed member and only touch members that move.
"""
import random
from dataclasses import dataclass
from typing import Optional

import pytest

from services.index_order import normalize_order


@dataclass
class Item:
    id: str
    order: Optional[int]


class Recorder:
    """Accessors that remember which members set_order touched."""

    def __init__(self):
        self.touched = []

    def normalize(self, existing, changed):
        def set_order(item, position):
            self.touched.append(item.id)
            item.order = position

        return normalize_order(
            existing, changed,
            get_id=lambda item: item.id,
            get_order=lambda item: item.order,
            set_order=set_order,
        )


def items(*ids):
    return [Item(item_id, position) for position, item_id in enumerate(ids, start=1)]


def ids(result):
    return [item.id for item in result]


def orders(result):
    return [item.order for item in result]


class TestRecompaction:
    """changed = None"""

    def test_noop_on_dense_collection_is_identical(self):
        recorder = Recorder()
        existing = items("a", "b", "c")

        result = recorder.normalize(existing, None)

        assert ids(result) == ["a", "b", "c"]
        assert orders(result) == [1, 2, 3]
        assert recorder.touched == []

    def test_closes_gap_after_delete(self):
        recorder = Recorder()
        existing = [Item("a", 1), Item("c", 3), Item("d", 4)]

        result = recorder.normalize(existing, None)

        assert ids(result) == ["a", "c", "d"]
        assert orders(result) == [1, 2, 3]
        assert recorder.touched == ["c", "d"]

    def test_empty_collection(self):
        assert Recorder().normalize([], None) == []


class TestInsert:
    """A new member enters the collection"""

    def test_none_appends(self):
        recorder = Recorder()
        result = recorder.normalize(items("a", "b"), Item("new", None))

        assert ids(result) == ["a", "b", "new"]
        assert orders(result) == [1, 2, 3]
        assert recorder.touched == ["new"]

    def test_insert_in_middle_shifts_followers(self):
        recorder = Recorder()
        result = recorder.normalize(items("a", "b", "c"), Item("new", 2))

        assert ids(result) == ["a", "new", "b", "c"]
        assert orders(result) == [1, 2, 3, 4]
        assert recorder.touched == ["new", "b", "c"]

    @pytest.mark.parametrize("requested", [0, -5, 1])
    def test_non_positive_prepends(self, requested):
        result = Recorder().normalize(items("a", "b"), Item("new", requested))
        assert ids(result) == ["new", "a", "b"]

    def test_past_end_is_clamped(self):
        result = Recorder().normalize(items("a", "b"), Item("new", 99))

        assert ids(result) == ["a", "b", "new"]
        assert result[-1].order == 3

    def test_into_empty_collection(self):
        result = Recorder().normalize([], Item("new", 5))

        assert ids(result) == ["new"]
        assert orders(result) == [1]


class TestMove:
    """An existing member asks for a new position"""

    def test_move_down(self):
        existing = items("a", "b", "c", "d")
        moved = Item("a", 3)

        result = Recorder().normalize(existing, moved)

        assert ids(result) == ["b", "c", "a", "d"]
        assert orders(result) == [1, 2, 3, 4]

    def test_move_up(self):
        existing = items("a", "b", "c", "d")
        result = Recorder().normalize(existing, Item("d", 1))

        assert ids(result) == ["d", "a", "b", "c"]

    def test_move_uses_the_changed_instance(self):
        existing = items("a", "b")
        moved = Item("a", 2)

        result = Recorder().normalize(existing, moved)

        assert result[1] is moved
        assert existing[0] not in result

    def test_same_position_only_touches_changed(self):
        recorder = Recorder()
        existing = items("a", "b", "c")
        existing[1].order = 2

        recorder.normalize(existing, existing[1])

        assert recorder.touched == ["b"]

    def test_relative_order_of_others_preserved(self):
        existing = items("a", "b", "c", "d", "e")
        result = Recorder().normalize(existing, Item("c", 5))

        others = [item_id for item_id in ids(result) if item_id != "c"]
        assert others == ["a", "b", "d", "e"]


class TestDensityInvariant:
    """Any sequence of mutations keeps positions exactly 1..N"""

    def test_random_mutations(self):
        rng = random.Random(1234)
        collection = []
        next_id = 0

        for _ in range(200):
            action = rng.choice(["insert", "move", "delete"])
            if action == "insert" or not collection:
                next_id += 1
                requested = rng.choice([None, rng.randint(-2, len(collection) + 3)])
                collection = Recorder().normalize(collection, Item(f"i{next_id}", requested))
            elif action == "move":
                target = rng.choice(collection)
                collection = Recorder().normalize(collection, Item(target.id, rng.randint(-2, len(collection) + 3)))
            else:
                victim = rng.choice(collection)
                remaining = [item for item in collection if item.id != victim.id]
                collection = Recorder().normalize(remaining, None)

            assert orders(collection) == list(range(1, len(collection) + 1))
            assert len(set(ids(collection))) == len(collection)
