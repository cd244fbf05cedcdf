"""Window: replacement, prepend de-duplication and the TTL page cache."""

import pytest

from chatsync.cache import TTLCache
from chatsync.models.window import Window
from conftest import make_log, make_message


def test_new_window_is_empty():
    window = Window()
    assert len(window) == 0
    assert window.oldest_loaded_id is None
    assert window.last_id == 0
    assert not window.has_more_older


def test_replace_bumps_generation():
    window = Window()
    window.replace(make_log(3), has_more_older=True)
    assert window.generation == 1
    assert window.oldest_loaded_id == 1
    assert window.last_id == 3
    assert 2 in window
    window.replace(make_log(4)[1:], has_more_older=False)
    assert window.generation == 2
    assert window.oldest_loaded_id == 2
    assert 1 not in window


def test_prepend_skips_ids_already_held():
    window = Window()
    window.replace(make_log(10)[5:], has_more_older=True)
    added = window.prepend([make_message(4), make_message(6), make_message(5), make_message(3)])
    assert [m.id for m in added] == [3, 4, 5]
    assert [m.id for m in window.items] == list(range(3, 11))
    ids = [m.id for m in window.items]
    assert len(ids) == len(set(ids))


def test_prepend_keeps_generation():
    window = Window()
    window.replace(make_log(3), has_more_older=True)
    window.prepend([])
    assert window.generation == 1


def test_clear():
    window = Window()
    window.replace(make_log(3), has_more_older=True)
    window.clear()
    assert len(window) == 0
    assert not window.has_more_older
    assert window.generation == 2


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_cache_entries_expire():
    clock = Clock()
    cache: TTLCache[str, int] = TTLCache(max_entries=4, ttl=10.0, clock=clock)
    cache.set("a", 1)
    clock.now = 9.9
    assert cache.get("a") == 1
    clock.now = 10.0
    assert cache.get("a") is None
    assert len(cache) == 0


def test_cache_evicts_least_recently_used():
    cache: TTLCache[str, int] = TTLCache(max_entries=2, ttl=60.0, clock=Clock())
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    cache.clear()
    assert len(cache) == 0


def test_cache_rejects_zero_capacity():
    with pytest.raises(ValueError):
        TTLCache(max_entries=0)


def test_replace_tail_keeps_older_pages():
    log = make_log(20)
    window = Window()
    window.replace(log[10:], has_more_older=True)
    window.prepend(log[5:10])
    generation = window.generation

    latest = log[12:] + [make_message(21)]
    assert window.overlaps(latest)
    window.replace_tail(latest)
    assert [m.id for m in window.items] == list(range(6, 22))
    assert window.generation == generation
    assert 21 in window


def test_overlaps_needs_older_pages_and_a_shared_head():
    log = make_log(20)
    window = Window()
    window.replace(log[10:], has_more_older=True)
    assert not window.overlaps(log[10:])
    window.prepend(log[5:10])
    assert window.overlaps(log[10:])
    assert not window.overlaps([make_message(30)])
    assert not window.overlaps([])
