"""Tests for exclusive-mode access through StableCache.exclusive()."""

import threading

import pytest

from stablecache.exceptions import ExclusiveAccessError, KeyNotFoundError


def test_exclusive_overwrite_visible_to_shared_get(cache):
    cache.insert(1, 4)
    with cache.exclusive() as index:
        index[1] = 9
    assert cache.get(1) == 9
    assert cache[1] == 9


def test_exclusive_insert_and_read_back(cache):
    cache.insert(1, [1, 2, 3])
    with cache.exclusive() as index:
        index[2] = [2, 3, 4]
        assert index[2] == [2, 3, 4]
        assert index[1] == [1, 2, 3]
    assert cache.get(2) == [2, 3, 4]


def test_exclusive_delete(cache):
    cache.insert("a", 1)
    cache.insert("b", 2)
    with cache.exclusive() as index:
        del index["a"]
    assert cache.get("a") is None
    assert len(cache) == 1


def test_exclusive_delete_missing_raises(cache):
    with cache.exclusive() as index:
        with pytest.raises(KeyNotFoundError):
            del index["missing"]


def test_exclusive_getitem_missing_raises(cache):
    with cache.exclusive() as index:
        with pytest.raises(KeyNotFoundError):
            index["missing"]
        assert index.get("missing") is None


def test_exclusive_iteration(cache):
    for i in range(5):
        cache.insert(i, i * i)
    with cache.exclusive() as index:
        assert sorted(index) == [0, 1, 2, 3, 4]
        assert dict(index.items()) == {0: 0, 1: 1, 2: 4, 3: 9, 4: 16}
        assert len(index) == 5
        assert 3 in index


def test_exclusive_mapping_helpers(cache):
    cache.insert("a", 1)
    with cache.exclusive() as index:
        assert index.pop("a") == 1
        index.update({"b": 2, "c": 3})
        assert index.setdefault("b", 99) == 2
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_exclusive_clear(cache):
    cache.insert("a", 1)
    with cache.exclusive() as index:
        index.clear()
    assert len(cache) == 0
    cache.insert("a", 2)
    assert cache.get("a") == 2


def test_shared_insert_works_after_exclusive_removal(cache):
    cache.insert("k", "old")
    with cache.exclusive() as index:
        del index["k"]
    cache.insert("k", "new")
    assert cache.get("k") == "new"


def test_view_unusable_after_session(cache):
    cache.insert(1, 1)
    with cache.exclusive() as index:
        pass
    with pytest.raises(ExclusiveAccessError):
        index[1]
    with pytest.raises(ExclusiveAccessError):
        index[2] = 2
    with pytest.raises(ExclusiveAccessError):
        len(index)
    assert "closed" in repr(index)


def test_exclusive_refused_inside_compute(cache):
    def compute():
        with cache.exclusive():
            pass
        return 1

    with pytest.raises(ExclusiveAccessError):
        cache.get_or_insert("k", compute)
    assert "k" not in cache


def test_nested_exclusive_refused(cache):
    with cache.exclusive():
        with pytest.raises(ExclusiveAccessError):
            with cache.exclusive():
                pass
    with cache.exclusive() as index:
        index["after"] = 1
    assert cache.get("after") == 1


def test_shared_calls_allowed_inside_own_session(cache):
    cache.insert("a", 1)
    with cache.exclusive() as index:
        index["a"] = 2
        assert cache.get("a") == 2
        assert cache.get_or_insert("b", lambda: 3) == 3
    assert cache["b"] == 3


def test_session_closed_when_block_raises(cache):
    with pytest.raises(ValueError):
        with cache.exclusive() as index:
            index["a"] = 1
            raise ValueError("abort")
    assert cache.get("a") == 1
    with cache.exclusive():
        pass


def test_other_thread_blocks_during_session(cache):
    entered = threading.Event()
    release = threading.Event()
    seen = []

    def holder():
        with cache.exclusive() as index:
            index["k"] = "exclusive"
            entered.set()
            release.wait(5)
            index["k"] = "final"

    def reader():
        seen.append(cache.get("k"))

    t1 = threading.Thread(target=holder)
    t1.start()
    assert entered.wait(5)
    t2 = threading.Thread(target=reader)
    t2.start()
    t2.join(0.2)
    assert t2.is_alive()
    release.set()
    t1.join(5)
    t2.join(5)
    assert seen == ["final"]


def test_view_refused_from_other_thread(cache):
    cache.insert("k", 1)
    errors = []

    def use_view(index):
        try:
            index["k"] = 2
        except ExclusiveAccessError as e:
            errors.append(e)

    with cache.exclusive() as index:
        t = threading.Thread(target=use_view, args=(index,))
        t.start()
        t.join(5)
        assert index["k"] == 1
    assert len(errors) == 1
    assert cache.get("k") == 1
