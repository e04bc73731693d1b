"""Unit tests for IndexedStore."""

from sharedsecret_operator.utils.store import IndexedStore


def test_get_returns_first_value():
    store = IndexedStore({"a": ["x"], "b": []})

    assert store.get("a") == "x"
    assert store.get("b") is None
    assert store.get("missing") is None


def test_find_scans_all_values():
    store = IndexedStore({"a": [1, 2], "b": [3]})

    assert store.find(lambda v: v > 1) == [2, 3]
    assert list(store) == [1, 2, 3]
    assert len(store) == 2


def test_reflects_changes_of_the_underlying_index():
    index = {}
    store = IndexedStore(index)

    index["a"] = ["x"]

    assert store.get("a") == "x"
