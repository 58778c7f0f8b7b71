import pytest

from crawlindex.crawler.visited import VisitedSet


def test_first_sighting_then_repeat():
    visited = VisitedSet(10)
    assert visited.add("u") is True
    assert visited.add("u") is False
    assert visited.add("u") is False
    assert len(visited) == 1


def test_eviction_readmits_least_recent_key():
    visited = VisitedSet(3)
    for key in ("a", "b", "c"):
        assert visited.add(key)

    assert visited.add("d") is True
    assert "a" not in visited
    assert len(visited) == 3

    # Evicted key counts as new again
    assert visited.add("a") is True
    assert visited.evictions == 2


def test_touch_refreshes_recency():
    visited = VisitedSet(3)
    visited.add("a")
    visited.add("b")
    visited.add("c")

    assert visited.add("a") is False  # "a" becomes most recent
    visited.add("d")                  # evicts "b", not "a"

    assert "a" in visited
    assert "b" not in visited
    assert "c" in visited


def test_contains_does_not_touch():
    visited = VisitedSet(2)
    visited.add("a")
    visited.add("b")
    assert "a" in visited
    visited.add("c")
    assert "a" not in visited


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        VisitedSet(0)


def test_independent_instances():
    first = VisitedSet(5)
    second = VisitedSet(5)
    first.add("u")
    assert second.add("u") is True
    assert first.get_stats() == {'size': 1, 'capacity': 5, 'evictions': 0}
