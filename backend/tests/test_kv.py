from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))


def test_set_get_and_overwrite(kv):
    kv.set("k", "one")
    assert kv.get("k") == "one"
    kv.set("k", "two")
    assert kv.get("k") == "two"
    assert kv.get("missing") is None


def test_ttl_expiry_follows_clock(kv, clock):
    kv.set("temp", "v", ttl_seconds=60)
    assert kv.ttl("temp") == 60
    clock.advance(seconds=59)
    assert kv.exists("temp")
    clock.advance(seconds=1)
    assert kv.get("temp") is None
    assert kv.ttl("temp") is None


def test_set_without_ttl_is_persistent(kv, clock):
    kv.set("forever", "v")
    clock.advance(days=365)
    assert kv.get("forever") == "v"
    assert kv.ttl("forever") is None


def test_json_round_trip_keeps_japanese(kv):
    kv.set_json("doc", {"title": "履歴書", "n": 1})
    assert kv.get("doc") == '{"title": "履歴書", "n": 1}'
    assert kv.get_json("doc") == {"title": "履歴書", "n": 1}


def test_delete_counts_values_and_lists(kv):
    kv.set("a", "1")
    kv.rpush("list", "x", "y")
    assert kv.delete("a", "list", "nope") == 3
    assert kv.get("a") is None
    assert kv.llen("list") == 0


def test_lpush_prepends_in_argument_order(kv):
    kv.rpush("l", "b")
    kv.lpush("l", "a")
    kv.lpush("l", "first", "second")
    assert kv.lrange("l", 0, -1) == ["second", "first", "a", "b"]


def test_lrange_redis_index_semantics(kv):
    kv.rpush("l", "a", "b", "c", "d")
    assert kv.lrange("l", 0, 1) == ["a", "b"]
    assert kv.lrange("l", -2, -1) == ["c", "d"]
    assert kv.lrange("l", 2, 100) == ["c", "d"]
    assert kv.lrange("l", 3, 1) == []
    assert kv.lrange("l", 10, 20) == []


def test_lrem_count_direction(kv):
    kv.rpush("l", "x", "y", "x", "z", "x")
    assert kv.lrem("l", "x", 1) == 1
    assert kv.lrange("l", 0, -1) == ["y", "x", "z", "x"]
    assert kv.lrem("l", "x", -1) == 1
    assert kv.lrange("l", 0, -1) == ["y", "x", "z"]
    assert kv.lrem("l", "x", 0) == 1
    assert kv.lrange("l", 0, -1) == ["y", "z"]


def test_lset_replaces_and_rejects_out_of_range(kv):
    kv.rpush("l", "a", "b")
    kv.lset("l", -1, "B")
    assert kv.lrange("l", 0, -1) == ["a", "B"]
    with pytest.raises(IndexError):
        kv.lset("l", 5, "x")


def test_purge_expired_removes_only_stale_rows(kv, clock):
    kv.set("old", "1", ttl_seconds=10)
    kv.set("new", "2", ttl_seconds=1000)
    kv.set("keep", "3")
    clock.advance(seconds=11)
    assert kv.purge_expired() == 1
    assert kv.get("new") == "2"
    assert kv.get("keep") == "3"


def test_timestamps_come_from_store_clock(kv, clock):
    assert kv.now_ms() == 1772355600000
    assert kv.now_iso() == "2026-03-01T09:00:00.000Z"
    clock.advance(milliseconds=1500)
    assert kv.now_ms() == 1772355601500
    assert kv.now_iso() == "2026-03-01T09:00:01.500Z"
