"""Tests for pr_sheriff.retrieval.file_cache covering keys, TTL, and atomic writes.

Run with:
    pytest tests/test_file_cache.py --maxfail=1 -v --cov=pr_sheriff.retrieval.file_cache --cov-report=term-missing
"""

import json
import os

import pytest

from pr_sheriff.retrieval import file_cache


def test_cache_key_ignores_insertion_order_at_every_level():
    a = {"kind": "rest", "endpoint": "/x", "params": {"a": 1, "b": 2}, "repo": "o/r"}
    b = {"repo": "o/r", "params": {"b": 2, "a": 1}, "endpoint": "/x", "kind": "rest"}
    assert file_cache.cache_key(a) == file_cache.cache_key(b)
    assert len(file_cache.cache_key(a)) == 64


def test_cache_key_differs_for_different_requests():
    base = {"kind": "rest", "endpoint": "/repos/o/r/pulls/1", "repo": "o/r"}
    other = {**base, "endpoint": "/repos/o/r/pulls/2"}
    assert file_cache.cache_key(base) != file_cache.cache_key(other)


def test_write_then_read_within_ttl(tmp_path):
    cache_dir = str(tmp_path / "nested" / "cache")
    file_cache.write_json_cache(cache_dir, "k1", {"number": 5, "items": [1, 2]})
    assert os.listdir(cache_dir) == ["k1.json"]
    assert file_cache.read_json_cache(cache_dir, "k1", ttl_seconds=60) == {"number": 5, "items": [1, 2]}


def test_read_respects_ttl_using_mtime(tmp_path):
    cache_dir = str(tmp_path)
    file_cache.write_json_cache(cache_dir, "k", [1])
    mtime = os.stat(file_cache.cache_path(cache_dir, "k")).st_mtime
    assert file_cache.read_json_cache(cache_dir, "k", ttl_seconds=10, now=mtime + 10) == [1]
    assert file_cache.read_json_cache(cache_dir, "k", ttl_seconds=10, now=mtime + 11) is None
    assert file_cache.read_json_cache(cache_dir, "k", ttl_seconds=None, now=mtime + 10_000) == [1]


def test_missing_and_corrupt_entries_are_misses(tmp_path):
    cache_dir = str(tmp_path)
    assert file_cache.read_json_cache(cache_dir, "absent", ttl_seconds=60) is None
    with open(file_cache.cache_path(cache_dir, "bad"), "w", encoding="utf-8") as f:
        f.write('{"truncated": ')
    assert file_cache.read_json_cache(cache_dir, "bad", ttl_seconds=60) is None


def test_failed_write_leaves_no_temp_file_and_keeps_old_value(tmp_path, monkeypatch):
    cache_dir = str(tmp_path)
    file_cache.write_json_cache(cache_dir, "k", {"v": 1})

    def boom(*_args, **_kwargs):
        raise TypeError("not serializable")

    monkeypatch.setattr(file_cache.json, "dump", boom)
    with pytest.raises(TypeError):
        file_cache.write_json_cache(cache_dir, "k", {"v": 2})
    monkeypatch.undo()

    assert os.listdir(cache_dir) == ["k.json"]
    with open(file_cache.cache_path(cache_dir, "k"), encoding="utf-8") as f:
        assert json.load(f) == {"v": 1}
