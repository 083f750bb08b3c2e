"""Content-addressed JSON file cache used to avoid repeat GitHub calls within a TTL."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import time
from typing import Any, Dict, Optional


def ensure_dir(path: str) -> None:
    """Create cache directories as-needed without raising for existing folders."""
    os.makedirs(path, exist_ok=True)


def cache_key(parts: Dict[str, Any]) -> str:
    """Hash request parameters into a stable hex key.

    Keys are sorted at every nesting level, so two requests that differ only in
    dict insertion order share a cache entry.
    """
    stable = json.dumps(parts, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(stable.encode("utf-8")).hexdigest()


def cache_path(cache_dir: str, key: str) -> str:
    return os.path.join(cache_dir, f"{key}.json")


def read_json_cache(cache_dir: str,
                    key: str,
                    ttl_seconds: Optional[float],
                    now: Optional[float] = None) -> Optional[Any]:
    """Return the cached value, or None on miss, expiry, or an unreadable file."""
    path = cache_path(cache_dir, key)
    now = time.time() if now is None else now
    try:
        age = now - os.stat(path).st_mtime
        if ttl_seconds is not None and age > ttl_seconds:
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return None


def write_json_cache(cache_dir: str, key: str, value: Any) -> None:
    """Write a cache entry via temp file + rename so readers never see partial JSON."""
    ensure_dir(cache_dir)
    fd, tmp_path = tempfile.mkstemp(prefix=f"{key}.", suffix=".tmp", dir=cache_dir)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_path, cache_path(cache_dir, key))
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


__all__ = ["ensure_dir", "cache_key", "cache_path", "read_json_cache", "write_json_cache"]
