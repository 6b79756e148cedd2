# washstation/cache.py
"""
Look-aside cache for read endpoints (stations, site collections, users).

The cache is an optimization only. Every backend here must behave as an
always-miss store when it is absent or failing, so callers never depend on it
for correctness.
"""

from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable

import redis
from flask import Flask, current_app

EXTENSION_KEY = "washstation_cache"


class NullCache:
    """Always misses. Used by tests and when no cache is configured."""

    def get(self, key: str) -> str | None:
        return None

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        return None

    def delete(self, *keys: str) -> None:
        return None


class MemoryCache:
    """In-process TTL cache (single worker / local development)."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and expires_at <= time.monotonic():
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)


class RedisCache:
    """Redis-backed cache. Connection problems degrade to cache misses."""

    def __init__(self, client: redis.Redis, logger=None) -> None:
        self._client = client
        self._logger = logger

    @classmethod
    def from_url(cls, url: str, logger=None) -> "RedisCache":
        return cls(redis.Redis.from_url(url, decode_responses=True), logger=logger)

    def _warn(self, op: str, exc: Exception) -> None:
        if self._logger is not None:
            self._logger.warning("Cache %s failed: %s", op, exc)

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            self._warn("get", exc)
            return None

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        try:
            self._client.set(key, value, ex=ttl)
        except redis.RedisError as exc:
            self._warn("set", exc)

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self._client.delete(*keys)
        except redis.RedisError as exc:
            self._warn("delete", exc)


def build_cache(url: str | None, logger=None):
    u = (url or "").strip()
    if not u or u.startswith("null://"):
        return NullCache()
    if u.startswith("memory://"):
        return MemoryCache()
    if u.startswith(("redis://", "rediss://", "unix://")):
        return RedisCache.from_url(u, logger=logger)
    raise ValueError(f"Unsupported CACHE_URL: {u}")


def init_cache(app: Flask, cache=None) -> None:
    """Attach a cache backend to the app. An explicit instance wins over CACHE_URL."""
    if cache is None:
        cache = build_cache(app.config.get("CACHE_URL"), logger=app.logger)
    app.extensions[EXTENSION_KEY] = cache


def get_cache():
    return current_app.extensions.get(EXTENSION_KEY) or NullCache()


def cached_json(key: str, loader: Callable[[], Any]) -> Any:
    """
    Return the JSON-able payload for `key`, loading and storing it on a miss.
    Loaders that raise (e.g. not found) are never cached.
    """
    cache = get_cache()
    hit = cache.get(key)
    if hit is not None:
        return json.loads(hit)

    payload = loader()
    cache.set(key, json.dumps(payload, default=str), ttl=current_app.config.get("CACHE_TTL_SECONDS", 3600))
    return payload


def invalidate(*keys: str) -> None:
    get_cache().delete(*keys)
