"""Per-client key/value storage standing in for browser local storage."""

from __future__ import annotations

import json
import logging
from threading import Lock
from typing import Any, Final

import redis

from confessio.core.settings import settings

logger = logging.getLogger(__name__)

SESSION_KEY: Final[str] = "uni_confessions_user_session_v2"
GALLERY_KEY: Final[str] = "uni_polaroids_v2"
THEME_KEY: Final[str] = "uni_theme"


class LocalStore:
    """JSON values under fixed keys, namespaced by client identifier.

    Backed by Redis when a URL is configured; otherwise, or after a Redis
    failure, values live in an in-process map shared by all instances.
    """

    def __init__(self, client_id: str, redis_url: str | None = None) -> None:
        self.client_id = client_id
        url = redis_url if redis_url is not None else settings.redis_url
        self._redis: redis.Redis | None = None
        if url:
            try:
                self._redis = redis.from_url(url)
            except (redis.RedisError, ValueError) as exc:
                logger.warning("Redis unavailable for local storage (%s); using memory", exc)
                self._redis = None

    def _key(self, key: str) -> str:
        return f"local:{self.client_id}:{key}"

    def get_item(self, key: str) -> Any | None:
        """Return the decoded value stored under ``key`` or None."""
        raw: str | bytes | None = None
        if self._redis is not None:
            try:
                raw = self._redis.get(self._key(key))
            except redis.RedisError as exc:
                logger.warning("Redis read failed (%s); falling back to memory", exc)
                self._redis = None
        if self._redis is None:
            with _STORE_LOCK:
                raw = _MEMORY_STORE.get(self._key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable local value for %s", self._key(key))
            return None

    def set_item(self, key: str, value: Any) -> None:
        """Store ``value`` as JSON under ``key``."""
        raw = json.dumps(value)
        if self._redis is not None:
            try:
                self._redis.set(self._key(key), raw)
                return
            except redis.RedisError as exc:
                logger.warning("Redis write failed (%s); falling back to memory", exc)
                self._redis = None
        with _STORE_LOCK:
            _MEMORY_STORE[self._key(key)] = raw

    def remove_item(self, key: str) -> None:
        if self._redis is not None:
            try:
                self._redis.delete(self._key(key))
                return
            except redis.RedisError as exc:
                logger.warning("Redis delete failed (%s); falling back to memory", exc)
                self._redis = None
        with _STORE_LOCK:
            _MEMORY_STORE.pop(self._key(key), None)


_MEMORY_STORE: dict[str, str] = {}
_STORE_LOCK = Lock()


def clear_memory_store() -> None:
    """Forget every in-process value."""
    with _STORE_LOCK:
        _MEMORY_STORE.clear()


def get_local_store(client_id: str) -> LocalStore:
    """Return a local store bound to ``client_id``."""
    return LocalStore(client_id)
