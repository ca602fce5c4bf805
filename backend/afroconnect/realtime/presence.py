"""Online-presence stores for the chat relay.

A user is online while at least one of their sockets is connected, so the
stores keep a connection count per user. The in-memory store is
process-local; the Redis store lets several relay instances share one view.
"""

import logging
from typing import Protocol

import redis

from ..config import settings

logger = logging.getLogger(__name__)


class PresenceStore(Protocol):
    """Presence store interface."""

    def add(self, user_id: str) -> None: ...
    def remove(self, user_id: str) -> None: ...
    def is_online(self, user_id: str) -> bool: ...
    def online_users(self) -> list[str]: ...


class InMemoryPresenceStore:
    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def add(self, user_id: str) -> None:
        self._counts[user_id] = self._counts.get(user_id, 0) + 1

    def remove(self, user_id: str) -> None:
        remaining = self._counts.get(user_id, 0) - 1
        if remaining > 0:
            self._counts[user_id] = remaining
        else:
            self._counts.pop(user_id, None)

    def is_online(self, user_id: str) -> bool:
        return self._counts.get(user_id, 0) > 0

    def online_users(self) -> list[str]:
        return list(self._counts)


class RedisPresenceStore:
    """Presence kept in a Redis hash of user id -> open connection count."""

    KEY = "presence:online"

    def __init__(self, redis_url: str) -> None:
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._client.ping()

    def add(self, user_id: str) -> None:
        self._client.hincrby(self.KEY, user_id, 1)

    def remove(self, user_id: str) -> None:
        if self._client.hincrby(self.KEY, user_id, -1) <= 0:
            self._client.hdel(self.KEY, user_id)

    def is_online(self, user_id: str) -> bool:
        count = self._client.hget(self.KEY, user_id)
        return count is not None and int(count) > 0

    def online_users(self) -> list[str]:
        return [uid for uid, count in self._client.hgetall(self.KEY).items() if int(count) > 0]


def create_presence_store() -> PresenceStore:
    """Factory: Redis presence when configured and reachable, else in-memory."""
    if settings.presence_backend == "redis" and settings.redis_url:
        try:
            return RedisPresenceStore(settings.redis_url)
        except redis.RedisError:
            logger.warning("Redis unreachable, falling back to in-memory presence")
    return InMemoryPresenceStore()
