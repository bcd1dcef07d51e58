from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol, Set

import redis.asyncio as redis

from src.utils.log import log

# Same namespace the dashboards used for their local "read" list
EXCLUSION_NAMESPACE = "admin_read_notifications"


class ViewerVisibilityStore(Protocol):
    async def get_excluded_ids(self, viewer_id: str) -> Set[str]:
        ...

    async def add_excluded_ids(self, viewer_id: str, ids: Iterable[str]) -> None:
        ...


class InMemoryVisibilityStore:
    """Per-process exclusion sets. Lost on restart."""

    def __init__(self, namespace: str = EXCLUSION_NAMESPACE):
        self.namespace = namespace
        self._hidden: Dict[str, Set[str]] = {}

    def _key(self, viewer_id: str) -> str:
        return f"{self.namespace}:{viewer_id}"

    async def get_excluded_ids(self, viewer_id: str) -> Set[str]:
        return set(self._hidden.get(self._key(viewer_id), set()))

    async def add_excluded_ids(self, viewer_id: str, ids: Iterable[str]) -> None:
        self._hidden.setdefault(self._key(viewer_id), set()).update(str(i) for i in ids)


class RedisVisibilityStore:
    """Exclusion sets kept as one Redis set per viewer. No expiry."""

    def __init__(self, client: redis.Redis, namespace: str = EXCLUSION_NAMESPACE):
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = EXCLUSION_NAMESPACE) -> "RedisVisibilityStore":
        log.debug("Creating Redis visibility store at %s", url)
        return cls(redis.from_url(url, decode_responses=True), namespace=namespace)

    def _key(self, viewer_id: str) -> str:
        return f"{self.namespace}:{viewer_id}"

    async def get_excluded_ids(self, viewer_id: str) -> Set[str]:
        members = await self.client.smembers(self._key(viewer_id))
        return {m.decode("utf-8") if isinstance(m, bytes) else str(m) for m in members}

    async def add_excluded_ids(self, viewer_id: str, ids: Iterable[str]) -> None:
        ids = [str(i) for i in ids]
        if not ids:
            return
        await self.client.sadd(self._key(viewer_id), *ids)
        log.debug("Hid %d notification(s) for viewer %s", len(ids), viewer_id)

    async def close(self) -> None:
        await self.client.aclose()


def build_visibility_store(redis_url: Optional[str] = None) -> ViewerVisibilityStore:
    if redis_url:
        return RedisVisibilityStore.from_url(redis_url)
    log.warning("REDIS_URL not set, hidden notifications will not survive a restart")
    return InMemoryVisibilityStore()
