"""
Tier storage backends.

A tier store holds named tiers, each a mapping of request key to stored
response, plus the tier names of the most recently activated version.
"""

import json
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, List, Optional, Set

import redis.asyncio as redis

from shared.logging import get_logger

from ..models import StoredResponse


class TierStore(ABC):
    """Storage contract used by ``CacheTierManager``."""

    @abstractmethod
    async def tier_names(self) -> List[str]:
        """Names of every tier that currently exists."""

    @abstractmethod
    async def match(self, tier: str, key: str) -> Optional[StoredResponse]:
        """Return the entry for ``key`` in ``tier``, if any."""

    @abstractmethod
    async def put(self, tier: str, key: str, response: StoredResponse) -> None:
        """Store one entry, creating the tier if needed."""

    @abstractmethod
    async def put_many(self, tier: str, entries: Dict[str, StoredResponse]) -> None:
        """Store several entries in one all-or-nothing write."""

    @abstractmethod
    async def delete(self, tier: str, key: str) -> bool:
        """Remove one entry; returns whether it existed."""

    @abstractmethod
    async def keys(self, tier: str) -> List[str]:
        """Request keys stored in ``tier``."""

    @abstractmethod
    async def delete_tier(self, tier: str) -> bool:
        """Drop a whole tier; returns whether it existed."""

    @abstractmethod
    async def set_active(self, tiers: Set[str]) -> None:
        """Record the tier names of the version that just activated."""

    @abstractmethod
    async def active_tiers(self) -> Optional[Set[str]]:
        """Tier names of the active version, or ``None`` before any activation."""

    async def close(self) -> None:
        return None


class InMemoryTierStore(TierStore):
    """Process-local tier store."""

    def __init__(self):
        self._tiers: Dict[str, "OrderedDict[str, StoredResponse]"] = {}
        self._active: Optional[Set[str]] = None

    async def tier_names(self) -> List[str]:
        return list(self._tiers)

    async def match(self, tier: str, key: str) -> Optional[StoredResponse]:
        entry = self._tiers.get(tier, {}).get(key)
        return entry.clone() if entry is not None else None

    async def put(self, tier: str, key: str, response: StoredResponse) -> None:
        self._tiers.setdefault(tier, OrderedDict())[key] = response.clone()

    async def put_many(self, tier: str, entries: Dict[str, StoredResponse]) -> None:
        cloned = {key: response.clone() for key, response in entries.items()}
        self._tiers.setdefault(tier, OrderedDict()).update(cloned)

    async def delete(self, tier: str, key: str) -> bool:
        return self._tiers.get(tier, {}).pop(key, None) is not None

    async def keys(self, tier: str) -> List[str]:
        return list(self._tiers.get(tier, {}))

    async def delete_tier(self, tier: str) -> bool:
        return self._tiers.pop(tier, None) is not None

    async def set_active(self, tiers: Set[str]) -> None:
        self._active = set(tiers)

    async def active_tiers(self) -> Optional[Set[str]]:
        return set(self._active) if self._active is not None else None


class RedisTierStore(TierStore):
    """Tier store kept in Redis: one hash per tier plus the tier and active name sets."""

    def __init__(self, redis_url: str, namespace: str = "offline_agent"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("offline_agent.tier_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _tier_key(self, tier: str) -> str:
        return f"{self.namespace}:tier:{tier}"

    @property
    def _names_key(self) -> str:
        return f"{self.namespace}:tiers"

    @property
    def _active_key(self) -> str:
        return f"{self.namespace}:active"

    @staticmethod
    def _decode(value) -> str:
        return value.decode("utf-8") if isinstance(value, bytes) else value

    async def tier_names(self) -> List[str]:
        client = await self._get_redis()
        names = await client.smembers(self._names_key)
        return sorted(self._decode(name) for name in names)

    async def match(self, tier: str, key: str) -> Optional[StoredResponse]:
        client = await self._get_redis()
        raw = await client.hget(self._tier_key(tier), key)
        if raw is None:
            return None
        return StoredResponse.from_record(json.loads(self._decode(raw)))

    async def put(self, tier: str, key: str, response: StoredResponse) -> None:
        await self.put_many(tier, {key: response})

    async def put_many(self, tier: str, entries: Dict[str, StoredResponse]) -> None:
        if not entries:
            return
        client = await self._get_redis()
        mapping = {key: json.dumps(response.to_record()) for key, response in entries.items()}
        async with client.pipeline(transaction=True) as pipe:
            pipe.hset(self._tier_key(tier), mapping=mapping)
            pipe.sadd(self._names_key, tier)
            await pipe.execute()
        self.logger.debug("Stored tier entries", tier=tier, count=len(mapping))

    async def delete(self, tier: str, key: str) -> bool:
        client = await self._get_redis()
        return bool(await client.hdel(self._tier_key(tier), key))

    async def keys(self, tier: str) -> List[str]:
        client = await self._get_redis()
        return [self._decode(key) for key in await client.hkeys(self._tier_key(tier))]

    async def delete_tier(self, tier: str) -> bool:
        client = await self._get_redis()
        async with client.pipeline(transaction=True) as pipe:
            pipe.delete(self._tier_key(tier))
            pipe.srem(self._names_key, tier)
            deleted, removed = await pipe.execute()
        return bool(deleted or removed)

    async def set_active(self, tiers: Set[str]) -> None:
        client = await self._get_redis()
        async with client.pipeline(transaction=True) as pipe:
            pipe.delete(self._active_key)
            pipe.sadd(self._active_key, *sorted(tiers))
            await pipe.execute()

    async def active_tiers(self) -> Optional[Set[str]]:
        client = await self._get_redis()
        names = await client.smembers(self._active_key)
        if not names:
            return None
        return {self._decode(name) for name in names}

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
