"""
Redis Client for zessionizer

Wraps redis-py with the sorted-set layout used to persist project stats:
frequency and recency live in two sorted sets keyed by project path,
marker kind and creation time in two hashes.
"""

import os
from typing import Dict, List, Optional, Tuple

import redis


class RedisClient:
    """Redis client wrapper for project stat storage."""

    # Key prefixes for the stored signals
    PREFIX_RECENCY = "zessionizer:recency"
    PREFIX_FREQUENCY = "zessionizer:frequency"
    PREFIX_MARKER = "zessionizer:marker"
    PREFIX_CREATED = "zessionizer:created"

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """
        Initialize Redis connection.

        Args:
            url: Redis URL (defaults to REDIS_URL env var or localhost)
            client: Pre-built client, mainly for tests
        """
        self.url = url or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
        self._client: Optional[redis.Redis] = client

    @property
    def client(self) -> redis.Redis:
        """Lazy-initialize Redis connection."""
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        return self._client

    def ping(self) -> bool:
        """Check if Redis is available."""
        try:
            return bool(self.client.ping())
        except redis.ConnectionError:
            return False

    # =========================================================================
    # Reads
    # =========================================================================

    def scores(self, key: str) -> Dict[str, float]:
        """All members of a sorted set with their scores."""
        pairs: List[Tuple[str, float]] = self.client.zrange(key, 0, -1, withscores=True)
        return {member: float(score) for member, score in pairs}

    def fields(self, key: str) -> Dict[str, str]:
        return dict(self.client.hgetall(key))

    # =========================================================================
    # Writes
    # =========================================================================

    def replace_all(self, frequency: Dict[str, float], recency: Dict[str, float],
                    markers: Dict[str, str], created: Dict[str, float]) -> None:
        """
        Replace every stored signal in one MULTI/EXEC transaction.

        Readers see either the old set or the new one, never a mix.
        """
        pipe = self.client.pipeline(transaction=True)
        pipe.delete(self.PREFIX_FREQUENCY, self.PREFIX_RECENCY,
                    self.PREFIX_MARKER, self.PREFIX_CREATED)
        if frequency:
            pipe.zadd(self.PREFIX_FREQUENCY, frequency)
        if recency:
            pipe.zadd(self.PREFIX_RECENCY, recency)
        if markers:
            pipe.hset(self.PREFIX_MARKER, mapping=markers)
        if created:
            pipe.hset(self.PREFIX_CREATED, mapping={k: str(v) for k, v in created.items()})
        pipe.execute()
