"""
Persisted project stores.

Both backends hold the same records (path, marker, frequency,
last_accessed, created_at). A missing or corrupt store loads as an empty
list; a store that cannot be reached or read raises StoreError so the
worker retries instead of overwriting it. Saving raises StoreError, which
the worker reports and retries on the next mutation.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List

import redis

from ..errors import StoreError
from ..ranking.redis_client import RedisClient

log = logging.getLogger(__name__)


class JsonStore:
    """
    Single JSON file, written atomically (write new file, then replace).

    Layout:
        {"version": 1, "projects": {path: {marker, frequency, last_accessed, created_at}}}
    """

    VERSION = 1

    def __init__(self, path: Path):
        self.path = Path(path)

    def __repr__(self):
        return f"JsonStore({str(self.path)!r})"

    def load(self) -> List[Dict]:
        if not self.path.exists():
            log.debug("no store at %s, starting empty", self.path)
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning("store %s is corrupt, starting empty: %s", self.path, e)
            return []
        except OSError as e:
            raise StoreError(f"cannot read {self.path}: {e}") from e

        projects = data.get("projects") if isinstance(data, dict) else None
        if not isinstance(projects, dict):
            log.warning("store %s has no project table, starting empty", self.path)
            return []

        records = []
        for path, fields in projects.items():
            if isinstance(fields, dict):
                records.append({**fields, "path": path})
        log.debug("loaded %d projects from %s", len(records), self.path)
        return records

    def save(self, records: List[Dict]) -> None:
        data = {
            "version": self.VERSION,
            "projects": {
                r["path"]: {k: v for k, v in r.items() if k != "path"}
                for r in records
            },
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"failed to write {self.path}: {e}") from e
        log.debug("saved %d projects to %s", len(records), self.path)


class RedisStore:
    """Project stats in redis sorted sets, replaced in one transaction."""

    def __init__(self, client: RedisClient):
        self.redis = client

    def __repr__(self):
        return f"RedisStore({self.redis.url!r})"

    def load(self) -> List[Dict]:
        try:
            frequency = self.redis.scores(RedisClient.PREFIX_FREQUENCY)
            recency = self.redis.scores(RedisClient.PREFIX_RECENCY)
            markers = self.redis.fields(RedisClient.PREFIX_MARKER)
            created = self.redis.fields(RedisClient.PREFIX_CREATED)
        except redis.RedisError as e:
            raise StoreError(f"cannot read redis store: {e}") from e

        records = []
        for path in sorted(set(frequency) | set(recency)):
            last_accessed = recency.get(path, 0.0)
            records.append({
                "path": path,
                "marker": markers.get(path, "VersionControlled"),
                "frequency": int(frequency.get(path, 0)),
                "last_accessed": last_accessed,
                "created_at": float(created.get(path, last_accessed)),
            })
        return records

    def save(self, records: List[Dict]) -> None:
        try:
            self.redis.replace_all(
                frequency={r["path"]: r["frequency"] for r in records},
                recency={r["path"]: r["last_accessed"] for r in records},
                markers={r["path"]: r["marker"] for r in records},
                created={r["path"]: r["created_at"] for r in records},
            )
        except redis.RedisError as e:
            raise StoreError(f"failed to write redis store: {e}") from e


def open_store(config):
    """Store selected by `config.store_backend`."""
    if config.store_backend == "redis":
        return RedisStore(RedisClient(url=config.redis_url))
    return JsonStore(config.store_path)
