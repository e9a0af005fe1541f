"""Persisted key-value stores for the host version marker.

VersionGate only needs get/set/clear on one namespace. Three backends:
    - MemoryVersionStore: process-local, for tests and ephemeral runs
    - JsonFileVersionStore: a small JSON document on local disk
    - RedisVersionStore: one Redis hash per namespace
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol

import structlog

if TYPE_CHECKING:
    from redis import Redis

logger = structlog.get_logger()


class VersionStore(Protocol):
    """Namespaced string key-value capability."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryVersionStore:
    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def clear(self) -> None:
        self._values.clear()


class JsonFileVersionStore:
    """Stores the namespace as a JSON object keyed by namespace name.

    File layout:
        {"_hotpatch_": {"version": "1.0"}}

    Other namespaces in the same file are left untouched.
    """

    def __init__(self, path: Path, namespace: str) -> None:
        """Initialise the store.

        Args:
            path: JSON file location (created on first write)
            namespace: Top-level key this store reads and writes
        """
        self._path = Path(path)
        self._namespace = namespace

    def _read_all(self) -> dict[str, dict[str, str]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("version_store_unreadable", path=str(self._path), error=str(exc))
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, dict[str, str]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(f"{self._path.name}.tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)

    def _section(self, data: dict) -> dict[str, str]:
        section = data.get(self._namespace, {})
        if not isinstance(section, dict):
            logger.warning(
                "version_store_unreadable",
                path=str(self._path),
                namespace=self._namespace,
                error=f"expected object, got {type(section).__name__}",
            )
            return {}
        return section

    def get(self, key: str) -> Optional[str]:
        value = self._section(self._read_all()).get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        section = dict(self._section(data))
        section[key] = value
        data[self._namespace] = section
        self._write_all(data)

    def clear(self) -> None:
        data = self._read_all()
        if self._namespace in data:
            del data[self._namespace]
            self._write_all(data)


class RedisVersionStore:
    """Stores the namespace as a Redis hash.

    Redis key layout:
        {namespace}  HASH with one field per stored key
    """

    def __init__(self, redis: Redis, namespace: str) -> None:
        """Initialise the store.

        Args:
            redis: Redis connection (created with decode_responses=True)
            namespace: Hash key holding this store's fields
        """
        self._redis = redis
        self._namespace = namespace

    def get(self, key: str) -> Optional[str]:
        value = self._redis.hget(self._namespace, key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._redis.hset(self._namespace, key, value)

    def clear(self) -> None:
        self._redis.delete(self._namespace)
