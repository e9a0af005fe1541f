"""Version marker persistence: store backends and connection factory."""

from __future__ import annotations

from pathlib import Path

from redis import Redis

from hotpatch.config import Settings
from hotpatch.store.version_store import (
    JsonFileVersionStore,
    MemoryVersionStore,
    RedisVersionStore,
    VersionStore,
)

STATE_FILE_NAME = "hotpatch_state.json"


def version_file_path(settings: Settings) -> Path:
    """Location of the JSON marker file: ``version_file`` or a sibling of ``patch_dir``."""
    if settings.version_file:
        return Path(settings.version_file)
    return Path(settings.patch_dir).parent / STATE_FILE_NAME


def create_version_store(settings: Settings) -> VersionStore:
    """Build the version store selected by ``settings.version_store``.

    Args:
        settings: Loaded Settings instance.

    Returns:
        A VersionStore for ``settings.store_namespace``.

    Raises:
        ValueError: If the configured backend is unknown.
    """
    backend = settings.version_store.lower()
    if backend == "file":
        return JsonFileVersionStore(version_file_path(settings), settings.store_namespace)
    if backend == "redis":
        redis = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        return RedisVersionStore(redis, settings.store_namespace)
    if backend == "memory":
        return MemoryVersionStore()
    raise ValueError(f"unknown version_store backend: {settings.version_store!r}")


__all__ = [
    "create_version_store",
    "version_file_path",
    "JsonFileVersionStore",
    "MemoryVersionStore",
    "RedisVersionStore",
    "VersionStore",
]
