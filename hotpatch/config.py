"""Configuration settings for hotpatch, loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Patch store settings with env-driven overrides.

    All values can be overridden via environment variables prefixed with HOTPATCH_.
    Example: HOTPATCH_PATCH_DIR=/data/apatch overrides patch_dir.
    """

    # Managed storage
    patch_dir: str = "./apatch"
    bundle_suffix: str = ".apatch"
    manifest_entry: str = "META-INF/PATCH.MF"

    # Persisted version marker
    version_store: str = "file"  # 'file' | 'redis' | 'memory'
    # Default: hotpatch_state.json next to patch_dir
    version_file: Optional[str] = None
    store_namespace: str = "_hotpatch_"
    version_key: str = "version"

    # Redis connection (only used when version_store == 'redis')
    redis_url: str = "redis://localhost:6379/0"

    log_level: str = "info"

    model_config = SettingsConfigDict(
        env_prefix="HOTPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
