"""Version gate: invalidates the patch store when the host is upgraded.

Patches are built against one host build; after an upgrade the methods they
target may have moved or changed signature, so every stored bundle is
discarded the first time a new host version starts.
"""

from __future__ import annotations

from typing import Optional

import structlog

from hotpatch.core.file_utils import FileUtils
from hotpatch.core.registry import PatchRegistry
from hotpatch.store.version_store import VersionStore

logger = structlog.get_logger()

VERSION_KEY = "version"


class VersionGate:
    """Startup check deciding between loading and wiping the patch store."""

    def __init__(
        self,
        registry: PatchRegistry,
        store: VersionStore,
        file_utils: Optional[FileUtils] = None,
        version_key: str = VERSION_KEY,
    ) -> None:
        """Initialize the gate.

        Args:
            registry: Registry owning the managed patch directory
            store: Persisted key-value store holding the version marker
            file_utils: Helper used to remove a non-directory at the patch path
            version_key: Key of the marker inside ``store``
        """
        self._registry = registry
        self._store = store
        self._files = file_utils or FileUtils()
        self._version_key = version_key
        self._ready = False

    @property
    def ready(self) -> bool:
        """Whether the last initialize() left the patch store usable."""
        return self._ready

    def stored_version(self) -> Optional[str]:
        return self._store.get(self._version_key)

    def _ensure_patch_dir(self) -> bool:
        patch_dir = self._registry.patch_dir
        if not patch_dir.exists():
            try:
                patch_dir.mkdir(parents=True)
            except OSError as exc:
                logger.error("patch_dir_create_error", patch_dir=str(patch_dir), error=str(exc))
                return False
        elif not patch_dir.is_dir():
            # Removed so the next run can create the directory.
            self._files.delete_path(patch_dir)
            logger.error("patch_dir_not_directory", patch_dir=str(patch_dir))
            return False
        return True

    def initialize(self, current_version: str) -> bool:
        """Prepare managed storage for ``current_version`` of the host.

        If the stored marker is absent or differs (case-insensitively) the
        whole store is invalidated and the marker rewritten; otherwise the
        registry is repopulated from managed storage.

        Args:
            current_version: Version string of the running host application

        Returns:
            True if the store is ready, False if the patch directory is unusable.
            Storage failures never raise here.
        """
        if not self._ensure_patch_dir():
            self._ready = False
            return False

        stored = self.stored_version()
        if stored is None or stored.lower() != current_version.lower():
            logger.info(
                "host_version_changed",
                stored_version=stored,
                current_version=current_version,
            )
            self.invalidate()
            self._store.set(self._version_key, current_version)
        else:
            self._registry.discover()

        self._ready = True
        logger.info(
            "patch_store_ready",
            current_version=current_version,
            patches=len(self._registry),
        )
        return True

    def invalidate(self) -> None:
        """Remove every managed bundle and clear the persisted marker."""
        self._registry.remove_all()
        self._store.clear()
        logger.info("patch_store_invalidated", patch_dir=str(self._registry.patch_dir))
