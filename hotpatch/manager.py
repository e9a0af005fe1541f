"""Patch manager: the single object a host application talks to.

Wires the registry, coordinator and version gate together from Settings,
around an injected Fixer and the host's default execution context.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from hotpatch.bundle.entity import PatchEntity
from hotpatch.config import Settings
from hotpatch.core.binding import ClassLoaderBinding
from hotpatch.core.coordinator import ApplicationCoordinator, ApplyReport
from hotpatch.core.file_utils import FileUtils
from hotpatch.core.fixer import Fixer
from hotpatch.core.registry import PatchRegistry
from hotpatch.core.version_gate import VersionGate
from hotpatch.errors import StorageUnavailableError
from hotpatch.store import VersionStore, create_version_store


class PatchManager:
    """Manages hot-patch bundles for one host application.

    Typical lifecycle:
        manager = PatchManager(fixer, host_context)
        manager.init(app_version)      # load or wipe stored patches
        manager.load_patches()         # apply everything to the host context
        manager.load_patch(name, ctx)  # a plugin registers its own context
        manager.add_patch(path)        # a new bundle arrives at runtime
    """

    def __init__(
        self,
        fixer: Fixer,
        host_context: Any,
        settings: Optional[Settings] = None,
        version_store: Optional[VersionStore] = None,
        file_utils: Optional[FileUtils] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            fixer: Method-patching collaborator
            host_context: The host application's default execution context
            settings: Optional Settings instance. If None, creates new Settings.
            version_store: Marker store (default: built from settings)
            file_utils: Copy/delete helper shared by registry and gate
        """
        self._settings = settings or Settings()
        self._host_context = host_context
        files = file_utils or FileUtils()

        self.registry = PatchRegistry(
            patch_dir=Path(self._settings.patch_dir),
            fixer=fixer,
            file_utils=files,
            suffix=self._settings.bundle_suffix,
            manifest_entry=self._settings.manifest_entry,
        )
        self.coordinator = ApplicationCoordinator(self.registry, fixer, ClassLoaderBinding())
        self.gate = VersionGate(
            self.registry,
            version_store or create_version_store(self._settings),
            file_utils=files,
            version_key=self._settings.version_key,
        )

    @property
    def ready(self) -> bool:
        return self.gate.ready

    def init(self, app_version: str) -> bool:
        """Load stored patches, or wipe them if the host version changed.

        Returns:
            True if the patch store is usable for this run.
        """
        ready = self.gate.initialize(app_version)
        self.coordinator.prune()
        return ready

    def patches(self) -> tuple[PatchEntity, ...]:
        return self.registry.snapshot()

    def load_patches(self) -> ApplyReport:
        """Apply every registered patch to the host context (call at startup)."""
        return self.coordinator.apply_all(self._host_context)

    def load_patch(self, patch_name: str, context: Any) -> ApplyReport:
        """Apply sub-patch ``patch_name`` of every bundle to a plugin's context."""
        return self.coordinator.bind_and_apply(patch_name, context)

    def add_patch(self, path: Path | str) -> Optional[PatchEntity]:
        """Add a bundle at runtime and apply it to the currently bound contexts.

        Args:
            path: External bundle file

        Returns:
            The new entity, or None if it was already loaded or failed to parse.

        Raises:
            StorageUnavailableError: If init() has not left the store ready.
            SourceNotFoundError: If ``path`` does not exist.
        """
        if not self.gate.ready:
            raise StorageUnavailableError(f"patch store not ready: {self.registry.patch_dir}")

        entity = self.registry.add_external(path)
        if entity is not None:
            self.coordinator.apply_added(entity)
        return entity

    def remove_patch(self, patch_name: str) -> bool:
        """Remove every bundle with the given Patch-Name from managed storage."""
        removed = self.registry.remove(patch_name)
        self.coordinator.forget(removed)
        return bool(removed)

    def remove_all_patches(self) -> None:
        """Remove every bundle and clear the persisted version marker."""
        self.gate.invalidate()
        self.coordinator.reset()
