"""Patch registry with thread-safe snapshot mechanism.

The registry owns the managed patch directory and the set of parsed
bundles found in it. Entities are kept in ascending (created_at, insertion
sequence) order, so two bundles with the same Created-Time are both kept and
iterate in the order they were inserted.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterator, Optional

import structlog

from hotpatch.bundle.entity import PatchEntity
from hotpatch.bundle.manifest import MANIFEST_ENTRY, parse_bundle
from hotpatch.core.file_utils import FileUtils
from hotpatch.core.fixer import Fixer
from hotpatch.errors import PatchParseError, SourceNotFoundError

logger = structlog.get_logger()

DEFAULT_SUFFIX = ".apatch"


class PatchRegistry:
    """Ordered, thread-safe collection of PatchEntity.

    Uses atomic tuple replacement instead of in-place mutation: writers
    serialize on a lock and swap in a new tuple, readers iterate whatever
    tuple was current when they started and never block.
    """

    def __init__(
        self,
        patch_dir: Path,
        fixer: Fixer,
        file_utils: Optional[FileUtils] = None,
        suffix: str = DEFAULT_SUFFIX,
        manifest_entry: str = MANIFEST_ENTRY,
    ) -> None:
        """Initialize an empty registry.

        Args:
            patch_dir: Managed storage directory
            fixer: Fixer whose cleanup hook runs for every removed bundle
            file_utils: Copy/delete helper (default FileUtils())
            suffix: Required bundle file-name suffix
            manifest_entry: Archive path of the manifest inside each bundle
        """
        self._patch_dir = Path(patch_dir)
        self._fixer = fixer
        self._files = file_utils or FileUtils()
        self._suffix = suffix
        self._manifest_entry = manifest_entry

        self._patches: tuple[PatchEntity, ...] = ()
        # source_file -> insertion sequence, the tie-breaker for equal timestamps
        self._sequence: dict[Path, int] = {}
        self._next_seq = 0
        self._lock = threading.Lock()
        # Serializes the check-then-copy in add_external against remove_all.
        self._storage_lock = threading.Lock()

    @property
    def patch_dir(self) -> Path:
        return self._patch_dir

    def __iter__(self) -> Iterator[PatchEntity]:
        return iter(self._patches)

    def __len__(self) -> int:
        return len(self._patches)

    def snapshot(self) -> tuple[PatchEntity, ...]:
        """Get an immutable, ordered view of all registered patches."""
        return self._patches

    def get(self, name: str) -> Optional[PatchEntity]:
        """Get the earliest registered patch with the given Patch-Name."""
        for entity in self._patches:
            if entity.name == name:
                return entity
        return None

    def find_by_sub_patch(self, sub_name: str) -> list[PatchEntity]:
        """Get every registered patch declaring a sub-patch with this name, in order."""
        return [entity for entity in self._patches if entity.declares(sub_name)]

    def insert(self, entity: PatchEntity) -> bool:
        """Insert a parsed entity.

        Args:
            entity: The entity to register

        Returns:
            True if inserted, False if an entity for the same file was
            already registered (the registry is left unchanged).
        """
        with self._lock:
            if entity.source_file in self._sequence:
                logger.debug("patch_already_registered", file_path=str(entity.source_file))
                return False
            self._sequence[entity.source_file] = self._next_seq
            self._next_seq += 1

            sequence = self._sequence
            new_patches = sorted(
                (*self._patches, entity),
                key=lambda e: (e.created_at, sequence[e.source_file]),
            )
            self._patches = tuple(new_patches)

        logger.info(
            "patch_registered",
            patch_name=entity.name,
            file_path=str(entity.source_file),
            created_at=entity.created_at.isoformat(),
            sub_patches=list(entity.patch_names),
        )
        return True

    def _load(self, path: Path) -> Optional[PatchEntity]:
        """Parse and insert one bundle file, logging and skipping failures."""
        if not path.name.endswith(self._suffix):
            return None
        try:
            entity = parse_bundle(path, self._manifest_entry)
        except (PatchParseError, OSError) as exc:
            logger.error(
                "patch_load_failed",
                file_path=str(path),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None
        if not self.insert(entity):
            return None
        return entity

    def discover(self, directory: Optional[Path] = None) -> list[PatchEntity]:
        """Load every bundle in the managed directory.

        One bad bundle never aborts discovery of the rest.

        Args:
            directory: Directory to scan (default: the managed directory)

        Returns:
            Entities newly inserted by this call.
        """
        directory = Path(directory) if directory is not None else self._patch_dir
        try:
            files = sorted(p for p in directory.iterdir() if p.is_file())
        except OSError as exc:
            logger.error("patch_dir_list_failed", patch_dir=str(directory), error=str(exc))
            return []

        loaded = [entity for entity in map(self._load, files) if entity is not None]
        logger.info(
            "patches_discovered",
            patch_dir=str(directory),
            files_seen=len(files),
            loaded=len(loaded),
            total=len(self._patches),
        )
        return loaded

    def add_external(self, path: Path | str) -> Optional[PatchEntity]:
        """Copy an external bundle into managed storage and register it.

        Args:
            path: Path of the bundle to add

        Returns:
            The new entity, or None if a same-named file is already managed,
            the file lacks the bundle suffix, or copying/parsing failed.

        Raises:
            SourceNotFoundError: If ``path`` does not exist.
        """
        src = Path(path)
        if not src.exists():
            raise SourceNotFoundError(str(src))
        if not src.name.endswith(self._suffix):
            logger.warning("patch_suffix_mismatch", file_path=str(src), suffix=self._suffix)
            return None

        dest = self._patch_dir / src.name
        with self._storage_lock:
            if dest.exists():
                logger.info("patch_already_loaded", file_path=str(src))
                return None
            if not self._files.copy_file(src, dest):
                return None

        return self._load(dest)

    def _cleanup(self, path: Path) -> None:
        try:
            self._fixer.cleanup(path)
        except Exception as exc:
            logger.error(
                "patch_cleanup_failed",
                file_path=str(path),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def _drop(self, files: set[Path]) -> None:
        with self._lock:
            self._patches = tuple(e for e in self._patches if e.source_file not in files)
            for path in files:
                self._sequence.pop(path, None)

    def remove(self, name: str) -> list[Path]:
        """Remove every registered patch with the given Patch-Name.

        Deletes the managed file and runs the Fixer cleanup hook for each.

        Returns:
            Bundle files of the removed entities (empty if none matched).
        """
        files = [e.source_file for e in self._patches if e.name == name]
        if not files:
            logger.warning("patch_remove_failed", patch_name=name, reason="not_found")
            return []

        self._drop(set(files))
        for path in files:
            self._cleanup(path)
            if not self._files.delete_path(path):
                logger.error("patch_delete_error", file_path=str(path))

        logger.info("patch_removed", patch_name=name, files=[str(p) for p in files])
        return files

    def remove_all(self) -> list[Path]:
        """Delete every entry in managed storage and clear the registry.

        Returns:
            Paths that were found in managed storage.
        """
        with self._storage_lock:
            try:
                entries = sorted(self._patch_dir.iterdir())
            except OSError as exc:
                logger.warning("patch_dir_list_failed", patch_dir=str(self._patch_dir), error=str(exc))
                entries = []

            for path in entries:
                self._cleanup(path)
                if not self._files.delete_path(path):
                    logger.error("patch_delete_error", file_path=str(path))

            with self._lock:
                self._patches = ()
                self._sequence.clear()

        logger.info("patches_removed_all", patch_dir=str(self._patch_dir), removed=len(entries))
        return entries
