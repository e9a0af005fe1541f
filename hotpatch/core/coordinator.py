"""Application coordinator: decides when the Fixer runs.

Three entry points end in Fixer.apply calls:
    - apply_all: bulk apply at host startup against the host context
    - bind_and_apply: a module registers its own context under a sub-patch name
    - apply_added: a bundle was added at runtime

Every successful apply is recorded as a (bundle file, context, sub-patch)
triple; a recorded triple is never applied again by this coordinator.
Failed applies are not recorded, so a later call retries them. A triple
already being applied on another thread is reported as skipped.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import structlog

from hotpatch.bundle.entity import PatchEntity
from hotpatch.core.binding import WILDCARD, ClassLoaderBinding
from hotpatch.core.fixer import Fixer
from hotpatch.core.registry import PatchRegistry

logger = structlog.get_logger()


@dataclass(frozen=True)
class FixTarget:
    """One sub-patch of one bundle applied to one context."""

    bundle_file: Path
    sub_patch: str
    context: Any = field(compare=False)


@dataclass
class ApplyReport:
    """What a coordinator entry point did.

    Attributes:
        applied: Targets the Fixer patched during this call
        skipped: Targets already applied earlier, not sent to the Fixer
        failed: Targets the Fixer rejected or raised on
        deferred: Sub-patch names with no resolvable context (apply_added only)
    """

    applied: list[FixTarget] = field(default_factory=list)
    skipped: list[FixTarget] = field(default_factory=list)
    failed: list[FixTarget] = field(default_factory=list)
    deferred: list[str] = field(default_factory=list)


class ApplicationCoordinator:
    """Resolves bindings against registered patches and drives the Fixer."""

    def __init__(
        self,
        registry: PatchRegistry,
        fixer: Fixer,
        binding: ClassLoaderBinding | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            registry: Registry to read patches from
            fixer: Method-patching collaborator
            binding: Binding table (default: a fresh, empty one)
        """
        self._registry = registry
        self._fixer = fixer
        self._binding = binding or ClassLoaderBinding()
        # (bundle_file, id(context), sub_patch) of every successful apply
        self._applied: set[tuple[Path, int, str]] = set()
        # Keeps contexts referenced by _applied alive so their ids stay unique.
        self._contexts: dict[int, Any] = {}
        # Keys claimed by an apply that has not returned yet.
        self._in_flight: set[tuple[Path, int, str]] = set()
        self._lock = threading.Lock()

    @property
    def binding(self) -> ClassLoaderBinding:
        return self._binding

    def is_applied(self, bundle_file: Path, context: Any, sub_patch: str) -> bool:
        with self._lock:
            return (bundle_file, id(context), sub_patch) in self._applied

    def _apply_one(
        self,
        entity: PatchEntity,
        sub_patch: str,
        context: Any,
        report: ApplyReport,
    ) -> None:
        target = FixTarget(entity.source_file, sub_patch, context)
        key = (entity.source_file, id(context), sub_patch)
        classes = entity.classes(sub_patch) or ()

        # The lock only guards check-and-claim; the Fixer runs unlocked so
        # unrelated targets are patched in parallel.
        with self._lock:
            if key in self._applied or key in self._in_flight:
                report.skipped.append(target)
                return
            self._in_flight.add(key)

        succeeded = False
        try:
            result = self._fixer.apply(entity.source_file, context, classes)
        except Exception as exc:
            logger.error(
                "fix_apply_exception",
                patch_name=entity.name,
                sub_patch=sub_patch,
                file_path=str(entity.source_file),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            report.failed.append(target)
            return
        else:
            if not result.success:
                logger.error(
                    "fix_apply_failed",
                    patch_name=entity.name,
                    sub_patch=sub_patch,
                    file_path=str(entity.source_file),
                    error=result.error,
                )
                report.failed.append(target)
                return
            succeeded = True
        finally:
            with self._lock:
                # Claims dropped by forget()/reset() while in flight are not recorded.
                if key in self._in_flight:
                    self._in_flight.discard(key)
                    if succeeded:
                        self._applied.add(key)
                        self._contexts[id(context)] = context

        report.applied.append(target)
        logger.info(
            "fix_applied",
            patch_name=entity.name,
            sub_patch=sub_patch,
            file_path=str(entity.source_file),
            classes=len(classes),
        )

    def apply_all(self, host_context: Any) -> ApplyReport:
        """Bind the wildcard to the host context and apply every sub-patch.

        Per-name bindings are not consulted: with the wildcard bound, every
        name resolves to the host context.

        Args:
            host_context: The host application's default execution context

        Returns:
            ApplyReport for this call.
        """
        self._binding.bind(WILDCARD, host_context)
        report = ApplyReport()
        for entity in self._registry.snapshot():
            for sub_patch in entity.patch_names:
                self._apply_one(entity, sub_patch, host_context, report)

        logger.info(
            "bulk_apply_complete",
            applied=len(report.applied),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    def bind_and_apply(self, name: str, context: Any) -> ApplyReport:
        """Bind ``name`` to ``context`` and apply every bundle declaring it.

        The binding is recorded even when the wildcard is already set; the
        application itself always targets the supplied context.

        Args:
            name: Sub-patch name the module registers under
            context: The module's execution context

        Returns:
            ApplyReport for this call.
        """
        self._binding.bind(name, context)
        report = ApplyReport()
        for entity in self._registry.find_by_sub_patch(name):
            self._apply_one(entity, name, context, report)

        logger.info(
            "targeted_apply_complete",
            sub_patch=name,
            applied=len(report.applied),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    def apply_added(self, entity: PatchEntity) -> ApplyReport:
        """Apply a runtime-added bundle to whatever contexts are bound now.

        Names with no resolvable context are deferred: they get applied only
        if that name is bound later through bind_and_apply.

        Args:
            entity: The entity just added to the registry

        Returns:
            ApplyReport for this call.
        """
        report = ApplyReport()
        for sub_patch in entity.patch_names:
            context = self._binding.resolve(sub_patch)
            if context is None:
                report.deferred.append(sub_patch)
                logger.debug("fix_deferred", patch_name=entity.name, sub_patch=sub_patch)
                continue
            self._apply_one(entity, sub_patch, context, report)
        return report

    def _forget_locked(self, files: set[Path]) -> None:
        """Drop records for ``files``; caller holds the lock."""
        self._applied = {key for key in self._applied if key[0] not in files}
        self._in_flight = {key for key in self._in_flight if key[0] not in files}
        live = {key[1] for key in self._applied}
        self._contexts = {k: v for k, v in self._contexts.items() if k in live}

    def forget(self, bundle_files: Iterable[Path]) -> None:
        """Drop applied records for bundles that were removed."""
        files = set(bundle_files)
        with self._lock:
            self._forget_locked(files)

    def prune(self) -> None:
        """Drop applied records for bundles no longer in the registry."""
        registered = {entity.source_file for entity in self._registry.snapshot()}
        with self._lock:
            stale = {key[0] for key in self._applied} - registered
            if stale:
                self._forget_locked(stale)

    def reset(self) -> None:
        """Drop every applied record."""
        with self._lock:
            self._applied = set()
            self._in_flight = set()
            self._contexts = {}
