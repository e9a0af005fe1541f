"""Core coordination: registry, bindings, coordinator, version gate."""

from hotpatch.core.binding import WILDCARD, ClassLoaderBinding, resolve_context
from hotpatch.core.coordinator import ApplicationCoordinator, ApplyReport, FixTarget
from hotpatch.core.fixer import DryRunFixer, Fixer, FixResult
from hotpatch.core.registry import PatchRegistry
from hotpatch.core.version_gate import VersionGate

__all__ = [
    "ApplicationCoordinator",
    "ApplyReport",
    "ClassLoaderBinding",
    "DryRunFixer",
    "Fixer",
    "FixResult",
    "FixTarget",
    "PatchRegistry",
    "VersionGate",
    "WILDCARD",
    "resolve_context",
]
