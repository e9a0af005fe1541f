"""hotpatch: hot-patch bundle registry and application coordinator."""

from hotpatch.bundle import PatchEntity, parse_bundle
from hotpatch.core import ApplicationCoordinator, ClassLoaderBinding, Fixer, FixResult, PatchRegistry, VersionGate
from hotpatch.manager import PatchManager

__version__ = "0.1.0"

__all__ = [
    "ApplicationCoordinator",
    "ClassLoaderBinding",
    "Fixer",
    "FixResult",
    "PatchEntity",
    "PatchManager",
    "PatchRegistry",
    "VersionGate",
    "parse_bundle",
]
