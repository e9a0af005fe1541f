"""Fixer collaborator contract.

The Fixer performs the actual method-level replacement inside an execution
context. This package never depends on how that is done; it only calls the
two operations below.

Contract required of implementations:
    - apply() is idempotent per (bundle_file, context, class name)
    - apply() is thread-safe under concurrent calls
    - neither call mutates registry or binding state
    - a failed apply does not corrupt fixes already applied
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

import structlog

logger = structlog.get_logger()


@dataclass
class FixResult:
    """Outcome of one Fixer.apply call.

    Attributes:
        success: Whether the classes were patched
        error: Error message if the apply failed, None otherwise
        fixed_classes: Number of classes the fixer reports as patched
    """

    success: bool
    error: Optional[str] = None
    fixed_classes: int = 0


class Fixer(Protocol):
    """Method-patching mechanism injected into the coordinator."""

    def apply(self, bundle_file: Path, context: Any, class_names: Sequence[str]) -> FixResult:
        ...

    def cleanup(self, bundle_file: Path) -> None:
        ...


class DryRunFixer:
    """Fixer that patches nothing and logs what would be applied."""

    def apply(self, bundle_file: Path, context: Any, class_names: Sequence[str]) -> FixResult:
        logger.info(
            "dry_run_apply",
            file_path=str(bundle_file),
            context=repr(context),
            classes=list(class_names),
        )
        return FixResult(success=True, fixed_classes=len(class_names))

    def cleanup(self, bundle_file: Path) -> None:
        logger.info("dry_run_cleanup", file_path=str(bundle_file))
