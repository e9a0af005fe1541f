"""hotpatch entry point: inspect and dry-run the managed patch store.

Initializes the patch store for a host version and bulk-applies every
bundle with a DryRunFixer, logging what a real Fixer would patch.

Can be run directly via `python -m hotpatch.main <app_version>`.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import structlog

from hotpatch.config import Settings
from hotpatch.core.fixer import DryRunFixer
from hotpatch.manager import PatchManager

logger = structlog.get_logger()

HOST_CONTEXT = "host"


def configure_logging(level: str = "info") -> None:
    """Configure structured console logging at ``level``."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level=level.lower()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def run(app_version: str, settings: Optional[Settings] = None) -> int:
    """Initialize the store for ``app_version`` and dry-run the bulk apply.

    Returns:
        Process exit status: 0 on success, 1 if the patch store is unready.
    """
    settings = settings or Settings()
    manager = PatchManager(DryRunFixer(), HOST_CONTEXT, settings=settings)

    if not manager.init(app_version):
        logger.error("patch_store_unready", patch_dir=settings.patch_dir)
        return 1

    report = manager.load_patches()
    for entity in manager.patches():
        logger.info(
            "patch_inventory",
            patch_name=entity.name,
            created_at=entity.created_at.isoformat(),
            file_path=str(entity.source_file),
            sub_patches={name: len(classes) for name, classes in entity.sub_patches.items()},
        )
    logger.info(
        "hotpatch_dry_run_complete",
        patches=len(manager.patches()),
        applied=len(report.applied),
        failed=len(report.failed),
    )
    return 0 if not report.failed else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="hotpatch", description=__doc__.splitlines()[0])
    parser.add_argument("app_version", help="version string of the running host application")
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(settings.log_level)
    logger.info("hotpatch_starting", app_version=args.app_version, patch_dir=settings.patch_dir)
    return run(args.app_version, settings)


if __name__ == "__main__":
    sys.exit(main())
