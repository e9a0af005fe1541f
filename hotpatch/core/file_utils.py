"""File helpers used for managed patch storage.

Both operations report success as a bool and log failures instead of
raising, so batch callers can keep going.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import structlog

logger = structlog.get_logger()


class FileUtils:
    """Copy and delete operations on managed storage."""

    def copy_file(self, src: Path, dst: Path) -> bool:
        """Copy ``src`` to ``dst``.

        The copy is written next to the destination and renamed into place,
        so a partially written file is never visible under ``dst``.

        Returns:
            True if the copy completed, False otherwise.
        """
        tmp = dst.with_name(f".{dst.name}.tmp")
        try:
            shutil.copyfile(src, tmp)
            os.replace(tmp, dst)
        except OSError as exc:
            logger.error(
                "file_copy_failed",
                src=str(src),
                dst=str(dst),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            tmp.unlink(missing_ok=True)
            return False
        return True

    def delete_path(self, path: Path) -> bool:
        """Delete a file, or a directory recursively.

        Returns:
            True if nothing remains at ``path``, False otherwise.
        """
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error(
                "file_delete_failed",
                file_path=str(path),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False
        return True
