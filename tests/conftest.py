"""Shared fixtures: bundle builder and a recording Fixer."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import pytest

from hotpatch.bundle.manifest import MANIFEST_ENTRY
from hotpatch.core.fixer import FixResult


def write_bundle(path: Path, manifest: Optional[str], entry: str = MANIFEST_ENTRY) -> Path:
    """Write a zip bundle at ``path``; ``manifest=None`` omits the manifest entry."""
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("classes.dex", b"dex\n035\x00")
        if manifest is not None:
            archive.writestr(entry, manifest)
    return path


def manifest_text(
    patch_name: str = "fix-001",
    created: Optional[str] = "22 Dec 2016 07:54:16 GMT",
    classes: Optional[str] = "com.app.A,com.app.B",
    extra: Optional[dict[str, str]] = None,
) -> str:
    lines = ["Manifest-Version: 1.0", f"Patch-Name: {patch_name}"]
    if created is not None:
        lines.append(f"Created-Time: {created}")
    if classes is not None:
        lines.append(f"Patch-Classes: {classes}")
    for key, value in (extra or {}).items():
        lines.append(f"{key}: {value}")
    lines.append("Created-By: 1.0 (ApkPatch)")
    return "\r\n".join(lines) + "\r\n\r\n"


class RecordingFixer:
    """Fixer double that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.applied: list[tuple[Path, Any, tuple[str, ...]]] = []
        self.cleaned: list[Path] = []
        self.fail_files: set[str] = set()
        self.raise_files: set[str] = set()

    def apply(self, bundle_file: Path, context: Any, class_names: Sequence[str]) -> FixResult:
        if bundle_file.name in self.raise_files:
            raise RuntimeError("native patch crashed")
        if bundle_file.name in self.fail_files:
            return FixResult(success=False, error="method not found")
        self.applied.append((bundle_file, context, tuple(class_names)))
        return FixResult(success=True, fixed_classes=len(class_names))

    def cleanup(self, bundle_file: Path) -> None:
        self.cleaned.append(bundle_file)


@pytest.fixture
def fixer() -> RecordingFixer:
    """Create a RecordingFixer."""
    return RecordingFixer()


@pytest.fixture
def patch_dir(tmp_path: Path) -> Path:
    """Create the managed patch directory."""
    directory = tmp_path / "apatch"
    directory.mkdir()
    return directory


@pytest.fixture
def make_bundle(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a bundle file; defaults describe the fix-001 bundle."""

    def _make(
        filename: str = "fix-001.apatch",
        directory: Optional[Path] = None,
        **manifest_kwargs: Any,
    ) -> Path:
        target_dir = directory or (tmp_path / "downloads")
        target_dir.mkdir(parents=True, exist_ok=True)
        return write_bundle(target_dir / filename, manifest_text(**manifest_kwargs))

    return _make


@pytest.fixture
def raw_bundle(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a bundle with verbatim manifest text (None omits it)."""

    def _raw(
        filename: str,
        manifest: Optional[str],
        directory: Optional[Path] = None,
        entry: str = MANIFEST_ENTRY,
    ) -> Path:
        target_dir = directory or (tmp_path / "downloads")
        target_dir.mkdir(parents=True, exist_ok=True)
        return write_bundle(target_dir / filename, manifest, entry)

    return _raw


@pytest.fixture
def corrupt_bundle(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a bundle whose deflated manifest stream is garbled.

    The central directory stays valid, so the archive opens and the failure
    only shows up when the manifest entry is decompressed.
    """

    def _corrupt(filename: str, directory: Optional[Path] = None) -> Path:
        target_dir = directory or (tmp_path / "downloads")
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / filename
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(MANIFEST_ENTRY, manifest_text() * 4)
        with zipfile.ZipFile(path) as archive:
            info = archive.getinfo(MANIFEST_ENTRY)

        data = bytearray(path.read_bytes())
        start = info.header_offset + 30 + len(info.filename.encode("utf-8"))
        for offset in range(start, start + info.compress_size):
            data[offset] ^= 0xFF
        path.write_bytes(bytes(data))
        return path

    return _corrupt
