"""Bundle model: manifest parsing and the PatchEntity type."""

from hotpatch.bundle.entity import PatchEntity
from hotpatch.bundle.manifest import MANIFEST_ENTRY, parse_bundle

__all__ = ["MANIFEST_ENTRY", "PatchEntity", "parse_bundle"]
