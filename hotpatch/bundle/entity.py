"""In-memory representation of a parsed patch bundle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True, eq=False)
class PatchEntity:
    """Immutable view of one bundle on managed storage.

    Attributes:
        source_file: Path of the bundle file this entity was parsed from
        name: Canonical patch name (the Patch-Name attribute)
        created_at: Creation time from the Created-Time attribute
        sub_patches: Sub-patch name -> ordered class identifiers. Always holds
            an entry keyed by ``name`` (from Patch-Classes).
        attributes: Remaining manifest main attributes, for inspection only
    """

    source_file: Path
    name: str
    created_at: datetime
    sub_patches: Mapping[str, tuple[str, ...]]
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.name not in self.sub_patches:
            raise ValueError(f"sub_patches must contain the canonical patch {self.name!r}")
        # Freeze the mappings so callers cannot mutate a registered entity.
        frozen = {key: tuple(classes) for key, classes in self.sub_patches.items()}
        object.__setattr__(self, "sub_patches", MappingProxyType(frozen))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def patch_names(self) -> tuple[str, ...]:
        """Names of all sub-patches declared by this bundle."""
        return tuple(self.sub_patches)

    def classes(self, sub_name: str) -> Optional[tuple[str, ...]]:
        """Get the class list of a sub-patch, or None if it is not declared."""
        return self.sub_patches.get(sub_name)

    def declares(self, sub_name: str) -> bool:
        return sub_name in self.sub_patches
