"""Exception hierarchy for hot-patch bundle handling."""

from __future__ import annotations


class HotpatchError(Exception):
    """Base class for all hotpatch errors."""


class PatchParseError(HotpatchError):
    """A bundle could not be turned into a PatchEntity.

    Batch operations (discovery, runtime add) log and skip these.
    """


class InvalidBundleError(PatchParseError):
    """The bundle file is not a readable archive."""


class MissingMetadataError(PatchParseError):
    """The manifest entry or one of its required attributes is absent."""


class MalformedTimestampError(PatchParseError):
    """The Created-Time attribute could not be parsed."""


class SourceNotFoundError(HotpatchError, FileNotFoundError):
    """The external bundle passed to a runtime add does not exist."""


class StorageUnavailableError(HotpatchError):
    """The managed patch directory is not usable for this run."""
