"""Patch bundle metadata parser.

A bundle is a zip archive carrying a JAR-style manifest (META-INF/PATCH.MF)
whose main section looks like:

    Manifest-Version: 1.0
    Patch-Name: app-debug
    Created-Time: 22 Dec 2016 07:54:16 GMT
    From-File: app-debug.apk
    To-File: app-debug-old.apk
    Patch-Classes: com.example.MainActivity_CF,com.example.MyApplication_CF
    Created-By: 1.0 (ApkPatch)

Every ``<X>-Classes`` attribute declares the classes of one sub-patch.
"""

from __future__ import annotations

import zipfile
import zlib
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Optional

import structlog

from hotpatch.bundle.entity import PatchEntity
from hotpatch.errors import InvalidBundleError, MalformedTimestampError, MissingMetadataError

logger = structlog.get_logger()

MANIFEST_ENTRY = "META-INF/PATCH.MF"
CLASSES_SUFFIX = "-Classes"
PATCH_CLASSES = "Patch-Classes"
PATCH_NAME = "Patch-Name"
CREATED_TIME = "Created-Time"


def parse_manifest(text: str) -> dict[str, str]:
    """Parse the main section of a JAR-style manifest.

    The main section ends at the first blank line. A line starting with a
    single space continues the value of the previous attribute.

    Args:
        text: Decoded manifest content

    Returns:
        Attribute name -> value, in file order. Names keep their original case.

    Raises:
        InvalidBundleError: If a line is neither a header nor a continuation.
    """
    attributes: dict[str, str] = {}
    last_key: Optional[str] = None

    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line:
            break
        if line.startswith(" "):
            if last_key is None:
                raise InvalidBundleError(f"manifest line {lineno}: continuation without header")
            attributes[last_key] += line[1:]
            continue

        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            raise InvalidBundleError(f"manifest line {lineno}: invalid header {line!r}")
        last_key = key.strip()
        attributes[last_key] = value[1:] if value.startswith(" ") else value

    return attributes


def _lookup(attributes: dict[str, str], name: str) -> Optional[str]:
    """Case-insensitive attribute lookup (manifest names ignore case)."""
    wanted = name.lower()
    for key, value in attributes.items():
        if key.lower() == wanted:
            return value
    return None


def parse_created_time(value: str) -> datetime:
    """Parse a Created-Time value into an aware datetime.

    Accepts RFC 2822 style dates (``22 Dec 2016 07:54:16 GMT``, weekday
    optional) and ISO 8601. Naive values are taken as UTC.

    Raises:
        MalformedTimestampError: If neither format matches.
    """
    raw = value.strip()
    parsed: Optional[datetime] = None
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            parsed = None

    if parsed is None:
        raise MalformedTimestampError(f"unparseable {CREATED_TIME}: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def split_classes(value: str) -> tuple[str, ...]:
    """Split a class list on commas.

    Entries are neither trimmed nor de-duplicated; trailing empty entries are
    dropped unless the value has no comma at all.
    """
    parts = value.split(",")
    if len(parts) > 1:
        while parts and parts[-1] == "":
            parts.pop()
    return tuple(parts)


def build_entity(path: Path, attributes: dict[str, str]) -> PatchEntity:
    """Build a PatchEntity from already-parsed manifest attributes.

    Args:
        path: Bundle file the attributes came from
        attributes: Main manifest attributes

    Returns:
        The populated PatchEntity.

    Raises:
        MissingMetadataError: If Patch-Name, Created-Time or Patch-Classes is absent.
        MalformedTimestampError: If Created-Time cannot be parsed.
    """
    name = _lookup(attributes, PATCH_NAME)
    if name is None:
        raise MissingMetadataError(f"{path.name}: missing {PATCH_NAME}")
    created = _lookup(attributes, CREATED_TIME)
    if created is None:
        raise MissingMetadataError(f"{path.name}: missing {CREATED_TIME}")
    created_at = parse_created_time(created)

    sub_patches: dict[str, tuple[str, ...]] = {}
    extra: dict[str, str] = {}
    has_canonical = False
    for key, value in attributes.items():
        if not key.endswith(CLASSES_SUFFIX):
            extra[key] = value
            continue
        classes = split_classes(value)
        if key.lower() == PATCH_CLASSES.lower():
            sub_patches[name] = classes
            has_canonical = True
        else:
            sub_patches[key.strip()[: -len(CLASSES_SUFFIX)]] = classes

    if not has_canonical:
        raise MissingMetadataError(f"{path.name}: missing {PATCH_CLASSES}")

    return PatchEntity(
        source_file=path,
        name=name,
        created_at=created_at,
        sub_patches=sub_patches,
        attributes=extra,
    )


def parse_bundle(path: Path, manifest_entry: str = MANIFEST_ENTRY) -> PatchEntity:
    """Parse a bundle file into a PatchEntity.

    Parsing is all-or-nothing: either a complete entity is returned or a
    PatchParseError subclass is raised.

    Args:
        path: Bundle file on disk
        manifest_entry: Archive path of the manifest

    Returns:
        The parsed PatchEntity.

    Raises:
        InvalidBundleError: If the file is not a readable zip or the manifest is garbled.
        MissingMetadataError: If the manifest or a required attribute is absent.
        MalformedTimestampError: If Created-Time cannot be parsed.
    """
    path = Path(path)
    try:
        with zipfile.ZipFile(path) as archive:
            try:
                raw = archive.read(manifest_entry)
            except KeyError as exc:
                raise MissingMetadataError(f"{path.name}: no {manifest_entry} entry") from exc
    except zipfile.BadZipFile as exc:
        raise InvalidBundleError(f"{path.name}: not a zip archive") from exc
    except (zlib.error, RuntimeError, NotImplementedError, EOFError) as exc:
        # Corrupt deflate stream, encrypted entry or unsupported compression.
        raise InvalidBundleError(f"{path.name}: unreadable {manifest_entry}: {exc}") from exc

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidBundleError(f"{path.name}: manifest is not UTF-8") from exc

    entity = build_entity(path, parse_manifest(text))
    logger.debug(
        "bundle_parsed",
        file_path=str(path),
        patch_name=entity.name,
        sub_patches=list(entity.patch_names),
    )
    return entity
