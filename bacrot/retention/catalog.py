# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Artifact Catalog - Normalize and order backup listings.

Storage providers report the modification time under different keys and
formats (datetime objects, ISO 8601, RFC 1123 HTTP dates). Every entry is
reduced to one timezone-aware UTC instant so ordering never depends on
string comparison of heterogeneous formats.
"""

from dataclasses import dataclass
from datetime import datetime, UTC
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, List, Mapping, Tuple

from bacrot.exceptions import MalformedArtifactError

# Checked in order; the first key present wins.
TIMESTAMP_KEYS = (
    "last_modified",
    "lastModified",
    "last-modified",
    "Last-Modified",
    "LastModified",
)


@dataclass(frozen=True)
class Artifact:
    """A single backup object in a container."""

    name: str
    last_modified: datetime


Catalog = Tuple[Artifact, ...]


def _lookup(entry: Any, key: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(key)
    return getattr(entry, key, None)


def extract_timestamp(entry: Any) -> Any:
    """
    Return the raw modification timestamp of a listing entry.

    Looks at the entry itself first, then at a nested `properties`
    mapping (shape used by older Azure SDKs).
    """
    for key in TIMESTAMP_KEYS:
        value = _lookup(entry, key)
        if value is not None:
            return value

    properties = _lookup(entry, "properties")
    if properties is not None:
        for key in TIMESTAMP_KEYS:
            value = _lookup(properties, key)
            if value is not None:
                return value

    return None


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a raw timestamp into an aware UTC datetime.

    Naive datetimes are taken as UTC. Returns None when the value
    cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            pass
        if parsed is None:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def normalize_entries(raw_entries: Iterable[Any]) -> List[Artifact]:
    """
    Convert raw listing entries into Artifacts, keeping listing order.

    Args:
        raw_entries: Mappings or objects exposing a name and a
                     modification timestamp

    Returns:
        Artifacts in the order they were listed

    Raises:
        MalformedArtifactError: If any entry lacks a name or a parseable
                                timestamp. Nothing is defaulted.
    """
    artifacts: List[Artifact] = []

    for position, entry in enumerate(raw_entries):
        name = _lookup(entry, "name")
        if not name:
            raise MalformedArtifactError(
                "Listing entry has no name",
                details={"position": position},
            )

        raw_timestamp = extract_timestamp(entry)
        if raw_timestamp is None:
            raise MalformedArtifactError(
                f"Artifact {name!r} has no modification timestamp",
                details={"name": name, "position": position},
            )

        instant = parse_timestamp(raw_timestamp)
        if instant is None:
            raise MalformedArtifactError(
                f"Artifact {name!r} has an unparseable timestamp",
                details={"name": name, "value": str(raw_timestamp)},
            )

        artifacts.append(Artifact(name=str(name), last_modified=instant))

    return artifacts


def sort_catalog(artifacts: Iterable[Artifact]) -> Catalog:
    """Ascending by instant; equal instants keep their relative order."""
    return tuple(sorted(artifacts, key=lambda artifact: artifact.last_modified))


def build_catalog(raw_entries: Iterable[Any]) -> Catalog:
    """Normalize a raw listing and sort it."""
    return sort_catalog(normalize_entries(raw_entries))


def catalog_names(catalog: Iterable[Artifact]) -> List[str]:
    return [artifact.name for artifact in catalog]
