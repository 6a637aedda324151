from __future__ import annotations
"""Data models representing OBS listings and uploads."""
from dataclasses import dataclass, field
from enum import Enum

from .uri import URI


class FileType(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class FileInfo:
    """A single listing entry, either an object or a common prefix."""

    path: URI
    size: int = 0
    type: FileType = FileType.FILE


@dataclass
class ListingPage:
    """Represents a single page returned by a marker-paginated listing."""

    entries: list[FileInfo] = field(default_factory=list)
    truncated: bool = False
    next_marker: str = ""


@dataclass(frozen=True)
class CompletedPart:
    """An uploaded part acknowledged by the store."""

    part_number: int
    etag: str
