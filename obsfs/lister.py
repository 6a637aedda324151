from __future__ import annotations
"""Hierarchical listing over the flat, marker-paginated key space."""
from dataclasses import replace
import logging
from typing import Iterator

from .errors import TransportError
from .models import FileInfo, FileType, ListingPage
from .transport import ObsTransport
from .uri import URI

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 1000
DELIMITER = "/"


def build_page(response: dict) -> ListingPage:
    """Convert a raw ``ListObjects`` response into a :class:`ListingPage`.

    Entries carry only the key; protocol and bucket are filled in by the
    caller. Objects come before common prefixes, as the store emits them.
    """

    contents = response.get("Contents", [])
    entries = [
        FileInfo(path=URI(key="/" + obj["Key"]), size=int(obj.get("Size", 0)), type=FileType.FILE)
        for obj in contents
    ]
    entries.extend(
        FileInfo(path=URI(key="/" + common["Prefix"]), size=0, type=FileType.DIRECTORY)
        for common in response.get("CommonPrefixes", [])
    )
    next_marker = response.get("NextMarker") or ""
    # The store omits NextMarker when no delimiter applies; resume after the
    # last object instead.
    if not next_marker and contents:
        next_marker = contents[-1]["Key"]
    return ListingPage(
        entries=entries,
        truncated=bool(response.get("IsTruncated", False)),
        next_marker=next_marker,
    )


class ObjectLister:
    """Lists objects and common prefixes below a path."""

    def __init__(self, transport: ObsTransport, *, page_size: int = PAGE_SIZE):
        self._transport = transport
        self._page_size = page_size

    def iter_pages(self, path: URI) -> Iterator[ListingPage]:
        prefix = path.transport_key
        marker = ""
        while True:
            response = self._transport.list_keys(
                path.bucket,
                prefix,
                marker=marker,
                delimiter=DELIMITER,
                max_keys=self._page_size,
            )
            page = build_page(response)
            page.entries = [
                replace(entry, path=replace(entry.path, protocol=path.protocol, bucket=path.bucket))
                for entry in page.entries
            ]
            yield page
            if not page.truncated:
                return
            if not page.next_marker or page.next_marker == marker:
                raise TransportError(
                    "list",
                    bucket=path.bucket,
                    key=prefix,
                    message="truncated listing returned no marker to resume from",
                )
            marker = page.next_marker

    def list_objects(self, path: URI) -> list[FileInfo]:
        """Return every entry below ``path``, following all pages.

        Raises:
            TransportError: when any page request fails; nothing collected
                so far is returned.
        """

        entries: list[FileInfo] = []
        page_count = 0
        for page in self.iter_pages(path):
            entries.extend(page.entries)
            page_count += 1
        LOGGER.debug("Listed %d entries in %d page(s) under %s", len(entries), page_count, path)
        return entries
