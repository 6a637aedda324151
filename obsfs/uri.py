from __future__ import annotations
"""Parsing and manipulation of store-qualified paths."""
from dataclasses import dataclass, replace

SCHEME_SEPARATOR = "://"


@dataclass(frozen=True)
class URI:
    """A path split into protocol, bucket and key.

    ``protocol`` keeps its ``://`` suffix (``"obs://"``) and is empty for
    local paths. ``key`` starts with ``/`` whenever a bucket is present and
    anything follows it; for local paths it holds the whole path.
    """

    protocol: str = ""
    bucket: str = ""
    key: str = ""

    @classmethod
    def parse(cls, text: str) -> "URI":
        scheme, sep, rest = text.partition(SCHEME_SEPARATOR)
        if not sep:
            return cls(protocol="", bucket="", key=text)
        bucket, slash, key = rest.partition("/")
        return cls(protocol=scheme + SCHEME_SEPARATOR, bucket=bucket, key=slash + key)

    def __str__(self) -> str:
        if not self.protocol:
            return self.key
        return f"{self.protocol}{self.bucket}{self.key}"

    @property
    def transport_key(self) -> str:
        """The key as submitted to the store, without the leading slash."""
        return self.key[1:] if self.key.startswith("/") else self.key

    @property
    def is_directory(self) -> bool:
        return self.key.endswith("/")

    @property
    def basename(self) -> str:
        return self.key.rstrip("/").rsplit("/", 1)[-1]

    @property
    def parent(self) -> "URI":
        head, sep, _ = self.key.rstrip("/").rpartition("/")
        if not sep:
            return self.with_key("/" if self.protocol else "./")
        return self.with_key(head + "/")

    def with_key(self, key: str) -> "URI":
        return replace(self, key=key)

    def strip_trailing_slash(self) -> "URI":
        key = self.key
        while len(key) > 1 and key.endswith("/"):
            key = key[:-1]
        return self.with_key(key)

    def as_directory(self) -> "URI":
        return self if self.is_directory else self.with_key(self.key + "/")

    def join(self, name: str) -> "URI":
        return self.with_key(self.as_directory().key + name.lstrip("/"))
