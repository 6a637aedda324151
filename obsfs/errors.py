from __future__ import annotations
"""Error types raised by the OBS filesystem layer."""


class ObsFsError(Exception):
    """Base class for every error raised by :mod:`obsfs`."""


class ConfigurationError(ObsFsError):
    """Raised when credentials or the endpoint are not configured."""


class TransportError(ObsFsError):
    """Raised when the object store rejects or fails a request."""

    def __init__(
        self,
        operation: str,
        *,
        bucket: str = "",
        key: str = "",
        code: str | None = None,
        message: str = "",
    ):
        self.operation = operation
        self.bucket = bucket
        self.key = key
        self.code = code
        self.message = message
        super().__init__(self._describe())

    def _describe(self) -> str:
        target = f"obs://{self.bucket}/{self.key}" if self.bucket else self.key
        detail = f"{self.code}: {self.message}" if self.code else self.message
        return f"{self.operation} {target} failed ({detail})"


class IntegrityError(TransportError):
    """Raised when a successful response carries inconsistent data."""


class UsageError(ObsFsError, ValueError):
    """Raised when the API is called in a way it does not support."""


class PathNotFoundError(ObsFsError, FileNotFoundError):
    """Raised when a path does not exist in the store."""

    def __init__(self, path: object):
        self.path = str(path)
        super().__init__(f"cannot find information about {self.path}")


class RecordFormatError(ObsFsError):
    """Raised when a model record ends before its payload is complete."""
