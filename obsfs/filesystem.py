from __future__ import annotations
"""Filesystem facades resolving paths to listings and streams."""
from fnmatch import fnmatchcase
import logging
from pathlib import Path
import threading
from typing import Callable, Optional, Union

from .errors import IntegrityError, PathNotFoundError, UsageError
from .lister import PAGE_SIZE, ObjectLister
from .models import FileInfo, FileType
from .settings import ObsSettings, load_settings
from .streams import ObsReadStream, ObsWriteStream
from .transport import ObsTransport
from .uri import URI

LOGGER = logging.getLogger(__name__)

OBS_PROTOCOL = "obs://"
FILE_PROTOCOL = "file://"
READ_MODES = ("r", "rb")
WRITE_MODES = ("w", "wb")
GLOB_CHARS = frozenset("*?[")

PathLike = Union[str, URI]


def _as_uri(path: PathLike) -> URI:
    return path if isinstance(path, URI) else URI.parse(path)


class ObsFileSystem:
    """Filesystem view of one OBS endpoint.

    Streams returned by :meth:`open` keep working after the filesystem
    object itself is discarded.
    """

    protocol = OBS_PROTOCOL

    def __init__(
        self,
        settings: ObsSettings,
        *,
        client_factory: Callable[..., object] | None = None,
        transport: ObsTransport | None = None,
        page_size: int = PAGE_SIZE,
    ):
        self._settings = settings
        self._transport = transport or ObsTransport(settings, client_factory)
        self._lister = ObjectLister(self._transport, page_size=page_size)

    @property
    def settings(self) -> ObsSettings:
        return self._settings

    def _check_protocol(self, path: URI, operation: str) -> None:
        if path.protocol != OBS_PROTOCOL:
            raise UsageError(f"ObsFileSystem.{operation} does not handle {path}")

    def try_get_path_info(self, path: PathLike) -> Optional[FileInfo]:
        path = _as_uri(path)
        self._check_protocol(path, "get_path_info")
        path = path.strip_trailing_slash()
        if path.key in ("", "/"):
            return FileInfo(path=path.with_key("/"), size=0, type=FileType.DIRECTORY)
        as_dir = path.key + "/"
        for info in self._lister.list_objects(path):
            if info.path.key in (path.key, as_dir):
                return info
        return None

    def get_path_info(self, path: PathLike) -> FileInfo:
        """Return the listing entry for ``path``.

        Raises:
            PathNotFoundError: when neither an object nor a prefix matches.
        """

        info = self.try_get_path_info(path)
        if info is None:
            raise PathNotFoundError(path)
        return info

    def list_directory(self, path: PathLike) -> list[FileInfo]:
        path = _as_uri(path)
        self._check_protocol(path, "list_directory")
        if path.is_directory:
            return self._lister.list_objects(path)

        as_dir = path.key + "/"
        for info in self._lister.list_objects(path):
            if info.path.key == path.key:
                if info.type is not FileType.FILE:
                    raise IntegrityError("list", bucket=path.bucket, key=path.key, message="expected an object")
                return [info]
            if info.path.key == as_dir:
                if info.type is not FileType.DIRECTORY:
                    raise IntegrityError("list", bucket=path.bucket, key=as_dir, message="expected a prefix")
                return self._lister.list_objects(info.path)
        return []

    def open(self, path: PathLike, mode: str = "r", allow_null: bool = False):
        path = _as_uri(path)
        if mode in READ_MODES:
            return self.open_for_read(path, allow_null=allow_null)
        if mode in WRITE_MODES:
            self._check_protocol(path, "open")
            return ObsWriteStream(self._transport, path, self._settings.write_buffer_size)
        raise UsageError(f"ObsFileSystem.open does not support mode {mode!r}")

    def open_for_read(self, path: PathLike, allow_null: bool = False) -> Optional[ObsReadStream]:
        path = _as_uri(path)
        self._check_protocol(path, "open")
        info = self.try_get_path_info(path)
        if info is not None and info.type is FileType.FILE:
            return ObsReadStream(self._transport, path, info.size)
        if allow_null:
            return None
        raise PathNotFoundError(path)


class LocalFileSystem:
    """Plain paths and ``file://`` URIs, with the same contract as OBS."""

    protocol = ""

    def _local(self, path: URI) -> Path:
        return Path(path.key or ".")

    def try_get_path_info(self, path: PathLike) -> Optional[FileInfo]:
        path = _as_uri(path)
        local = self._local(path)
        if local.is_dir():
            return FileInfo(path=path.as_directory(), size=0, type=FileType.DIRECTORY)
        if local.is_file():
            return FileInfo(path=path, size=local.stat().st_size, type=FileType.FILE)
        return None

    def get_path_info(self, path: PathLike) -> FileInfo:
        info = self.try_get_path_info(path)
        if info is None:
            raise PathNotFoundError(path)
        return info

    def list_directory(self, path: PathLike) -> list[FileInfo]:
        path = _as_uri(path)
        local = self._local(path)
        if local.is_file():
            return [FileInfo(path=path, size=local.stat().st_size, type=FileType.FILE)]
        if not local.is_dir():
            return []
        entries = []
        for child in sorted(local.iterdir()):
            child_uri = path.with_key(str(child))
            if child.is_dir():
                entries.append(FileInfo(path=child_uri.as_directory(), size=0, type=FileType.DIRECTORY))
            else:
                entries.append(FileInfo(path=child_uri, size=child.stat().st_size, type=FileType.FILE))
        return entries

    def open(self, path: PathLike, mode: str = "r", allow_null: bool = False):
        path = _as_uri(path)
        local = self._local(path)
        if mode in READ_MODES:
            if not local.is_file():
                if allow_null:
                    return None
                raise PathNotFoundError(path)
            return local.open("rb")
        if mode in WRITE_MODES:
            return local.open("wb")
        raise UsageError(f"LocalFileSystem.open does not support mode {mode!r}")


class StreamFactory:
    """Dispatches paths to the filesystem registered for their protocol.

    The OBS filesystem is created on first use from :func:`load_settings`
    unless one is passed in.
    """

    def __init__(
        self,
        filesystems: dict[str, object] | None = None,
        *,
        settings_loader: Callable[[], ObsSettings] = load_settings,
        client_factory: Callable[..., object] | None = None,
    ):
        local = LocalFileSystem()
        self._filesystems: dict[str, object] = {"": local, FILE_PROTOCOL: local}
        self._filesystems.update(filesystems or {})
        self._settings_loader = settings_loader
        self._client_factory = client_factory
        self._lock = threading.Lock()

    def filesystem_for(self, path: PathLike):
        path = _as_uri(path)
        with self._lock:
            filesystem = self._filesystems.get(path.protocol)
            if filesystem is None and path.protocol == OBS_PROTOCOL:
                filesystem = ObsFileSystem(self._settings_loader(), client_factory=self._client_factory)
                self._filesystems[OBS_PROTOCOL] = filesystem
        if filesystem is None:
            raise UsageError(f"unknown filesystem protocol {path.protocol!r} in {path}")
        return filesystem

    def open(self, path: PathLike, mode: str = "r", allow_null: bool = False):
        path = _as_uri(path)
        return self.filesystem_for(path).open(path, mode, allow_null)

    def match_files(self, pattern: PathLike) -> list[URI]:
        """Resolve a path or basename glob to the matching files, sorted."""

        pattern = _as_uri(pattern)
        filesystem = self.filesystem_for(pattern)
        if pattern.is_directory:
            directory, name_pattern = pattern, "*"
        else:
            directory, name_pattern = pattern.parent, pattern.basename
            if not GLOB_CHARS.intersection(name_pattern):
                info = filesystem.try_get_path_info(pattern)
                if info is not None and info.type is FileType.FILE:
                    return [pattern]
                if info is None:
                    return []
                directory, name_pattern = info.path, "*"
        matches = [
            info.path
            for info in filesystem.list_directory(directory)
            if info.type is FileType.FILE
            and not info.path.is_directory
            and fnmatchcase(info.path.basename, name_pattern)
        ]
        LOGGER.debug("Pattern %s matched %d file(s)", pattern, len(matches))
        return sorted(matches, key=str)
