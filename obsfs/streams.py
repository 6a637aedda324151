from __future__ import annotations
"""Byte streams over OBS objects: ranged reads and multipart writes."""
import io
import logging

from .errors import IntegrityError, TransportError, UsageError
from .models import CompletedPart
from .settings import DEFAULT_WRITE_BUFFER_MB, MIB
from .transport import ObsTransport
from .uri import URI

LOGGER = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = DEFAULT_WRITE_BUFFER_MB * MIB


class ObsReadStream(io.RawIOBase):
    """Seekable reader that fetches each ``readinto`` with one range request.

    Seeking is lazy: it only moves the offset, the next read requests the
    new window. A seek past the end of the object is therefore reported by
    the read that follows it.
    """

    def __init__(self, transport: ObsTransport, path: URI, expected_size: int):
        super().__init__()
        self._transport = transport
        self._path = path
        self._expected_size = expected_size
        self._offset = 0
        self._at_end = False

    @property
    def path(self) -> URI:
        return self._path

    @property
    def expected_size(self) -> int:
        return self._expected_size

    @property
    def at_end(self) -> bool:
        return self._at_end

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        self._checkClosed()
        size = len(buffer)
        if size == 0 or self._at_end:
            return 0
        if self._offset == self._expected_size:
            self._at_end = True
            return 0

        data = self._transport.get_range(
            self._path.bucket, self._path.transport_key, self._offset, size
        )
        nread = min(len(data), size)
        memoryview(buffer).cast("B")[:nread] = data[:nread]
        self._offset += nread
        if self._offset == self._expected_size:
            self._at_end = True
        return nread

    def seek(self, pos: int, whence: int = io.SEEK_SET) -> int:
        self._checkClosed()
        if whence == io.SEEK_SET:
            target = pos
        elif whence == io.SEEK_CUR:
            target = self._offset + pos
        elif whence == io.SEEK_END:
            target = self._expected_size + pos
        else:
            raise UsageError(f"invalid whence ({whence})")
        if target < 0:
            raise UsageError(f"negative seek position {target} on {self._path}")
        if target != self._offset:
            self._at_end = False
            self._offset = target
        return self._offset

    def tell(self) -> int:
        self._checkClosed()
        return self._offset

    def write(self, data) -> int:
        raise UsageError(f"read stream for {self._path} cannot be used for write")


class ObsWriteStream(io.RawIOBase):
    """Writer that uploads its buffer as multipart parts.

    The multipart session is opened on construction. Bytes accumulate in
    memory and each time the buffer reaches ``max_buffer_size`` it is sent
    as the next part. :meth:`close` sends the rest and commits the object.
    A single instance must only be written from one thread.
    """

    def __init__(
        self,
        transport: ObsTransport,
        path: URI,
        max_buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        super().__init__()
        self._upload_id: str | None = None
        if max_buffer_size <= 0:
            raise UsageError("max_buffer_size must be greater than zero")
        self._transport = transport
        self._path = path
        self._max_buffer_size = max_buffer_size
        self._buffer = bytearray()
        self._parts: list[CompletedPart] = []
        self._bytes_written = 0
        self._bytes_uploaded = 0
        self._aborted = False
        self._upload_id = transport.initiate_multipart_upload(path.bucket, path.transport_key)
        LOGGER.debug("Opened write stream for %s (upload %s)", path, self._upload_id)

    @property
    def path(self) -> URI:
        return self._path

    @property
    def upload_id(self) -> str:
        return self._upload_id

    @property
    def parts(self) -> tuple[CompletedPart, ...]:
        return tuple(self._parts)

    @property
    def max_buffer_size(self) -> int:
        return self._max_buffer_size

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def bytes_uploaded(self) -> int:
        return self._bytes_uploaded

    @property
    def aborted(self) -> bool:
        return self._aborted

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        self._checkClosed()
        view = memoryview(data).cast("B")
        self._buffer += view
        self._bytes_written += len(view)
        if len(self._buffer) >= self._max_buffer_size:
            self._upload_buffer()
        return len(view)

    def tell(self) -> int:
        self._checkClosed()
        return self._bytes_written

    def readinto(self, buffer) -> int:
        raise UsageError(f"write stream for {self._path} cannot be used for read")

    def _upload_buffer(self) -> None:
        part_number = len(self._parts) + 1
        etag = self._transport.upload_part(
            self._path.bucket,
            self._path.transport_key,
            self._upload_id,
            part_number,
            bytes(self._buffer),
        )
        if not etag:
            raise IntegrityError(
                f"upload part {part_number}",
                bucket=self._path.bucket,
                key=self._path.transport_key,
                message="store returned an empty ETag",
            )
        self._parts.append(CompletedPart(part_number=part_number, etag=etag))
        self._bytes_uploaded += len(self._buffer)
        self._buffer.clear()

    def abort(self) -> None:
        """Discard the upload; nothing is committed."""

        if self.closed or self._upload_id is None:
            return
        self._aborted = True
        try:
            self._buffer.clear()
            self._transport.abort_multipart_upload(
                self._path.bucket, self._path.transport_key, self._upload_id
            )
        finally:
            super().close()

    def _discard_upload(self) -> None:
        self._aborted = True
        self._buffer.clear()
        try:
            self._transport.abort_multipart_upload(
                self._path.bucket, self._path.transport_key, self._upload_id
            )
        except TransportError:
            LOGGER.warning("Cannot abort upload of %s", self._path, exc_info=True)

    def close(self) -> None:
        if self.closed:
            return
        if self._upload_id is None:
            # Construction failed before the session was opened.
            super().close()
            return
        try:
            if self._buffer or not self._parts:
                # An empty object still needs one (empty) part to complete.
                self._upload_buffer()
            self._transport.complete_multipart_upload(
                self._path.bucket, self._path.transport_key, self._upload_id, self._parts
            )
            LOGGER.debug(
                "Committed %s: %d byte(s) in %d part(s)",
                self._path,
                self._bytes_uploaded,
                len(self._parts),
            )
        except Exception:
            self._discard_upload()
            raise
        finally:
            super().close()

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None and not self.closed:
            LOGGER.warning("Aborting upload of %s after %s", self._path, exc_type.__name__)
            self.abort()
            return None
        return super().__exit__(exc_type, exc_value, traceback)
