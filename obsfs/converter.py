from __future__ import annotations
"""Push model checkpoint parts into tab-separated text, one thread per part.

A checkpoint part is a sequence of records::

    key      uint64
    size     int32
    size == 1:  w slot (8 bytes, float32 in the first 4), sqc_grad slot (8 bytes)
    otherwise:  w float32[size], sqc_grad float32[size + 1]

All integers and floats are little-endian. Each record becomes one line
``key<TAB>w[0]<TAB>...<TAB>w[size-1]``; the accumulated gradient is dropped.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import io
import logging
import struct
import threading
from typing import BinaryIO, Optional, Union

from .errors import RecordFormatError
from .filesystem import PathLike, StreamFactory
from .uri import URI

LOGGER = logging.getLogger(__name__)

KEY_FORMAT = struct.Struct("<Q")
SIZE_FORMAT = struct.Struct("<i")
SCALAR_SLOT = struct.Struct("<f4x")
FLOAT32 = struct.Struct("<f")
FLOAT_SIZE = 4
READ_BUFFER_SIZE = 4 * 1024 * 1024
LOG_EVERY = 500


@dataclass(frozen=True)
class ScalarEntry:
    value: float

    @property
    def values(self) -> tuple[float, ...]:
        return (self.value,)


@dataclass(frozen=True)
class VectorEntry:
    values: tuple[float, ...]


Entry = Union[ScalarEntry, VectorEntry]


def read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, stopping early only at end of stream."""

    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _read_field(stream: BinaryIO, size: int, what: str) -> bytes:
    data = read_exact(stream, size)
    if len(data) != size:
        raise RecordFormatError(f"record truncated in {what}: wanted {size} bytes, got {len(data)}")
    return data


def read_entry(stream: BinaryIO) -> Entry:
    (size,) = SIZE_FORMAT.unpack(_read_field(stream, SIZE_FORMAT.size, "size"))
    if size < 0:
        raise RecordFormatError(f"negative entry size {size}")
    if size == 1:
        (value,) = SCALAR_SLOT.unpack(_read_field(stream, SCALAR_SLOT.size, "w"))
        _read_field(stream, SCALAR_SLOT.size, "sqc_grad")
        return ScalarEntry(value)
    values = struct.unpack(f"<{size}f", _read_field(stream, FLOAT_SIZE * size, "w"))
    _read_field(stream, FLOAT_SIZE * (size + 1), "sqc_grad")
    return VectorEntry(values)


def read_record(stream: BinaryIO) -> Optional[tuple[int, Entry]]:
    """Return the next ``(key, entry)``, or ``None`` once the keys run out.

    Raises:
        RecordFormatError: when the stream ends inside a record's payload.
    """

    raw_key = read_exact(stream, KEY_FORMAT.size)
    if len(raw_key) != KEY_FORMAT.size:
        return None
    (key,) = KEY_FORMAT.unpack(raw_key)
    return key, read_entry(stream)


def reverse_bytes(key: int) -> int:
    return int.from_bytes(key.to_bytes(KEY_FORMAT.size, "little"), "big")


def format_float(value: float) -> str:
    """Shortest ``%g`` rendering that reads back as the same float32."""

    for digits in range(6, 9):
        text = "%.*g" % (digits, value)
        if FLOAT32.unpack(FLOAT32.pack(float(text)))[0] == value:
            return text
    return "%.9g" % value


def format_record(key: int, entry: Entry) -> str:
    fields = [str(key)]
    fields.extend(format_float(value) for value in entry.values)
    return "\t".join(fields) + "\n"


def output_path_for(source: URI, output_dir: str) -> str:
    return f"{output_dir.rstrip('/')}/{source.basename}"


def _open_source(factory: StreamFactory, source: PathLike):
    stream = factory.open(source, "r")
    if isinstance(stream, io.RawIOBase):
        # One range request per raw read; batch them.
        return io.BufferedReader(stream, buffer_size=READ_BUFFER_SIZE)
    return stream


def push_file(
    factory: StreamFactory,
    source: PathLike,
    destination: PathLike,
    *,
    need_inverse: bool = False,
    worker_no: int = 0,
) -> int:
    """Convert one checkpoint part and return the number of records."""

    count = 0
    with _open_source(factory, source) as reader, factory.open(destination, "w") as writer:
        while True:
            record = read_record(reader)
            if record is None:
                break
            key, entry = record
            if need_inverse:
                key = reverse_bytes(key)
            writer.write(format_record(key, entry).encode("ascii"))
            count += 1
            if count % LOG_EVERY == 0:
                LOGGER.info("worker %d already pushed %d kv pairs", worker_no, count)
    LOGGER.info("worker %d total pushed %d kv pairs", worker_no, count)
    return count


@dataclass
class PushResult:
    source: str
    destination: str
    records: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PushReport:
    results: list[PushResult] = field(default_factory=list)

    @property
    def failures(self) -> list[PushResult]:
        return [result for result in self.results if not result.ok]

    @property
    def total_records(self) -> int:
        return sum(result.records for result in self.results)

    @property
    def ok(self) -> bool:
        return bool(self.results) and not self.failures


def _run_worker(
    factory: StreamFactory,
    worker_no: int,
    source: URI,
    destination: str,
    need_inverse: bool,
) -> PushResult:
    result = PushResult(source=str(source), destination=destination)
    LOGGER.debug("worker %d pushing %s -> %s", worker_no, source, destination)
    try:
        result.records = push_file(
            factory, source, destination, need_inverse=need_inverse, worker_no=worker_no
        )
    except Exception as exc:
        LOGGER.exception("worker %d failed pushing %s", worker_no, source)
        result.error = str(exc)
    return result


def run_push(
    pattern: PathLike,
    output_dir: str,
    *,
    need_inverse: bool = False,
    factory: StreamFactory | None = None,
    max_workers: int | None = None,
) -> PushReport:
    """Push every file matching ``pattern`` into ``output_dir``.

    One thread per matched file is started and joined, unless
    ``max_workers`` bounds the pool. Workers share no state; a failing
    worker is recorded in the report and does not stop the others.
    """

    factory = factory or StreamFactory()
    # Resolve the destination up front so configuration errors surface here.
    factory.filesystem_for(output_dir)
    sources = factory.match_files(pattern)
    if not sources:
        return PushReport()

    jobs = [(index, source, output_path_for(source, output_dir)) for index, source in enumerate(sources)]
    results: list[Optional[PushResult]] = [None] * len(jobs)

    def work(job: tuple[int, URI, str]) -> None:
        index, source, destination = job
        results[index] = _run_worker(factory, index, source, destination, need_inverse)

    if max_workers is None:
        threads = [threading.Thread(target=work, args=(job,), name=f"push-{job[0]}") for job in jobs]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
    else:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="push") as pool:
            list(pool.map(work, jobs))

    return PushReport(results=[result for result in results if result is not None])
