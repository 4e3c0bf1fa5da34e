"""
Chunk reader — turns one slice into the complete records it owns.

A slice is read in two steps: the primary byte range, then (if the range
stops mid-record) a short margin read past its end to finish the last
record. The first field of every slice but the first is dropped, since
the previous slice's margin already delivered it.
"""

# hdfsslice/reader.py

import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from errors import HDFSError, ReadFailure
from slicer import RangeDescriptor

log = logging.getLogger('hdfsslice')

# Margin length, in average-sized records of the primary data
MARGIN_RECORDS = 2


@dataclass
class ReadWindow:
    offset: int
    length: int


@dataclass
class ReadContext:
    """Working state for reading a single slice."""

    path: str
    delimiter: bytes
    options: Optional[ReadWindow] = None  # None reads the whole file
    logical_offset: int = 0
    data: bytes = b''
    need_margin: bool = False
    margin_options: Optional[ReadWindow] = None


def average_record_size(data: bytes, delimiter: bytes) -> int:
    fields = data.split(delimiter)
    return sum(len(field) for field in fields) // len(fields)


def get_read_options(descriptor: RangeDescriptor, delimiter: bytes = b'\n') -> ReadContext:
    """Set up the context for a slice, before anything has been read."""
    context = ReadContext(path=descriptor.path, delimiter=delimiter,
                          logical_offset=descriptor.logical_offset)
    if not descriptor.is_full_file:
        context.options = ReadWindow(descriptor.offset, descriptor.length)
        # A slice that stops short of the end of the file may end mid-record
        context.need_margin = not descriptor.reaches_end
    return context


def check_margin(context: ReadContext) -> ReadContext:
    """Decide whether a margin read is needed and where it goes."""
    if context.data[-1:] == context.delimiter:
        context.need_margin = False

    if context.need_margin:
        avg_size = average_record_size(context.data, context.delimiter)
        context.margin_options = ReadWindow(
            offset=context.options.offset + context.options.length,
            length=avg_size * MARGIN_RECORDS,
        )
    return context


def merge_margin(context: ReadContext, margin: bytes) -> ReadContext:
    """Append the part of the margin up to its first delimiter."""
    head, found, _ = margin.partition(context.delimiter)
    if not found and len(margin) >= context.margin_options.length:
        log.warning(
            f"Margin read of {context.margin_options.length} bytes at offset "
            f"{context.margin_options.offset} in {context.path} holds no delimiter; "
            f"the last record of this slice is truncated"
        )
    context.data = context.data + head
    return context


def clean_data(context: ReadContext) -> List[bytes]:
    """
    Split the data into records.

    Slices with a non-zero offset carry the byte before their logical
    start, so the first field is either empty (the slice starts on a
    record boundary) or the tail of a record the previous slice owns.
    Either way it is dropped.
    """
    data = context.data
    if not data:
        return []
    # A trailing delimiter would only produce an empty record
    if data[-1:] == context.delimiter:
        data = data[:-1]

    records = data.split(context.delimiter)
    if context.logical_offset == 0:
        return records
    return records[1:]


class ChunkReader:
    def __init__(self, backend, delimiter: bytes = b'\n'):
        if len(delimiter) != 1:
            raise ValueError(f"delimiter must be a single byte, got {delimiter!r}")
        self.backend = backend
        self.delimiter = delimiter

    def _open(self, path: str, window: Optional[ReadWindow]) -> bytes:
        offset = window.offset if window else None
        length = window.length if window else None
        try:
            return self.backend.open(path, offset=offset, length=length)
        except HDFSError as e:
            log.error(f"Error while reading from hdfs, error: {e}")
            raise ReadFailure(path, offset, length, e) from e

    def read(self, descriptor: RangeDescriptor) -> List[bytes]:
        """Return the ordered records owned by one slice."""
        context = get_read_options(descriptor, self.delimiter)
        context.data = self._open(context.path, context.options)
        check_margin(context)

        if context.need_margin:
            if context.margin_options.length > 0:
                margin = self._open(context.path, context.margin_options)
            else:
                margin = b''
            merge_margin(context, margin)

        records = clean_data(context)
        log.debug(f"  Read {len(records)} records from {descriptor.path} "
                  f"[{descriptor.offset}, {descriptor.offset + descriptor.length})")
        return records


class ParallelReader:
    """
    Reads many slices concurrently; results come back in slice order.

    At most ``window`` slices are submitted ahead of the one being
    yielded, so memory stays bounded however many slices there are.
    """

    def __init__(self, chunk_reader: ChunkReader, max_workers: int = 4,
                 window: Optional[int] = None):
        self.chunk_reader = chunk_reader
        self.max_workers = max_workers
        self.window = window or max_workers * 2

    def iter_ranges(
        self,
        descriptors: Iterable[RangeDescriptor],
        formatter: Optional[Callable[[List[bytes]], List[Any]]] = None,
    ) -> Iterator[Tuple[RangeDescriptor, List[Any]]]:
        """
        Read slices in parallel, yielding each one as soon as every slice
        before it is done.

        Args:
            descriptors: Slices to read, consumed lazily
            formatter: Optional parser applied to each slice's records

        Yields:
            (descriptor, records) tuples in the order given

        Raises:
            ReadFailure from the first slice (in order) that failed
        """
        pending = deque()

        def finish():
            descriptor, future = pending.popleft()
            records = future.result()
            return descriptor, formatter(records) if formatter else records

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            try:
                for descriptor in descriptors:
                    pending.append((descriptor, executor.submit(self.chunk_reader.read, descriptor)))
                    if len(pending) >= self.window:
                        yield finish()
                while pending:
                    yield finish()
            finally:
                for _, future in pending:
                    future.cancel()

    def read_ranges(
        self,
        descriptors: Iterable[RangeDescriptor],
        formatter: Optional[Callable[[List[bytes]], List[Any]]] = None,
    ) -> List[Tuple[RangeDescriptor, List[Any]]]:
        """Read every slice and return all results as one ordered list."""
        return list(self.iter_ranges(descriptors, formatter))
