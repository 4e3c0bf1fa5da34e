"""
Slicing — splits files into byte ranges that can be read independently
without losing records that straddle a range boundary.
"""

# hdfsslice/slicer.py

import logging
import queue
from collections import deque
from dataclasses import asdict, dataclass
from typing import Generator, Iterator, Optional

from errors import HDFSError, ReadFailure

log = logging.getLogger('hdfsslice')


@dataclass(frozen=True)
class FileDescriptor:
    path: str
    length: int


@dataclass(frozen=True)
class RangeDescriptor:
    """
    One slice of a file.

    Every slice after the first starts one byte early so the reader can
    tell whether its logical start falls on a record boundary.
    """

    path: str
    offset: int
    length: int
    total_length: int
    is_full_file: bool = False
    logical_offset: int = 0

    @property
    def reaches_end(self) -> bool:
        return self.offset + self.length == self.total_length

    def to_dict(self) -> dict:
        return asdict(self)


class RangePlanner:
    def __init__(self, chunk_size: int):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be greater than zero, got {chunk_size}")
        self.chunk_size = chunk_size

    def plan(self, file: FileDescriptor) -> Generator[RangeDescriptor, None, None]:
        """
        Yield the slices of one file in order.

        A file no bigger than the chunk size is a single full-file slice.
        Otherwise the file is walked in chunk_size strides; every stride
        after the first has offset = logical offset - 1 and
        length = stride length + 1.
        """
        if file.length <= self.chunk_size:
            yield RangeDescriptor(file.path, 0, file.length, file.length, is_full_file=True)
            return

        offset = 0
        while offset < file.length:
            length = min(self.chunk_size, file.length - offset)
            if offset == 0:
                yield RangeDescriptor(file.path, 0, length, file.length)
            else:
                yield RangeDescriptor(file.path, offset - 1, length + 1, file.length,
                                      logical_offset=offset)
            offset += length

    def get_range_count(self, file_size: int) -> int:
        """Calculate number of slices for a given file size."""
        if file_size <= self.chunk_size:
            return 1
        return (file_size + self.chunk_size - 1) // self.chunk_size


class DirectoryWalker:
    """Enumerates every file under a root path and plans its slices."""

    def __init__(self, backend, planner: RangePlanner):
        self.backend = backend
        self.planner = planner

    def iter_files(self, root: str) -> Iterator[FileDescriptor]:
        pending = deque([root])
        while pending:
            path = pending.popleft()
            try:
                entries = self.backend.list_status(path)
            except HDFSError as e:
                log.error(f"Error while listing {path}: {e}")
                raise ReadFailure(path, None, None, e) from e

            for entry in entries:
                if entry.is_file:
                    yield FileDescriptor(entry.path, entry.length)
                elif entry.is_dir:
                    pending.append(entry.path)

    def iter_ranges(self, root: str) -> Iterator[RangeDescriptor]:
        for file in self.iter_files(root):
            log.debug(f"  Planning {file.path} ({file.length} bytes)")
            yield from self.planner.plan(file)

    def fill(self, root: str, work_queue: Optional[queue.Queue] = None) -> queue.Queue:
        """Put every slice under ``root`` on a FIFO queue and return it."""
        if work_queue is None:
            work_queue = queue.Queue()
        count = 0
        for descriptor in self.iter_ranges(root):
            work_queue.put(descriptor)
            count += 1
        log.info(f"Planned {count} slices under {root}")
        return work_queue


def drain(work_queue: queue.Queue) -> Iterator[RangeDescriptor]:
    """Pull slices off a queue until it is empty."""
    while True:
        try:
            yield work_queue.get_nowait()
        except queue.Empty:
            return
