"""
Append coordinator — writes batches of payloads to their target files.

Payloads for one file are appended strictly one at a time in the order
they were submitted, also across concurrent append() calls sharing one
coordinator. Separate files are written in parallel.
"""

# hdfsslice/appender.py

import logging
import posixpath
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from errors import (
    BatchFailure,
    CreateFailure,
    FileNotFound,
    HDFSError,
    HdfsSliceError,
    OtherAppendFailure,
    RotationEligibleAppendFailure,
)
from rotation import RotationTracker

log = logging.getLogger('hdfsslice')


@dataclass
class WriteBatch:
    filename: str
    payloads: List[bytes] = field(default_factory=list)


def _payload(data) -> bytes:
    if isinstance(data, str):
        return data.encode('utf-8')
    return bytes(data)


class AppendCoordinator:
    def __init__(self, config, backend, tracker: RotationTracker = None):
        self.config = config
        self.backend = backend
        self.tracker = tracker or RotationTracker(config.max_write_errors)
        self.markers = list(config.rotation_error_markers)
        self._file_locks: Dict[str, threading.Lock] = {}
        self._file_locks_lock = threading.Lock()

    def _file_lock(self, filename: str) -> threading.Lock:
        with self._file_locks_lock:
            if filename not in self._file_locks:
                self._file_locks[filename] = threading.Lock()
            return self._file_locks[filename]

    def group(self, records: Iterable[dict]) -> List[WriteBatch]:
        """
        Group {'filename', 'data'} records by their current target file.

        Empty payloads are dropped. Raises RotationExceeded for a file that
        has rotated too many times.
        """
        batches = OrderedDict()
        for record in records:
            data = record['data']
            if not data:
                continue
            target = self.tracker.resolve(record['filename'])
            if target not in batches:
                batches[target] = WriteBatch(target)
            batches[target].payloads.append(_payload(data))
        return list(batches.values())

    def is_rotation_error(self, error: HDFSError) -> bool:
        detail = f"{error.exception} {error.java_class} {error}"
        return any(marker in detail for marker in self.markers)

    def prepare_file(self, filename: str):
        """Make sure the file exists before appending to it."""
        try:
            self.backend.get_file_status(filename)
            return
        except FileNotFound:
            log.debug(f"  Creating {filename}")
        except HDFSError as e:
            log.debug(f"  Status check failed for {filename}, creating it: {e}")

        try:
            self.backend.mkdirs(posixpath.dirname(filename) or '/')
            self.backend.create(filename, b'')
        except HDFSError as e:
            raise CreateFailure(filename, e) from e

    def send_batch(self, batch: WriteBatch) -> str:
        """Create the file if needed and append the batch, holding the file's lock."""
        try:
            with self._file_lock(batch.filename):
                self.prepare_file(batch.filename)
                for payload in batch.payloads:
                    self.backend.append(batch.filename, payload)
        except HDFSError as e:
            data = batch.payloads if self.config.log_data_on_error else None
            if self.is_rotation_error(e):
                new_filename = self.tracker.record_failure(batch.filename)
                raise RotationEligibleAppendFailure(batch.filename, new_filename, e, data) from e
            raise OtherAppendFailure(batch.filename, e, data) from e

        log.debug(f"  Appended {len(batch.payloads)} payloads to {batch.filename}")
        return batch.filename

    def append(self, records: Iterable[dict]) -> List[str]:
        """
        Append a batch of records, one file per worker thread.

        Returns the filenames written. If any file fails the whole batch
        fails: a single failure is raised as-is, several as BatchFailure.
        Files that succeeded stay written.
        """
        batches = self.group(records)
        if not batches:
            return []

        written = []
        errors: List[HdfsSliceError] = []
        max_workers = min(self.config.workers, len(batches))

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_file = {
                executor.submit(self.send_batch, batch): batch.filename
                for batch in batches
            }
            for future in as_completed(future_to_file):
                filename = future_to_file[future]
                try:
                    written.append(future.result())
                except HdfsSliceError as e:
                    log.error(f"Error while sending to {filename}, error: {e}")
                    errors.append(e)

        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise BatchFailure(errors)
        return written
