"""
Local backend — serves the StorageBackend interface from a directory on
local disk. Used for --local runs and tests.
"""

# hdfsslice/local_backend.py

import os
import logging
import posixpath
from typing import List, Optional

from backend import DIRECTORY, FILE, FileStatus, StorageBackend
from errors import FileNotFound, HDFSError

log = logging.getLogger('hdfsslice')


class LocalBackend(StorageBackend):
    def __init__(self, root: str):
        self.root = os.path.abspath(os.path.expanduser(root))
        os.makedirs(self.root, exist_ok=True)

    def _local(self, path: str) -> str:
        """Map an absolute HDFS-style path under the root directory."""
        normalized = posixpath.normpath('/' + path.lstrip('/'))
        return os.path.join(self.root, normalized.lstrip('/'))

    def _status(self, path: str, local_path: str) -> FileStatus:
        if os.path.isdir(local_path):
            return FileStatus(path=path, type=DIRECTORY, length=0)
        return FileStatus(path=path, type=FILE, length=os.path.getsize(local_path))

    def open(self, path: str, offset: Optional[int] = None,
             length: Optional[int] = None) -> bytes:
        local_path = self._local(path)
        log.debug(f"  Reading {path} offset={offset} length={length}")
        try:
            with open(local_path, 'rb') as f:
                if offset:
                    f.seek(offset)
                if length is None:
                    return f.read()
                return f.read(length)
        except FileNotFoundError as e:
            raise FileNotFound(f"File {path} does not exist.", 'FileNotFoundException') from e
        except OSError as e:
            raise HDFSError(f"Could not read {path}: {e}") from e

    def list_status(self, path: str) -> List[FileStatus]:
        local_path = self._local(path)
        if not os.path.exists(local_path):
            raise FileNotFound(f"File {path} does not exist.", 'FileNotFoundException')
        if os.path.isfile(local_path):
            return [self._status(path, local_path)]

        statuses = []
        for name in sorted(os.listdir(local_path)):
            statuses.append(self._status(posixpath.join(path, name),
                                         os.path.join(local_path, name)))
        return statuses

    def get_file_status(self, path: str) -> FileStatus:
        local_path = self._local(path)
        if not os.path.exists(local_path):
            raise FileNotFound(f"File does not exist: {path}", 'FileNotFoundException')
        return self._status(path, local_path)

    def mkdirs(self, path: str) -> bool:
        try:
            os.makedirs(self._local(path), exist_ok=True)
        except OSError as e:
            raise HDFSError(f"Could not create directory {path}: {e}") from e
        return True

    def create(self, path: str, data: bytes = b'') -> None:
        try:
            with open(self._local(path), 'xb') as f:
                f.write(data)
        except FileExistsError as e:
            raise HDFSError(f"{path} already exists", 'FileAlreadyExistsException') from e
        except OSError as e:
            raise HDFSError(f"Could not create {path}: {e}") from e

    def append(self, path: str, data: bytes) -> None:
        local_path = self._local(path)
        if not os.path.isfile(local_path):
            raise FileNotFound(f"File does not exist: {path}", 'FileNotFoundException')
        try:
            with open(local_path, 'ab') as f:
                f.write(data)
        except OSError as e:
            raise HDFSError(f"Could not append to {path}: {e}") from e
