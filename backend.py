"""
Storage backend interface shared by the WebHDFS and local backends.
"""

# hdfsslice/backend.py

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

FILE = 'FILE'
DIRECTORY = 'DIRECTORY'


@dataclass(frozen=True)
class FileStatus:
    """One entry of a directory listing (or a single stat)."""

    path: str
    type: str
    length: int

    @property
    def is_file(self) -> bool:
        return self.type == FILE

    @property
    def is_dir(self) -> bool:
        return self.type == DIRECTORY


class StorageBackend(ABC):
    """
    Read and write capability over a filesystem that only supports
    byte-offset reads and appends.

    Every method raises ``errors.HDFSError`` on failure, and
    ``errors.FileNotFound`` when the path does not exist.
    """

    @abstractmethod
    def open(self, path: str, offset: Optional[int] = None,
             length: Optional[int] = None) -> bytes:
        """
        Read ``length`` bytes starting at ``offset``.

        Omitting both reads the whole file. Reads past the end of the file
        return whatever bytes remain.
        """

    @abstractmethod
    def list_status(self, path: str) -> List[FileStatus]:
        """List the direct children of a directory (or the file itself)."""

    @abstractmethod
    def get_file_status(self, path: str) -> FileStatus:
        pass

    @abstractmethod
    def mkdirs(self, path: str) -> bool:
        pass

    @abstractmethod
    def create(self, path: str, data: bytes = b'') -> None:
        pass

    @abstractmethod
    def append(self, path: str, data: bytes) -> None:
        pass
