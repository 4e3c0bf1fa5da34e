"""
Error types raised by hdfsslice readers, writers and backends.
"""

# hdfsslice/errors.py

from typing import List, Optional


class HdfsSliceError(Exception):
    """Base class for every error raised by hdfsslice."""


class ConfigError(HdfsSliceError):
    """Configuration value is missing or invalid."""


class HDFSError(HdfsSliceError):
    """
    Error reported by the filesystem backend.

    WebHDFS returns failures as a RemoteException JSON body; the parsed
    fields are kept so callers can match on them.
    """

    def __init__(self, message: str, exception: str = '', java_class: str = '',
                 status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.exception = exception
        self.java_class = java_class
        self.status = status

    def __str__(self):
        if self.exception:
            return f"{self.exception}: {self.message}"
        return self.message


class FileNotFound(HDFSError):
    """The requested path does not exist."""


class ReadFailure(HdfsSliceError):
    def __init__(self, path: str, offset: Optional[int], length: Optional[int], cause: Exception):
        self.path = path
        self.offset = offset
        self.length = length
        self.cause = cause
        where = 'whole file' if offset is None else f"offset {offset}, length {length}"
        super().__init__(f"Error while reading {path} ({where}): {cause}")


class CreateFailure(HdfsSliceError):
    def __init__(self, filename: str, cause: Exception):
        self.filename = filename
        self.cause = cause
        super().__init__(f"Error while attempting to create the file {filename}: {cause}")


class AppendFailure(HdfsSliceError):
    """Base for failures while appending a batch to one file."""

    def __init__(self, message: str, filename: str, cause: Exception,
                 data: Optional[List[bytes]] = None):
        self.filename = filename
        self.cause = cause
        self.data = data
        if data is not None:
            message = f"{message} Data: {data!r}"
        super().__init__(message)


class RotationEligibleAppendFailure(AppendFailure):
    """
    Append hit a corrupt-block / replica-relocation error.

    The tracker has already moved the file to ``new_filename``; redriving
    the same batch writes there.
    """

    def __init__(self, filename: str, new_filename: str, cause: Exception,
                 data: Optional[List[bytes]] = None):
        self.new_filename = new_filename
        super().__init__(
            f"Error sending data to file '{filename}' due to HDFS append error. "
            f"Changing destination to '{new_filename}'. Error: {cause}",
            filename, cause, data
        )


class OtherAppendFailure(AppendFailure):
    def __init__(self, filename: str, cause: Exception, data: Optional[List[bytes]] = None):
        super().__init__(f"Error sending data to file: {filename}, error: {cause}",
                         filename, cause, data)


class RotationExceeded(HdfsSliceError):
    """A logical file rotated past the configured cap. Do not retry."""

    def __init__(self, filename: str, current: str, max_rotations: int):
        self.filename = filename
        self.current = current
        self.max_rotations = max_rotations
        super().__init__(
            f"{filename} has exceeded the maximum number of write attempts "
            f"(current target {current}, limit {max_rotations})"
        )


class BatchFailure(HdfsSliceError):
    """One or more files in a write batch failed; ``errors`` holds each one."""

    def __init__(self, errors: List[HdfsSliceError]):
        self.errors = errors
        files = ', '.join(getattr(e, 'filename', '?') for e in errors)
        super().__init__(f"Error sending data to {len(errors)} file(s): {files}")
