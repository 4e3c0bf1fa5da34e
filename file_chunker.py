"""
File chunker — groups outgoing records into payloads and picks the file
each payload is appended to.
"""

# hdfsslice/file_chunker.py

import logging
import posixpath
import socket
from datetime import datetime, timezone
from typing import Iterable, List

from formatters import get_serializer

log = logging.getLogger('hdfsslice')

SINGLE_BUCKET = '__single__'

# Length of the ISO date prefix kept for each timeseries interval
DATE_PREFIX = {
    'daily': 10,
    'monthly': 7,
    'yearly': 4,
}


def formatted_date(record: dict, interval: str, date_field: str) -> str:
    """Bucket name for a record, e.g. '2037.02.27' for a daily series."""
    value = record[date_field]
    if isinstance(value, (int, float)):
        # Epoch milliseconds
        date = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        date = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        if date.tzinfo is not None:
            date = date.astimezone(timezone.utc)
    end = DATE_PREFIX.get(interval, 10)
    return date.date().isoformat()[:end].replace('-', '.')


class FileChunker:
    def __init__(self, config, node_name: str = None):
        self.config = config
        self.node_name = node_name or socket.gethostname()
        self.serialize = get_serializer(config.format)

    def get_filename(self, bucket: str) -> str:
        directory = self.config.directory
        if bucket and bucket != SINGLE_BUCKET:
            directory = f"{directory.rstrip('/')}-{bucket}"
        # One file per node unless a filename is configured
        return posixpath.join(directory, self.config.filename or self.node_name)

    def _payload(self, bucket: List[str]) -> str:
        return '\n'.join(bucket) + '\n'

    def chunk(self, records: Iterable[dict]) -> List[dict]:
        """
        Group records into payloads of at most chunk_size records.

        Returns a list of {'filename': ..., 'data': ...} dicts; one file may
        receive several payloads.
        """
        buckets = {}
        chunks = []

        for record in records:
            bucket_name = SINGLE_BUCKET
            if self.config.timeseries:
                bucket_name = formatted_date(record, self.config.timeseries,
                                             self.config.date_field)

            bucket = buckets.setdefault(bucket_name, [])
            bucket.append(self.serialize(record))

            if len(bucket) >= self.config.chunk_size:
                chunks.append({
                    'filename': self.get_filename(bucket_name),
                    'data': self._payload(bucket),
                })
                buckets[bucket_name] = []

        # Handle any lingering records
        for bucket_name, bucket in buckets.items():
            if bucket:
                chunks.append({
                    'filename': self.get_filename(bucket_name),
                    'data': self._payload(bucket),
                })

        log.debug(f"  Grouped records into {len(chunks)} payloads")
        return chunks
