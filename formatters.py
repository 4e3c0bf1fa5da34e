"""
Record formatters — turn raw record bytes into objects and back.

The set of formats is closed: every supported format is a RecordFormat
member with an entry in the lookup tables below, so an unsupported
name fails when the config is validated rather than mid-read.
"""

# hdfsslice/formatters.py

import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List

log = logging.getLogger("hdfsslice")


class RecordFormat(Enum):
    """Supported record formats."""

    JSON_LINES = "json_lines"
    RAW = "raw"

    @classmethod
    def names(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def from_name(cls, name: str) -> "RecordFormat":
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Unsupported format '{name}', expected one of {cls.names()}"
            ) from None


def _parse_json_lines(records: List[bytes]) -> List[Any]:
    parsed = []
    for record in records:
        if not record.strip():
            continue
        try:
            parsed.append(json.loads(record))
        except ValueError as e:
            log.error(f"There was an error processing the record: {e}")
    return parsed


def _parse_raw(records: List[bytes]) -> List[str]:
    return [record.decode("utf-8", errors="replace") for record in records]


def _serialize_json_lines(record: Any) -> str:
    return json.dumps(record)


def _serialize_raw(record: Any) -> str:
    if isinstance(record, bytes):
        return record.decode("utf-8")
    return str(record)


_PARSERS: Dict[RecordFormat, Callable[[List[bytes]], List[Any]]] = {
    RecordFormat.JSON_LINES: _parse_json_lines,
    RecordFormat.RAW: _parse_raw,
}

_SERIALIZERS: Dict[RecordFormat, Callable[[Any], str]] = {
    RecordFormat.JSON_LINES: _serialize_json_lines,
    RecordFormat.RAW: _serialize_raw,
}


def get_formatter(name: str) -> Callable[[List[bytes]], List[Any]]:
    """Return the parser for a format name."""
    return _PARSERS[RecordFormat.from_name(name)]


def get_serializer(name: str) -> Callable[[Any], str]:
    """Return the single-record serializer for a format name."""
    return _SERIALIZERS[RecordFormat.from_name(name)]

