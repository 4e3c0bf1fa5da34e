"""
Rotation tracking for append failures caused by corrupted replicas.

When an append fails with a block-relocation error, writes for that file
move to ``<file>.0``, then ``<file>.1`` and so on. The mapping lives in a
RotationLog owned by one writer; nothing is shared between workers.
"""

# hdfsslice/rotation.py

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict

from errors import RotationExceeded

log = logging.getLogger('hdfsslice')


@dataclass
class RotationLog:
    """Base filename -> current rotated filename, plus the session flag."""

    entries: Dict[str, str] = field(default_factory=dict)
    session_active: bool = False

    def clear(self):
        self.entries.clear()
        self.session_active = False


def rotation_index(name: str) -> int:
    """Trailing integer suffix of a rotated filename."""
    return int(name.rpartition('.')[2])


def base_name(name: str, rotation_log: RotationLog) -> str:
    """
    Strip a trailing ``.<index>`` when what remains is a tracked base.

    Filenames often end in digits of their own (``worker.lan.42``), so an
    untracked name is always its own base.
    """
    if name in rotation_log.entries:
        return name
    head, sep, tail = name.rpartition('.')
    if sep and tail.isdigit() and head in rotation_log.entries:
        return head
    return name


class RotationTracker:
    def __init__(self, max_rotations: int = 100, rotation_log: RotationLog = None):
        self.max_rotations = max_rotations
        self.log = rotation_log if rotation_log is not None else RotationLog()
        self._lock = threading.Lock()

    def resolve(self, name: str) -> str:
        """
        Return the filename writes for ``name`` should go to.

        Raises RotationExceeded once the file has rotated past max_rotations.
        """
        with self._lock:
            base = base_name(name, self.log)
            current = self.log.entries.get(base)
            if current is None:
                return name
            if rotation_index(current) > self.max_rotations:
                raise RotationExceeded(base, current, self.max_rotations)
            return current

    def record_failure(self, name: str) -> str:
        """Record a rotation-eligible failure for ``name``; return the new target."""
        with self._lock:
            base = base_name(name, self.log)

            if not self.log.session_active:
                new_name = self._start(name)
            elif base not in self.log.entries:
                # Writer moved on to another file; drop the old chains
                log.debug(f"  Clearing rotation log ({len(self.log.entries)} entries)")
                self.log.clear()
                new_name = self._start(name)
            else:
                new_name = f"{base}.{rotation_index(self.log.entries[base]) + 1}"
                self.log.entries[base] = new_name

            log.warning(f"Rotating writes for {base} to {new_name}")
            return new_name

    def _start(self, name: str) -> str:
        new_name = f"{name}.0"
        self.log.entries[name] = new_name
        self.log.session_active = True
        return new_name

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self.log.entries)
