"""
synvm — Save / Load Snapshots

Two console commands are handled by the machine itself instead of the
running program. They are recognised when a fresh input line starts,
case-insensitively, with:

  save   copy (Memory, ip, RegisterBank) into the snapshot slot
  load   overwrite the live (Memory, ip, RegisterBank) from the slot

The stack and any half-consumed input line are not part of a snapshot.
The slot is empty until the first save and holds exactly one snapshot
afterwards; each save replaces it. It belongs to one machine instance.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import NoSnapshot
from .mem.memory import Memory

log = logging.getLogger(__name__)

SAVE_COMMAND = 'save'
LOAD_COMMAND = 'load'


@dataclass(frozen=True)
class Snapshot:
    memory: Memory
    ip: int
    registers: Tuple[int, ...]


class SnapshotManager:

    def __init__(self, machine):
        self.machine = machine
        self._slot: Optional[Snapshot] = None

    @property
    def has_snapshot(self) -> bool:
        return self._slot is not None

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._slot

    def capture(self) -> Snapshot:
        m = self.machine
        self._slot = Snapshot(m.memory.copy(), m.ip, m.registers.values())
        log.info(f"Saved snapshot at ip={m.ip:05d}")
        return self._slot

    def restore(self):
        if self._slot is None:
            raise NoSnapshot("load requested before any save")
        m = self.machine
        m.memory.restore(self._slot.memory)
        m.registers.load(self._slot.registers)
        m.ip = self._slot.ip
        log.info(f"Restored snapshot, ip={m.ip:05d} (stack depth {len(m.stack)} kept)")

    def try_special_command(self, line: str) -> bool:
        """Handle save/load lines. True if the line was consumed."""
        head = line[:4].lower()
        if head == SAVE_COMMAND:
            self.capture()
            return True
        if head == LOAD_COMMAND:
            self.restore()
            return True
        return False
