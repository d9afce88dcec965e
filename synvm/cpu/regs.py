"""
synvm — Register Bank

Eight general registers R0–R7, each holding a 15-bit value. Operand
words 32768–32775 refer to them (see words.py). All registers are zero
at power-on; only opcode handlers that name a register destination
write to them.
"""

from typing import Iterable, Tuple

from ..words import REGISTER_COUNT, VALUE_MASK
from ..errors import InvalidOperand


class RegisterBank:
    """Eight 15-bit general registers."""

    __slots__ = ('_values',)

    def __init__(self):
        self._values = [0] * REGISTER_COUNT

    def __getitem__(self, index: int) -> int:
        return self._values[self._check(index)]

    def __setitem__(self, index: int, value: int):
        if not 0 <= value <= VALUE_MASK:
            raise InvalidOperand(f"register value {value} outside [0, {VALUE_MASK}]")
        self._values[self._check(index)] = value

    def __len__(self) -> int:
        return REGISTER_COUNT

    def __iter__(self):
        return iter(self._values)

    @staticmethod
    def _check(index: int) -> int:
        if not 0 <= index < REGISTER_COUNT:
            raise InvalidOperand(f"register index {index} outside [0, {REGISTER_COUNT - 1}]")
        return index

    # --- Snapshot support ---

    def values(self) -> Tuple[int, ...]:
        """Detached copy of all register values."""
        return tuple(self._values)

    def load(self, values: Iterable[int]):
        """Overwrite all registers at once (snapshot restore)."""
        values = list(values)
        if len(values) != REGISTER_COUNT:
            raise InvalidOperand(f"expected {REGISTER_COUNT} register values, got {len(values)}")
        for index, value in enumerate(values):
            self[index] = value

    # --- Display ---

    def display(self) -> str:
        """Format register state for trace output."""
        return ' '.join(f"R{i}={v:05d}" for i, v in enumerate(self._values))

    def reset(self):
        self._values = [0] * REGISTER_COUNT
