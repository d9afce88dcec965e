"""
synvm — Unified 64K-Word Memory

Code and data share one flat array of 16-bit words. Programs may rewrite
their own instructions with wmem, so the engine reads the current cell
at every fetch; nothing here caches decoded instructions.

Address map:
  $0000 – image end   program image, loaded verbatim at power-on
  image end – $FFFF   zero-filled (a zero word decodes as halt)

In practice operands resolve to at most 32767, so the upper half is only
reachable by images that are larger than 32K words.
"""

from array import array
from typing import Iterable, List

from ..words import MEMORY_WORDS, WORD_MASK
from ..errors import InvalidOperand


class Memory:
    """64K word-addressable memory."""

    def __init__(self):
        self._mem = array('H', bytes(2 * MEMORY_WORDS))

    # --- Core read/write ---

    def read(self, addr: int) -> int:
        return self._mem[self._check_addr(addr)]

    def write(self, addr: int, value: int):
        if not 0 <= value <= WORD_MASK:
            raise InvalidOperand(f"memory value {value} outside [0, {WORD_MASK}]")
        self._mem[self._check_addr(addr)] = value

    def read_words(self, addr: int, count: int) -> List[int]:
        """Read count consecutive words, stopping at the top of memory.

        addr may equal the memory size, which yields an empty list.
        """
        if not 0 <= addr <= MEMORY_WORDS:
            raise InvalidOperand(f"address {addr} outside [0, {MEMORY_WORDS}]")
        return self._mem[addr:addr + count].tolist()

    @staticmethod
    def _check_addr(addr: int) -> int:
        if not 0 <= addr < MEMORY_WORDS:
            raise InvalidOperand(f"address {addr} outside [0, {MEMORY_WORDS - 1}]")
        return addr

    def __len__(self) -> int:
        return MEMORY_WORDS

    # --- Bulk load ---

    def load_words(self, words: Iterable[int], base_addr: int = 0) -> int:
        """Copy a program image into memory at base_addr. Returns word count."""
        data = array('H')
        try:
            data.extend(words)
        except OverflowError as e:
            raise InvalidOperand(f"image word outside [0, {WORD_MASK}]") from e
        self._check_addr(base_addr)
        if base_addr + len(data) > MEMORY_WORDS:
            raise InvalidOperand(
                f"{len(data)} words at {base_addr} overrun {MEMORY_WORDS}-word memory")
        self._mem[base_addr:base_addr + len(data)] = data
        return len(data)

    # --- Snapshots ---

    def copy(self) -> 'Memory':
        """Fully detached clone."""
        clone = Memory.__new__(Memory)
        clone._mem = array('H', self._mem)
        return clone

    def restore(self, other: 'Memory'):
        """Overwrite every cell from another Memory, keeping other detached."""
        self._mem = array('H', other._mem)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Memory):
            return NotImplemented
        return self._mem == other._mem

    # --- Dump ---

    def dump(self, start: int, length: int = 32) -> str:
        """Word listing, eight words per line, for diagnostics."""
        lines = []
        end = min(start + length, MEMORY_WORDS)
        for addr in range(start, end, 8):
            row = self._mem[addr:min(addr + 8, end)]
            lines.append(f"{addr:05d}  " + ' '.join(f"{w:05d}" for w in row))
        return '\n'.join(lines)
