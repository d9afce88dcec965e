"""
synvm — Console I/O Channel

Sits between the in/out opcodes and a terminal transport.

Output: every out writes one byte straight through.

Input: line buffered. When the buffer is empty, in blocks on the
terminal for a whole line, encodes it, appends a newline byte (10) and
then hands back one byte per call. Before a new line is buffered it is
offered to the interceptor (the snapshot manager); an intercepted line
never reaches the program and the in instruction is retried.
"""

from collections import deque
from typing import Callable, Optional

from ..words import NEWLINE


class InputClosed(Exception):
    """Terminal has no more input lines."""


class CommandIntercepted(Exception):
    """Input line was consumed by the interceptor."""

    def __init__(self, line: str):
        super().__init__(line)
        self.line = line


class IOChannel:

    def __init__(self, terminal, encoding: str = 'latin-1',
                 interceptor: Optional[Callable[[str], bool]] = None):
        self.terminal = terminal
        self.encoding = encoding
        self.interceptor = interceptor
        self._pending: deque = deque()
        self.bytes_out = 0

    def read_char(self) -> int:
        """Next input byte, refilling from the terminal when empty."""
        if not self._pending:
            line = self.terminal.read_line()
            if line is None:
                raise InputClosed()
            if self.interceptor is not None and self.interceptor(line):
                raise CommandIntercepted(line)
            self._pending.extend(line.encode(self.encoding, errors='replace'))
            self._pending.append(NEWLINE)
        return self._pending.popleft()

    def write_char(self, value: int):
        self.terminal.write(value & 0xFF)
        self.bytes_out += 1

    def flush(self):
        self.terminal.flush()

    @property
    def pending(self) -> bytes:
        """Buffered input bytes not yet consumed."""
        return bytes(self._pending)

    def reset(self):
        self._pending.clear()
        self.bytes_out = 0
