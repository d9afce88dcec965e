"""
synvm — Terminal Transports

A terminal hands the machine whole lines of input and accepts single
output bytes. The IOChannel (console.py) does all character-level
buffering on top of this interface:

  read_line() -> Optional[str]   next line without its terminator,
                                 None once input is exhausted
  write(byte)                    emit one byte (0–255)
  flush()                        push written bytes to the consumer
  close()

Transports:
  StreamTerminal    text input stream + binary output stream (stdio)
  SerialTerminal    pyserial port or URL (COM3, /dev/ttyUSB0, socket://, loop://)
  ScriptedTerminal  in-memory lines in, bytearray out (tests, embedding)
"""

import logging
import sys
from collections import deque
from typing import Iterable, Optional

import serial

from ..words import NEWLINE

log = logging.getLogger(__name__)


def _strip_terminator(line: str) -> str:
    if line.endswith('\n'):
        line = line[:-1]
    if line.endswith('\r'):
        line = line[:-1]
    return line


class Terminal:
    """Base transport. Subclasses implement read_line() and write()."""

    def read_line(self) -> Optional[str]:
        raise NotImplementedError

    def write(self, byte: int):
        raise NotImplementedError

    def flush(self):
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.flush()
        self.close()


class StreamTerminal(Terminal):
    """Console on a text input stream and a binary output stream.

    Output is flushed at every newline and before blocking for input so
    prompts are visible while the machine waits.
    """

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout.buffer

    def read_line(self) -> Optional[str]:
        self.flush()
        line = self.stdin.readline()
        if line == '':
            return None
        return _strip_terminator(line)

    def write(self, byte: int):
        self.stdout.write(bytes((byte,)))
        if byte == NEWLINE:
            self.stdout.flush()

    def flush(self):
        self.stdout.flush()


class SerialTerminal(Terminal):
    """Console over a serial line.

    port may be an already-open serial.Serial (or compatible) object, or
    a device name / pyserial URL that is opened here. With timeout=None a
    read blocks until a full line arrives; with a timeout, a read that
    returns nothing is treated as end of input.
    """

    def __init__(self, port, baudrate: int = 9600, timeout: Optional[float] = None,
                 encoding: str = 'latin-1'):
        if isinstance(port, str):
            self.ser = serial.serial_for_url(port, baudrate=baudrate, timeout=timeout)
            log.info(f"Opened {port} @ {baudrate} baud")
        else:
            self.ser = port
        self.encoding = encoding

    def read_line(self) -> Optional[str]:
        self.flush()
        data = self.ser.read_until(b'\n')
        if not data:
            return None
        return _strip_terminator(data.decode(self.encoding, errors='replace'))

    def write(self, byte: int):
        self.ser.write(bytes((byte,)))

    def flush(self):
        self.ser.flush()

    def close(self):
        if self.ser.is_open:
            self.ser.close()


class ScriptedTerminal(Terminal):
    """In-memory terminal: queued input lines, captured output bytes."""

    def __init__(self, lines: Iterable[str] = ()):
        self._lines = deque(lines)
        self.output = bytearray()

    def feed(self, *lines: str):
        self._lines.extend(lines)

    def read_line(self) -> Optional[str]:
        if not self._lines:
            return None
        return self._lines.popleft()

    def write(self, byte: int):
        self.output.append(byte)

    @property
    def text(self) -> str:
        return self.output.decode('latin-1')
