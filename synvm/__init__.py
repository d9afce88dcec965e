"""
synvm — 16-bit Word Virtual Machine
===================================
Runs fixed-width bytecode images against a 64K-word unified memory, eight
15-bit registers and an unbounded value stack, with a line-buffered
console and save/load snapshots.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌────────────────┐    ┌──────────┐
    │  Image   │───>│  Loader  │───>│ VirtualMachine │<──>│ Terminal │
    │  (.bin)  │    │ (words)  │    │ fetch/exec loop│    │ (console)│
    └──────────┘    └──────────┘    └────────────────┘    └──────────┘

    - loader.py:         little-endian u16 image -> word list
    - emu.py:            fetch / decode / execute, StopReason
    - cpu/:              registers, stack, opcode table, operand resolution
    - mem/memory.py:     self-modifiable word memory
    - periph/:           IOChannel + terminal transports (stdio, serial, scripted)
    - snapshot.py:       save / load console commands

Machine words above 32767 are code or data only. Reading one into a
register with rmem is a fatal InvalidOperand, since registers hold
15-bit values.
"""

__version__ = "0.1.0"

from .errors import (VMError, StackUnderflow, DivideByZero, InvalidOperand,
                     NoSnapshot, ImageError, ConfigError)
from .emu import VirtualMachine, StopReason
from .loader import load_image, words_from_bytes
from .periph.terminal import StreamTerminal, SerialTerminal, ScriptedTerminal
from .snapshot import Snapshot, SnapshotManager
from .config import RunConfig


def run_program(program, input_lines=(), *, max_steps=None,
                encoding: str = 'latin-1') -> tuple:
    """Run a word list (or image bytes) against scripted input.

    Returns:
        (StopReason, output bytes, VirtualMachine)
    """
    if isinstance(program, (bytes, bytearray)):
        program = words_from_bytes(bytes(program))
    terminal = ScriptedTerminal(input_lines)
    vm = VirtualMachine(program, terminal, encoding=encoding)
    reason = vm.run(max_steps=max_steps)
    return reason, bytes(terminal.output), vm
