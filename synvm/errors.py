"""
synvm — Machine Error Taxonomy

Every condition that aborts a run derives from VMError. Opcode handlers
raise the bare error; VirtualMachine.step() attaches the mnemonic and the
instruction pointer of the failing instruction before re-raising, so the
final message reads e.g.:

    pop from empty stack (op=pop at ip=01234)
"""

from typing import Optional


class VMError(Exception):
    """Base class for fatal machine errors."""

    def __init__(self, message: str, opcode: Optional[str] = None,
                 address: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.opcode = opcode
        self.address = address

    def attach(self, opcode: str, address: int) -> 'VMError':
        """Record where the error happened. First attachment wins."""
        if self.opcode is None:
            self.opcode = opcode
        if self.address is None:
            self.address = address
        return self

    def __str__(self) -> str:
        if self.opcode is None and self.address is None:
            return self.message
        where = []
        if self.opcode is not None:
            where.append(f"op={self.opcode}")
        if self.address is not None:
            where.append(f"at ip={self.address:05d}")
        return f"{self.message} ({' '.join(where)})"


class StackUnderflow(VMError):
    pass


class DivideByZero(VMError):
    pass


class InvalidOperand(VMError):
    """Raw word outside the literal/register range, or a non-register destination."""


class NoSnapshot(VMError):
    pass


class ImageError(VMError):
    """Program image cannot be turned into words."""


class ConfigError(VMError):
    pass
