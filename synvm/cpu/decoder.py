"""
synvm — Opcode Table / Instruction Decoder

Maps the selector word at ip to (opcode, arity). Every instruction is the
selector followed by exactly `arity` operand words; there are no
prefixes or variable-length encodings.

  sel  name  operands      sel  name  operands
  ---  ----  --------      ---  ----  --------
   0   halt  -              11  mod   a b c
   1   set   a b            12  and   a b c
   2   push  a              13  or    a b c
   3   pop   a              14  not   a b
   4   eq    a b c          15  rmem  a b
   5   gt    a b c          16  wmem  a b
   6   jmp   a              17  call  a
   7   jt    a b            18  ret   -
   8   jf    a b            19  out   a
   9   add   a b c          20  in    a
  10   mult  a b c          21  noop  -

A selector with no entry decodes to opcode None with arity 0; the engine
treats it as a one-word no-op.
"""

from enum import IntEnum
from typing import NamedTuple, Optional, Tuple


class Opcode(IntEnum):
    HALT = 0
    SET = 1
    PUSH = 2
    POP = 3
    EQ = 4
    GT = 5
    JMP = 6
    JT = 7
    JF = 8
    ADD = 9
    MULT = 10
    MOD = 11
    AND = 12
    OR = 13
    NOT = 14
    RMEM = 15
    WMEM = 16
    CALL = 17
    RET = 18
    OUT = 19
    IN = 20
    NOOP = 21

    @property
    def mnemonic(self) -> str:
        return self.name.lower()

    @property
    def arity(self) -> int:
        return ARITY[self]


# Format: opcode -> operand word count
ARITY = {
    Opcode.HALT: 0,
    Opcode.SET:  2,
    Opcode.PUSH: 1,
    Opcode.POP:  1,
    Opcode.EQ:   3,
    Opcode.GT:   3,
    Opcode.JMP:  1,
    Opcode.JT:   2,
    Opcode.JF:   2,
    Opcode.ADD:  3,
    Opcode.MULT: 3,
    Opcode.MOD:  3,
    Opcode.AND:  3,
    Opcode.OR:   3,
    Opcode.NOT:  2,
    Opcode.RMEM: 2,
    Opcode.WMEM: 2,
    Opcode.CALL: 1,
    Opcode.RET:  0,
    Opcode.OUT:  1,
    Opcode.IN:   1,
    Opcode.NOOP: 0,
}


def check_arity_table(table) -> None:
    missing = set(Opcode) - set(table)
    extra = set(table) - set(Opcode)
    if missing or extra:
        raise NotImplementedError(
            f"arity table out of sync with Opcode (missing {sorted(missing)}, extra {sorted(extra)})")


check_arity_table(ARITY)

_BY_SELECTOR = {int(op): op for op in Opcode}


class Instruction(NamedTuple):
    address: int
    selector: int
    opcode: Optional[Opcode]
    operands: Tuple[int, ...]

    @property
    def size(self) -> int:
        return 1 + len(self.operands)

    @property
    def mnemonic(self) -> str:
        if self.opcode is None:
            return f"?{self.selector}"
        return self.opcode.mnemonic


def lookup(selector: int) -> Optional[Opcode]:
    """Opcode for a selector word, or None if undefined."""
    return _BY_SELECTOR.get(selector)


def decode_instruction(memory, ip: int) -> Instruction:
    """Fetch and decode the instruction at ip from live memory.

    Operand words are returned raw; resolving them is the caller's job.
    """
    selector = memory.read(ip)
    opcode = lookup(selector)
    if opcode is None:
        return Instruction(ip, selector, None, ())
    arity = ARITY[opcode]
    operands = tuple(memory.read_words(ip + 1, arity)) if arity else ()
    if len(operands) != arity:
        # Instruction straddles the top of memory; missing words read as zero.
        operands = operands + (0,) * (arity - len(operands))
    return Instruction(ip, selector, opcode, operands)
