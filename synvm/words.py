"""
synvm — Word / Address Model

Memory cells hold 16-bit words. Only the lower part of that range is
meaningful as an operand:

  0     – 32767   literal value, resolves to itself
  32768 – 32775   register reference, index = word - 32768
  32776 – 65535   invalid as an operand

Arithmetic works in the 15-bit value domain (mod 32768).
"""

from .errors import InvalidOperand

WORD_MASK = 0xFFFF
VALUE_MODULUS = 32768
VALUE_MASK = 0x7FFF

REGISTER_BASE = 32768
REGISTER_COUNT = 8
REGISTER_LIMIT = REGISTER_BASE + REGISTER_COUNT - 1   # 32775

MEMORY_WORDS = 0x10000
NEWLINE = 10


def is_literal(raw: int) -> bool:
    return 0 <= raw <= VALUE_MASK


def is_register(raw: int) -> bool:
    return REGISTER_BASE <= raw <= REGISTER_LIMIT


def check_word(raw: int) -> int:
    """Return raw unchanged if it is a valid operand word."""
    if not (is_literal(raw) or is_register(raw)):
        raise InvalidOperand(f"operand word {raw} outside [0, {REGISTER_LIMIT}]")
    return raw


def register_index(raw: int) -> int:
    """Decode a register reference to its index 0-7."""
    if not is_register(raw):
        raise InvalidOperand(f"operand word {raw} is not a register reference")
    return raw - REGISTER_BASE
