"""
synvm — Operand Address Resolution

Source operands go through resolve(): literals come back unchanged,
register references come back as the register's current value.
Destination operands go through destination_register() and must name a
register.
"""

from ..words import check_word, is_register, register_index


class AddressResolver:

    def __init__(self, registers):
        self.registers = registers

    def resolve(self, raw: int) -> int:
        """Value of a source operand word. Side-effect free."""
        check_word(raw)
        if is_register(raw):
            return self.registers[register_index(raw)]
        return raw

    def destination_register(self, raw: int) -> int:
        """Register index named by a destination operand word."""
        return register_index(raw)
