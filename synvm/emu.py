"""
synvm — Virtual Machine (fetch / decode / execute engine)

Integrates:
  - Memory (mem/memory.py)            unified code + data words
  - RegisterBank (cpu/regs.py)        R0–R7
  - Stack (cpu/stack.py)              values and return addresses
  - AddressResolver (cpu/resolver.py) literal / register operands
  - Opcode decoder (cpu/decoder.py)   selector -> opcode, arity
  - IOChannel (periph/console.py)     in / out
  - SnapshotManager (snapshot.py)     save / load console commands

Execution model:
  1. Fetch the selector at ip from live memory (never cached, wmem may
     have rewritten it)
  2. Decode opcode + raw operand words
  3. Run the handler; it either returns a jump target or None
  4. ip = target, or ip + 1 + arity
  5. Stop on halt, ret with an empty stack, exhausted input, or step budget

Termination reasons:
  - HALT:          halt opcode, or ret with an empty stack
  - INPUT_CLOSED:  in found no more terminal input
  - TIMEOUT:       max_steps executed

Machine errors (StackUnderflow, DivideByZero, InvalidOperand,
NoSnapshot) are fatal. They propagate out of step()/run() tagged with
the mnemonic and ip of the failing instruction.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from .cpu.decoder import Opcode, decode_instruction
from .cpu.regs import RegisterBank
from .cpu.resolver import AddressResolver
from .cpu.stack import Stack
from .errors import InvalidOperand, DivideByZero, VMError
from .mem.memory import Memory
from .periph.console import IOChannel, InputClosed, CommandIntercepted
from .periph.terminal import ScriptedTerminal
from .snapshot import SnapshotManager
from .words import VALUE_MASK, VALUE_MODULUS

log = logging.getLogger(__name__)


class StopReason(Enum):
    HALT = 'HALT'
    INPUT_CLOSED = 'INPUT_CLOSED'
    TIMEOUT = 'TIMEOUT'


class VirtualMachine:
    """16-bit word virtual machine.

    Usage:
        vm = VirtualMachine(load_image('challenge.bin'), StreamTerminal())
        reason = vm.run()

        vm = VirtualMachine([19, 72, 19, 105, 0])
        vm.run()
        vm.terminal.text   # "Hi"
    """

    def __init__(self, program: Iterable[int] = (), terminal=None, *,
                 encoding: str = 'latin-1', trace: bool = False):
        self.memory = Memory()
        self.program_size = self.memory.load_words(program)
        self.registers = RegisterBank()
        self.stack = Stack()
        self.resolver = AddressResolver(self.registers)
        self.ip = 0
        self.halted = False
        self.steps = 0

        self.terminal = terminal if terminal is not None else ScriptedTerminal()
        self.snapshots = SnapshotManager(self)
        self.io = IOChannel(self.terminal, encoding,
                            interceptor=self.snapshots.try_special_command)

        self._trace = trace
        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason if stopped, else None."""
        if self.halted:
            return StopReason.HALT

        try:
            instr = decode_instruction(self.memory, self.ip)
        except VMError as e:
            raise e.attach('fetch', self.ip)

        if self._trace:
            log.debug("%05d: %-5s %-20s | %s", instr.address, instr.mnemonic,
                      ' '.join(str(w) for w in instr.operands),
                      self.registers.display())

        if instr.opcode is None:
            log.debug(f"Undefined selector {instr.selector} at ip={instr.address:05d}, skipping")
            self.ip += 1
            self.steps += 1
            return None

        handler = self._dispatch[instr.opcode]
        try:
            target = handler(*instr.operands)
        except InputClosed:
            log.info(f"Input closed at ip={instr.address:05d}")
            return StopReason.INPUT_CLOSED
        except CommandIntercepted:
            # ip stays on the in instruction (or wherever load put it)
            self.steps += 1
            return None
        except VMError as e:
            raise e.attach(instr.mnemonic, instr.address)

        self.steps += 1
        if self.halted:
            return StopReason.HALT
        self.ip = target if target is not None else self.ip + instr.size
        return None

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Run until termination.

        Args:
            max_steps: Instructions to execute before TIMEOUT (None = no limit)

        Returns:
            StopReason indicating why execution stopped
        """
        limit = None if max_steps is None else self.steps + max_steps
        try:
            while limit is None or self.steps < limit:
                reason = self.step()
                if reason is not None:
                    log.debug(f"Stopped: {reason.value} after {self.steps} steps")
                    return reason
            log.debug(f"Step budget of {max_steps} exhausted at ip={self.ip:05d}")
            return StopReason.TIMEOUT
        finally:
            self.io.flush()

    # ══════════════════════════════════════════════
    # Operand helpers
    # ══════════════════════════════════════════════

    def _val(self, raw: int) -> int:
        return self.resolver.resolve(raw)

    def _set(self, raw: int, value: int):
        self.registers[self.resolver.destination_register(raw)] = value

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(*raw_operands) -> Optional[int]
    # Return a jump target to set ip, or None to fall through.

    def _build_dispatch(self) -> dict:
        table = {
            Opcode.HALT: self._op_halt,
            Opcode.SET:  self._op_set,
            Opcode.PUSH: self._op_push,
            Opcode.POP:  self._op_pop,
            Opcode.EQ:   self._op_eq,
            Opcode.GT:   self._op_gt,
            Opcode.JMP:  self._op_jmp,
            Opcode.JT:   self._op_jt,
            Opcode.JF:   self._op_jf,
            Opcode.ADD:  self._op_add,
            Opcode.MULT: self._op_mult,
            Opcode.MOD:  self._op_mod,
            Opcode.AND:  self._op_and,
            Opcode.OR:   self._op_or,
            Opcode.NOT:  self._op_not,
            Opcode.RMEM: self._op_rmem,
            Opcode.WMEM: self._op_wmem,
            Opcode.CALL: self._op_call,
            Opcode.RET:  self._op_ret,
            Opcode.OUT:  self._op_out,
            Opcode.IN:   self._op_in,
            Opcode.NOOP: self._op_noop,
        }
        missing = set(Opcode) - set(table)
        if missing:
            raise NotImplementedError(
                f"No handler for {', '.join(op.mnemonic for op in sorted(missing))}")
        return table

    # ── Control ──

    def _op_halt(self):
        self.halted = True

    def _op_noop(self):
        pass

    # ── Register / stack ──

    def _op_set(self, a, b):
        self._set(a, self._val(b))

    def _op_push(self, a):
        self.stack.push(self._val(a))

    def _op_pop(self, a):
        dest = self.resolver.destination_register(a)
        self.registers[dest] = self.stack.pop()

    # ── Comparison ──

    def _op_eq(self, a, b, c):
        self._set(a, 1 if self._val(b) == self._val(c) else 0)

    def _op_gt(self, a, b, c):
        self._set(a, 1 if self._val(b) > self._val(c) else 0)

    # ── Jumps ──

    def _op_jmp(self, a):
        return self._val(a)

    def _op_jt(self, a, b):
        if self._val(a) != 0:
            return self._val(b)
        return None

    def _op_jf(self, a, b):
        if self._val(a) == 0:
            return self._val(b)
        return None

    # ── Arithmetic (mod 32768) ──

    def _op_add(self, a, b, c):
        self._set(a, (self._val(b) + self._val(c)) % VALUE_MODULUS)

    def _op_mult(self, a, b, c):
        self._set(a, (self._val(b) * self._val(c)) % VALUE_MODULUS)

    def _op_mod(self, a, b, c):
        divisor = self._val(c)
        if divisor == 0:
            raise DivideByZero("mod by zero")
        self._set(a, self._val(b) % divisor)

    # ── Bitwise ──

    def _op_and(self, a, b, c):
        self._set(a, self._val(b) & self._val(c))

    def _op_or(self, a, b, c):
        self._set(a, self._val(b) | self._val(c))

    def _op_not(self, a, b):
        self._set(a, self._val(b) ^ VALUE_MASK)

    # ── Memory ──

    def _op_rmem(self, a, b):
        # Registers only hold 15-bit values; a raw word above 32767 is fatal.
        addr = self._val(b)
        word = self.memory.read(addr)
        if word > VALUE_MASK:
            raise InvalidOperand(f"memory word {word} at {addr} is not a 15-bit value")
        self._set(a, word)

    def _op_wmem(self, a, b):
        self.memory.write(self._val(a), self._val(b))

    # ── Subroutines ──

    def _op_call(self, a):
        target = self._val(a)
        self.stack.push(self.ip + 2)
        return target

    def _op_ret(self):
        if not self.stack:
            self.halted = True
            return None
        return self.stack.pop()

    # ── Console ──

    def _op_out(self, a):
        self.io.write_char(self._val(a) % 256)

    def _op_in(self, a):
        dest = self.resolver.destination_register(a)
        self.registers[dest] = self.io.read_char()

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Log every fetched instruction at DEBUG on the synvm.emu logger."""
        self._trace = enable

    def state(self) -> str:
        return (f"ip={self.ip:05d} {self.registers.display()} "
                f"stack={len(self.stack)} steps={self.steps}")

    def reset(self, program: Iterable[int] = ()):
        """Power-on reset with a fresh program image. Keeps the snapshot slot."""
        self.memory = Memory()
        self.program_size = self.memory.load_words(program)
        self.registers.reset()
        self.stack.reset()
        self.ip = 0
        self.halted = False
        self.steps = 0
        self.io.reset()
