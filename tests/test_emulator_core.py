"""
synvm — Core Integration Tests

Each test hand-assembles a word list and runs it on a fresh machine.
Operand words 32768–32775 are registers R0–R7.
"""

import logging

import pytest

from synvm import (VirtualMachine, StopReason, StackUnderflow, DivideByZero,
                   InvalidOperand, run_program)

R0, R1, R2, R3 = 32768, 32769, 32770, 32771


# ═══════════════════════════════════════════════
# Test Group 1: Individual Instructions
# ═══════════════════════════════════════════════

class TestControl:

    def test_halt(self, make_vm):
        """halt → HALT, ip stays on the halt word"""
        vm = make_vm([0])
        assert vm.step() is StopReason.HALT
        assert vm.halted
        assert vm.ip == 0

    def test_noop_then_halt(self, make_vm):
        """noop; halt → two steps, no output, no state change"""
        vm = make_vm([21, 0])
        assert vm.run() is StopReason.HALT
        assert vm.steps == 2
        assert vm.terminal.output == b''
        assert list(vm.registers) == [0] * 8
        assert len(vm.stack) == 0

    def test_undefined_selector_is_one_word_noop(self, make_vm):
        """22; halt → selector 22 skipped with ip+1"""
        vm = make_vm([22, 0])
        assert vm.step() is None
        assert vm.ip == 1
        assert vm.run() is StopReason.HALT

    def test_step_after_halt(self, make_vm):
        vm = make_vm([0])
        vm.run()
        assert vm.step() is StopReason.HALT
        assert vm.steps == 1

    def test_running_off_the_image_reads_zero(self, make_vm):
        """noop with nothing after it → the zero-filled cell halts"""
        vm = make_vm([21])
        assert vm.run() is StopReason.HALT
        assert vm.ip == 1


class TestRegisterOps:

    def test_set_literal(self, make_vm):
        """set R3 1234"""
        vm = make_vm([1, R3, 1234, 0])
        vm.step()
        assert vm.registers[3] == 1234
        assert vm.ip == 3

    def test_set_from_register(self, make_vm):
        """set R0 77; set R1 R0 → R1=77"""
        vm = make_vm([1, R0, 77, 1, R1, R0, 0])
        vm.run()
        assert vm.registers[1] == 77

    def test_every_register_resolves_after_set(self, make_vm):
        program = []
        for i in range(8):
            program += [1, 32768 + i, 1000 + i]
        program.append(0)
        vm = make_vm(program)
        vm.run()
        for i in range(8):
            assert vm.resolver.resolve(32768 + i) == 1000 + i


class TestStack:

    def test_push_pop_lifo(self, make_vm):
        """push 1; push 2; push 3; pop R0; pop R1; pop R2 → 3, 2, 1"""
        vm = make_vm([2, 1, 2, 2, 2, 3, 3, R0, 3, R1, 3, R2, 0])
        vm.run()
        assert [vm.registers[i] for i in range(3)] == [3, 2, 1]
        assert len(vm.stack) == 0

    def test_push_register(self, make_vm):
        vm = make_vm([1, R0, 42, 2, R0, 0])
        vm.run()
        assert vm.stack.items() == [42]

    def test_pop_empty_stack_is_fatal(self, make_vm):
        """set R0 1; pop R0 → StackUnderflow tagged with op and ip"""
        vm = make_vm([1, R0, 1, 3, R0, 0])
        with pytest.raises(StackUnderflow) as exc:
            vm.run()
        assert exc.value.opcode == 'pop'
        assert exc.value.address == 3
        assert 'op=pop' in str(exc.value)
        assert 'ip=00003' in str(exc.value)
        assert vm.registers[0] == 1


class TestComparison:

    @pytest.mark.parametrize('b, c, expected', [(5, 5, 1), (5, 6, 0), (0, 0, 1)])
    def test_eq(self, make_vm, b, c, expected):
        vm = make_vm([4, R0, b, c, 0])
        vm.run()
        assert vm.registers[0] == expected

    @pytest.mark.parametrize('b, c, expected', [(6, 5, 1), (5, 5, 0), (4, 5, 0)])
    def test_gt(self, make_vm, b, c, expected):
        vm = make_vm([5, R0, b, c, 0])
        vm.run()
        assert vm.registers[0] == expected

    def test_eq_compares_resolved_values(self, make_vm):
        """set R1 9; eq R0 R1 9 → 1"""
        vm = make_vm([1, R1, 9, 4, R0, R1, 9, 0])
        vm.run()
        assert vm.registers[0] == 1


class TestJumps:

    def test_jmp(self, make_vm):
        """jmp 4; halt; halt; out 'J'; halt"""
        vm = make_vm([6, 4, 0, 0, 19, 74, 0])
        vm.run()
        assert vm.terminal.output == b'J'

    def test_jmp_register_target(self, make_vm):
        vm = make_vm([1, R0, 6, 6, R0, 0, 19, 75, 0])
        vm.run()
        assert vm.terminal.output == b'K'

    def test_jt_taken(self, make_vm):
        vm = make_vm([7, 1, 5, 19, 78, 0])
        vm.step()
        assert vm.ip == 5

    def test_jt_not_taken_advances_three(self, make_vm):
        vm = make_vm([7, 0, 5, 0])
        vm.step()
        assert vm.ip == 3

    def test_jt_tests_resolved_operand(self, make_vm):
        """jt R0 100 with R0=0 → not taken even though raw word is nonzero"""
        vm = make_vm([7, R0, 100, 0])
        vm.step()
        assert vm.ip == 3

    def test_jf_taken(self, make_vm):
        vm = make_vm([8, R0, 7, 0])
        vm.step()
        assert vm.ip == 7

    def test_jf_not_taken(self, make_vm):
        vm = make_vm([8, 3, 7, 0])
        vm.step()
        assert vm.ip == 3


class TestArithmetic:

    def test_add(self, make_vm):
        """add R0 4 5; out R0 → R0=9, prints a tab"""
        vm = make_vm([9, R0, 4, 5, 19, R0, 0])
        vm.run()
        assert vm.registers[0] == 9
        assert vm.terminal.output == b'\t'

    def test_add_wraps(self, make_vm):
        """32758 + 15 = 5 (mod 32768)"""
        vm = make_vm([9, R0, 32758, 15, 0])
        vm.run()
        assert vm.registers[0] == 5

    def test_mult_wraps(self, make_vm):
        vm = make_vm([10, R0, 32767, 32767, 0])
        vm.run()
        assert vm.registers[0] == (32767 * 32767) % 32768

    @pytest.mark.parametrize('x, y', [(0, 0), (1, 32767), (32767, 32767), (12345, 6789)])
    def test_add_mult_stay_in_value_domain(self, make_vm, x, y):
        vm = make_vm([9, R0, x, y, 10, R1, x, y, 0])
        vm.run()
        assert 0 <= vm.registers[0] <= 32767
        assert 0 <= vm.registers[1] <= 32767

    def test_mod(self, make_vm):
        vm = make_vm([11, R0, 17, 5, 0])
        vm.run()
        assert vm.registers[0] == 2

    def test_mod_by_zero_is_fatal(self, make_vm):
        vm = make_vm([11, R0, 17, R1, 0])
        with pytest.raises(DivideByZero) as exc:
            vm.run()
        assert exc.value.opcode == 'mod'
        assert exc.value.address == 0


class TestBitwise:

    def test_and(self, make_vm):
        vm = make_vm([12, R0, 0b1100, 0b1010, 0])
        vm.run()
        assert vm.registers[0] == 0b1000

    def test_or(self, make_vm):
        vm = make_vm([13, R0, 0b1100, 0b1010, 0])
        vm.run()
        assert vm.registers[0] == 0b1110

    def test_not_is_15_bit(self, make_vm):
        vm = make_vm([14, R0, 0, 14, R1, 0x7FFF, 14, R2, 0x1234, 0])
        vm.run()
        assert vm.registers[0] == 0x7FFF
        assert vm.registers[1] == 0
        assert vm.registers[2] == 0x1234 ^ 0x7FFF

    def test_not_is_an_involution(self):
        """not R1 R0; not R2 R1 → R2 == R0 for every 15-bit value"""
        vm = VirtualMachine([14, R1, R0, 14, R2, R1, 0])
        for x in range(32768):
            vm.registers[0] = x
            vm.ip = 0
            vm.halted = False
            vm.run()
            assert vm.registers[2] == x


class TestMemory:

    def test_rmem(self, make_vm):
        vm = make_vm([15, R0, 4, 0, 4321])
        vm.run()
        assert vm.registers[0] == 4321

    def test_wmem(self, make_vm):
        vm = make_vm([1, R1, 500, 16, R1, 99, 0])
        vm.run()
        assert vm.memory.read(500) == 99

    def test_wmem_then_rmem(self, make_vm):
        vm = make_vm([16, 100, 7, 15, R0, 100, 0])
        vm.run()
        assert vm.registers[0] == 7

    def test_self_modifying_code(self, make_vm):
        """wmem 3 19 rewrites the halt at 3 into out, which then prints 'A'"""
        vm = make_vm([16, 3, 19, 0, 65, 0])
        assert vm.run() is StopReason.HALT
        assert vm.terminal.output == b'A'
        assert vm.ip == 5

    def test_rmem_of_non_value_word_is_fatal(self, make_vm):
        vm = make_vm([15, R0, 4, 0, R3])
        with pytest.raises(InvalidOperand):
            vm.run()

    def test_instruction_straddling_top_of_memory(self, make_vm):
        """out at 65535 reads its missing operand as zero"""
        vm = make_vm([])
        vm.memory.write(65535, 19)
        vm.ip = 65535
        assert vm.step() is None
        assert vm.terminal.output == b"\x00"
        with pytest.raises(InvalidOperand) as exc:
            vm.step()
        assert exc.value.opcode == "fetch"


class TestSubroutines:

    def test_call_ret_resumes_after_call(self, make_vm):
        """call 5; out 'B'; halt; [5] out 'A'; ret → "AB" """
        vm = make_vm([17, 5, 19, 66, 0, 19, 65, 18])
        assert vm.run() is StopReason.HALT
        assert vm.terminal.output == b'AB'
        assert len(vm.stack) == 0

    def test_call_pushes_return_address(self, make_vm):
        vm = make_vm([21, 17, 10, 0])
        vm.step()
        vm.step()
        assert vm.ip == 10
        assert vm.stack.items() == [3]

    def test_ret_on_empty_stack_halts(self, make_vm):
        vm = make_vm([18, 19, 88])
        assert vm.run() is StopReason.HALT
        assert vm.halted
        assert vm.terminal.output == b''

    def test_ret_pops_pushed_value(self, make_vm):
        """push 4; ret → jumps to 4"""
        vm = make_vm([2, 4, 18, 0, 19, 90, 0])
        vm.run()
        assert vm.terminal.output == b'Z'


class TestConsole:

    def test_out(self, make_vm):
        vm = make_vm([19, 72, 19, 105, 19, 10, 0])
        vm.run()
        assert vm.terminal.output == b'Hi\n'

    def test_in_reads_line_then_newline(self, make_vm):
        """in R0; in R1; in R2 with input "hi" → 104, 105, 10"""
        vm = make_vm([20, R0, 20, R1, 20, R2, 0], lines=['hi'])
        vm.run()
        assert [vm.registers[i] for i in range(3)] == [104, 105, 10]

    def test_in_without_input_stops(self, make_vm):
        vm = make_vm([20, R0, 0])
        assert vm.run() is StopReason.INPUT_CLOSED
        assert vm.ip == 0
        assert not vm.halted

    def test_in_resumes_when_more_input_arrives(self, make_vm):
        vm = make_vm([20, R0, 0])
        vm.run()
        vm.terminal.feed('q')
        assert vm.run() is StopReason.HALT
        assert vm.registers[0] == ord('q')

    def test_echo_program(self, make_vm):
        """in R0; out R0; eq R1 R0 10; jf R1 0; halt → echoes one line"""
        program = [20, R0, 19, R0, 4, R1, R0, 10, 8, R1, 0, 0]
        vm = make_vm(program, lines=['hello'])
        assert vm.run() is StopReason.HALT
        assert vm.terminal.output == b'hello\n'


# ═══════════════════════════════════════════════
# Test Group 2: Operand validation
# ═══════════════════════════════════════════════

class TestOperands:

    def test_operand_above_register_range(self, make_vm):
        vm = make_vm([1, R0, 32776, 0])
        with pytest.raises(InvalidOperand) as exc:
            vm.run()
        assert exc.value.opcode == 'set'

    def test_literal_destination(self, make_vm):
        vm = make_vm([1, 5, 6, 0])
        with pytest.raises(InvalidOperand):
            vm.run()

    def test_in_checks_destination_before_reading(self, make_vm):
        vm = make_vm([20, 3, 0], lines=['abc'])
        with pytest.raises(InvalidOperand):
            vm.run()
        assert vm.io.pending == b''


# ═══════════════════════════════════════════════
# Test Group 3: Run control
# ═══════════════════════════════════════════════

class TestRun:

    def test_max_steps_timeout(self, make_vm):
        """jmp 0 forever → TIMEOUT after the budget"""
        vm = make_vm([6, 0])
        assert vm.run(max_steps=10) is StopReason.TIMEOUT
        assert vm.steps == 10

    def test_max_steps_is_per_run(self, make_vm):
        vm = make_vm([6, 0])
        vm.run(max_steps=3)
        vm.run(max_steps=3)
        assert vm.steps == 6

    def test_trace_logs_each_instruction(self, make_vm, caplog):
        vm = make_vm([21, 1, R0, 3, 0], trace=True)
        with caplog.at_level(logging.DEBUG, logger='synvm.emu'):
            vm.run()
        lines = [r.getMessage() for r in caplog.records if 'R0=' in r.getMessage()]
        assert len(lines) == 3
        assert lines[0].startswith('00000: noop')
        assert lines[1].startswith('00001: set')

    def test_reset(self, make_vm):
        vm = make_vm([1, R0, 3, 2, 9, 0])
        vm.run()
        vm.reset([19, 33, 0])
        assert list(vm.registers) == [0] * 8
        assert len(vm.stack) == 0
        assert vm.ip == 0 and vm.steps == 0 and not vm.halted
        vm.run()
        assert vm.terminal.output == b'!'

    def test_run_program_helper(self):
        reason, output, vm = run_program([20, R0, 19, R0, 0], ['x'])
        assert reason is StopReason.HALT
        assert output == b'x'
        assert vm.registers[0] == ord('x')

    def test_run_program_accepts_image_bytes(self):
        reason, output, _ = run_program(bytes([19, 0, 79, 0, 19, 0, 75, 0, 0, 0]))
        assert output == b'OK'
