# =============================================================================
# test_cpu.py - Emulator tests
# =============================================================================

import logging

import pytest

from toycpu import programs
from toycpu.assembler import assemble
from toycpu.cpu import ALU_OPERATIONS, CPU, Flags, RunState, alu, run_image
from toycpu.errors import (AddressOutOfRangeFault, DecodeDisabledOpcodeFault,
                           InvalidOpcodeFault)


def run(source, max_steps=1000, **kwargs):
    """Assemble ``source`` and run it to completion."""
    return run_image(assemble(source), max_steps=max_steps, **kwargs)


def alu_program(mnemonic, a, b):
    return f"DATA R0 {a}\nDATA R1 {b}\n{mnemonic} R0 R1\nEND"


# =============================================================================
# ALU
# =============================================================================

class TestALU:

    def test_add_carry(self):
        """ADD R0 R1 with 255 + 1 wraps to zero with carry."""
        cpu = run(alu_program('ADD', 255, 1))
        assert cpu.reg[1] == 0
        assert cpu.flags == Flags(carry=True, a_larger=True, equal=False, zero=True)

    def test_add_no_carry(self):
        cpu = run(alu_program('ADD', 100, 55))
        assert cpu.reg[1] == 155
        assert not cpu.flags.carry
        assert cpu.reg[0] == 100

    def test_shl(self):
        cpu = run("DATA R1 0b10000001\nSHL R0 R1\nEND")
        assert cpu.reg[1] == 0b00000010
        assert cpu.flags.carry

    def test_shr(self):
        cpu = run("DATA R1 3\nSHR R0 R1\nEND")
        assert cpu.reg[1] == 1
        assert cpu.flags.carry
        cpu = run("DATA R1 2\nSHR R0 R1\nEND")
        assert cpu.reg[1] == 1
        assert not cpu.flags.carry

    def test_not(self):
        cpu = run("DATA R0 7\nDATA R2 0x0F\nNOT R0 R2\nEND")
        assert cpu.reg[2] == 0xF0
        assert cpu.reg[0] == 7
        assert not cpu.flags.carry
        assert cpu.flags.a_larger is False

    def test_not_zero(self):
        cpu = run("DATA R1 255\nNOT R0 R1\nEND")
        assert cpu.reg[1] == 0
        assert cpu.flags.zero

    @pytest.mark.parametrize("mnemonic, expected", [('AND', 8), ('OR', 14), ('XOR', 6)])
    def test_logic(self, mnemonic, expected):
        cpu = run(alu_program(mnemonic, 0b1100, 0b1010))
        assert cpu.reg[1] == expected
        assert not cpu.flags.carry
        assert cpu.flags.a_larger

    def test_logic_clears_previous_carry(self):
        cpu = run("DATA R0 255\nDATA R1 1\nADD R0 R1\nOR R0 R1\nEND")
        assert cpu.reg[1] == 255
        assert not cpu.flags.carry

    def test_xor_self(self):
        cpu = run("DATA R2 77\nXOR R2 R2\nEND")
        assert cpu.reg[2] == 0
        assert cpu.flags.zero and cpu.flags.equal

    @pytest.mark.parametrize("mnemonic", sorted(ALU_OPERATIONS))
    @pytest.mark.parametrize("a, b", [(0, 0), (5, 5), (200, 56), (1, 255), (128, 128), (255, 1)])
    def test_compare_flags(self, mnemonic, a, b):
        """A, E and Z always reflect the pre-operation operands and the result."""
        result, flags = alu(mnemonic, a, b)
        assert flags.equal == (a == b)
        assert flags.a_larger == (a > b)
        assert flags.zero == (result == 0)
        assert 0 <= result <= 255

        cpu = run(alu_program(mnemonic, a, b))
        assert cpu.reg[1] == result
        assert cpu.flags == flags

    @pytest.mark.parametrize("mnemonic", sorted(ALU_OPERATIONS))
    def test_compare_flags_every_operand_pair(self, mnemonic):
        for a in range(256):
            for b in range(256):
                result, flags = alu(mnemonic, a, b)
                assert 0 <= result <= 255, (a, b)
                assert flags.equal == (a == b), (a, b)
                assert flags.a_larger == (a > b), (a, b)
                assert flags.zero == (result == 0), (a, b)


# =============================================================================
# Memory and data
# =============================================================================

class TestMemory:

    def test_store_then_load(self):
        cpu = run("DATA R0 77\nDATA R1 0xF0\nST R0 R1\nLD R1 R2\nEND")
        assert cpu.memory[0xF0] == 77
        assert cpu.reg[2] == 77

    def test_preloaded_memory(self):
        memory = bytes(0x80) + bytes([42])
        cpu = CPU(assemble("DATA R0 0x80\nLD R0 R1\nEND"), memory=memory)
        assert cpu.run() is RunState.HALTED
        assert cpu.reg[1] == 42

    def test_image_overlays_preloaded_memory(self):
        cpu = CPU(bytes([0xCF]), memory=bytes([9, 9, 9]))
        assert list(cpu.memory[:3]) == [0xCF, 9, 9]

    def test_store_outside_small_memory(self):
        cpu = run("DATA R0 1\nDATA R1 0xF0\nST R0 R1\nEND", memory_size=32)
        assert cpu.state is RunState.FAULTED
        assert isinstance(cpu.fault, AddressOutOfRangeFault)
        assert cpu.fault.pc == 4

    def test_load_outside_small_memory(self):
        cpu = run("DATA R0 200\nLD R0 R1\nEND", memory_size=64)
        assert isinstance(cpu.fault, AddressOutOfRangeFault)

    def test_bad_configuration(self):
        with pytest.raises(ValueError):
            CPU(memory_size=0)
        with pytest.raises(ValueError):
            CPU(bytes(300))
        with pytest.raises(ValueError):
            CPU(bytes(10), memory_size=8)


# =============================================================================
# Control flow
# =============================================================================

class TestControlFlow:

    def test_conditional_jump_taken(self):
        cpu = run("""
            DATA R0 5
            DATA R1 5
            ADD R0 R1
            JIF 0010 hit
            END
            MARK hit
            DATA R2 99
            END
        """)
        assert cpu.halted
        assert cpu.reg[1] == 10
        assert cpu.flags.equal and not cpu.flags.zero
        assert cpu.reg[2] == 99

    def test_conditional_jump_not_taken(self):
        cpu = run("DATA R0 1\nDATA R1 2\nADD R0 R1\nJIF Z skip\nDATA R3 1\nMARK skip\nEND")
        assert cpu.reg[3] == 1

    def test_jif_needs_every_selected_flag(self):
        cpu = run("DATA R0 5\nDATA R1 5\nADD R0 R1\nJIF EZ skip\nDATA R3 1\nMARK skip\nEND")
        assert cpu.flags.equal and not cpu.flags.zero
        assert cpu.reg[3] == 1

    def test_jmp(self):
        cpu = run("JMP over\nDATA R0 1\nMARK over\nEND")
        assert cpu.reg[0] == 0

    def test_jmpr(self):
        cpu = run("DATA R0 5\nJMPR R0\nDATA R1 1\nEND")
        assert cpu.reg[1] == 0
        assert cpu.halted

    def test_clf(self):
        cpu = run("DATA R0 255\nDATA R1 1\nADD R0 R1\nCLF\nJIF C bad\nEND\nMARK bad\nDATA R3 1\nEND")
        assert cpu.flags == Flags()
        assert cpu.reg[3] == 0

    def test_flags_survive_non_alu_instructions(self):
        cpu = run("DATA R0 255\nDATA R1 1\nADD R0 R1\n"
                  "DATA R2 0x80\nST R0 R2\nLD R2 R3\nJMP next\nMARK next\nEND")
        assert cpu.flags == Flags(carry=True, a_larger=True, equal=False, zero=True)

    def test_empty_mask_is_always_taken(self):
        cpu = CPU(bytes([0b01010000, 3, 0b00100000, 0xCF]))
        cpu.run()
        assert cpu.halted
        assert cpu.reg[0] == 0


# =============================================================================
# Run states
# =============================================================================

class TestRunState:

    def test_end(self):
        cpu = CPU(assemble("CLF\nEND\nDATA R0 9"))
        assert cpu.state is RunState.FETCH
        assert cpu.step() is RunState.FETCH
        assert cpu.step() is RunState.HALTED
        assert cpu.pc == 2
        assert cpu.step() is RunState.HALTED
        assert cpu.pc == 2
        assert cpu.reg == [0, 0, 0, 0]
        assert cpu.steps == 2

    def test_cmp_faults(self):
        cpu = CPU(bytes([0b11110001]))
        assert cpu.run() is RunState.FAULTED
        assert isinstance(cpu.fault, DecodeDisabledOpcodeFault)
        assert cpu.fault.pc == 0

    def test_invalid_opcode(self):
        cpu = CPU(assemble("CLF") + bytes([0b00100100]))
        assert cpu.run() is RunState.FAULTED
        assert isinstance(cpu.fault, InvalidOpcodeFault)
        assert cpu.fault.pc == 1

    def test_running_off_the_end(self):
        cpu = CPU(assemble("CLF"))
        assert cpu.run() is RunState.FAULTED
        assert isinstance(cpu.fault, AddressOutOfRangeFault)
        assert cpu.fault.pc == 1

    def test_truncated_instruction(self):
        cpu = CPU(bytes([0b01000000]))
        cpu.run()
        assert isinstance(cpu.fault, AddressOutOfRangeFault)

    def test_fault_is_terminal(self):
        cpu = CPU(bytes([0xFF]))
        cpu.run()
        assert cpu.step() is RunState.FAULTED
        assert cpu.steps == 0

    def test_step_limit(self):
        cpu = CPU(assemble("MARK top\nJMP top"))
        assert cpu.run(max_steps=50) is RunState.FETCH
        assert cpu.steps == 50
        cpu.run(max_steps=10)
        assert cpu.steps == 60
        assert cpu.pc == 0

    def test_reset(self):
        cpu = run("DATA R0 3\nEND")
        cpu.reset()
        assert cpu.reg == [0, 0, 0, 0]
        assert cpu.state is RunState.FETCH
        assert cpu.program_size == 0


# =============================================================================
# Debugging helpers
# =============================================================================

class TestDebugging:

    def test_format_state(self):
        cpu = run("DATA R0 255\nDATA R1 1\nADD R0 R1\nEND")
        assert cpu.format_state() == "PC:0x06 R0:255 R1:  0 R2:  0 R3:  0 F:CA-Z [halted]"

    def test_dump_memory(self):
        cpu = CPU(bytes([0x20, 0x05, 0xCF]))
        assert cpu.dump_memory(0, 4) == "0x00: 20 05 CF 00"
        assert len(cpu.dump_memory().splitlines()) == 16

    def test_trace_logs_each_step(self, caplog):
        with caplog.at_level(logging.DEBUG, logger='toycpu.cpu'):
            run("CLF\nEND", trace=True)
        assert "PC:0x00" in caplog.text
        assert "PC:0x01" in caplog.text


# =============================================================================
# Example programs
# =============================================================================

class TestPrograms:

    def test_countdown(self):
        cpu = run(programs.COUNTDOWN_PROGRAM)
        assert cpu.halted
        assert cpu.reg[0] == 0
        assert cpu.reg[3] == 5

    def test_multiply(self):
        cpu = run(programs.MULTIPLY_PROGRAM)
        assert cpu.halted
        assert cpu.reg[2] == 42
        assert cpu.memory[0xF0] == 42

    def test_fibonacci(self):
        cpu = run(programs.FIBONACCI_PROGRAM)
        assert cpu.halted
        assert list(cpu.memory[0x80:0x8D]) == [1, 1, 2, 3, 5, 8, 13, 21, 34, 55, 89, 144, 233]
        assert cpu.memory[0x8D] == 0
        assert cpu.reg[3] == 0x8D
