"""
================================================================================
CPU emulator
================================================================================

    ┌──────────────────────────────────────────────┐
    │              MEMORY (256 bytes)              │
    │  0x00..: program image, then free RAM        │
    └──────────────────────┬───────────────────────┘
                           │ BUS (8-bit address, 8-bit data)
    ┌──────────────────────┴───────────────────────┐
    │  CONTROL: PC, fetch / decode / execute        │
    ├──────────────────────────────────────────────┤
    │  REGISTERS: R0 R1 R2 R3 (8-bit)               │
    │  FLAGS: C A E Z                               │
    ├──────────────────────────────────────────────┤
    │  ALU: ADD SHR SHL NOT AND OR XOR              │
    └──────────────────────────────────────────────┘

Each ``step()`` runs one instruction: FETCH -> EXECUTE -> FETCH. ``END``
leaves the CPU HALTED; any fault leaves it FAULTED. Both are terminal.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from . import isa
from .decoder import Decoded, decode
from .errors import AddressOutOfRangeFault, CPUFault

logger = logging.getLogger(__name__)


class RunState(Enum):
    FETCH = 'fetch'
    EXECUTE = 'execute'
    HALTED = 'halted'
    FAULTED = 'faulted'


TERMINAL_STATES = (RunState.HALTED, RunState.FAULTED)


@dataclass
class Flags:
    """C, A, E and Z, always written together"""
    carry: bool = False
    a_larger: bool = False
    equal: bool = False
    zero: bool = False

    def clear(self):
        self.carry = self.a_larger = self.equal = self.zero = False

    def set(self, carry: bool, a_larger: bool, equal: bool, zero: bool):
        self.carry, self.a_larger, self.equal, self.zero = carry, a_larger, equal, zero

    def as_mask(self) -> int:
        return ((isa.FLAG_C if self.carry else 0) | (isa.FLAG_A if self.a_larger else 0)
                | (isa.FLAG_E if self.equal else 0) | (isa.FLAG_Z if self.zero else 0))

    def satisfies(self, mask: int) -> bool:
        """True if every flag selected by ``mask`` is set"""
        return self.as_mask() & mask == mask

    def __str__(self):
        return ''.join(letter if self.as_mask() & bit else '-'
                       for letter, bit in isa.FLAG_LETTERS)


# ============================================================================
# ALU
# ============================================================================
# Each operation maps (a, b) to (result, carry); result is written to RB.

ALU_OPERATIONS: Dict[str, Callable[[int, int], Tuple[int, bool]]] = {
    'ADD': lambda a, b: ((a + b) & isa.WORD_MASK, a + b > isa.WORD_MASK),
    'SHR': lambda a, b: (b >> 1, bool(b & 0x01)),
    'SHL': lambda a, b: ((b << 1) & isa.WORD_MASK, bool(b & 0x80)),
    'NOT': lambda a, b: (~b & isa.WORD_MASK, False),
    'AND': lambda a, b: (a & b, False),
    'OR':  lambda a, b: (a | b, False),
    'XOR': lambda a, b: (a ^ b, False),
}


def alu(mnemonic: str, a: int, b: int) -> Tuple[int, Flags]:
    """Compute an ALU operation and the flags it produces"""
    result, carry = ALU_OPERATIONS[mnemonic](a, b)
    return result, Flags(carry=carry, a_larger=a > b, equal=a == b, zero=result == 0)


# ============================================================================
# CPU
# ============================================================================

class CPU:
    """Emulator for the 4-register toy CPU"""

    def __init__(self, image: bytes = b'', memory: Optional[bytes] = None,
                 memory_size: int = isa.MEMORY_SIZE, trace: bool = False):
        if not 0 < memory_size <= isa.MEMORY_SIZE:
            raise ValueError(f"memory size must be 1-{isa.MEMORY_SIZE} bytes, got {memory_size}")
        self.memory_size = memory_size
        self.trace = trace

        self.executors: Dict[str, Callable[[Decoded], int]] = {
            'ADD': self.exec_alu,
            'SHR': self.exec_alu,
            'SHL': self.exec_alu,
            'NOT': self.exec_alu,
            'AND': self.exec_alu,
            'OR': self.exec_alu,
            'XOR': self.exec_alu,
            'ST': self.exec_st,
            'LD': self.exec_ld,
            'DATA': self.exec_data,
            'JMPR': self.exec_jmpr,
            'JMP': self.exec_jmp,
            'JIF': self.exec_jif,
            'CLF': self.exec_clf,
            'END': self.exec_end,
        }

        self.load_program(image, memory)

    # ------------------------------------------------------------------------
    # SETUP
    # ------------------------------------------------------------------------

    def reset(self):
        """Zero registers, flags, memory and PC"""
        self.reg = [0] * isa.NUM_REGISTERS
        self.flags = Flags()
        self.memory = bytearray(self.memory_size)
        self.pc = 0
        self.program_size = 0
        self.state = RunState.FETCH
        self.fault: Optional[CPUFault] = None
        self.steps = 0

    def load_program(self, image: bytes, memory: Optional[bytes] = None):
        """Reset, pre-load ``memory`` and place ``image`` at address 0"""
        if len(image) > self.memory_size:
            raise ValueError(f"image of {len(image)} bytes does not fit in {self.memory_size} bytes")
        if memory is not None and len(memory) > self.memory_size:
            raise ValueError(f"memory contents of {len(memory)} bytes exceed {self.memory_size} bytes")

        self.reset()
        if memory is not None:
            self.memory[:len(memory)] = bytes(memory)
        self.memory[:len(image)] = bytes(image)
        self.program_size = len(image)
        logger.info("Loaded %d bytes", len(image))

    # ------------------------------------------------------------------------
    # MEMORY ACCESS
    # ------------------------------------------------------------------------

    def read_byte(self, address: int) -> int:
        if not 0 <= address < self.memory_size:
            raise AddressOutOfRangeFault(f"read from 0x{address:02X}", self.pc)
        return self.memory[address]

    def write_byte(self, address: int, value: int):
        if not 0 <= address < self.memory_size:
            raise AddressOutOfRangeFault(f"write to 0x{address:02X}", self.pc)
        self.memory[address] = value & isa.WORD_MASK

    # ------------------------------------------------------------------------
    # INSTRUCTION EXECUTION
    # ------------------------------------------------------------------------
    # Executors run with self.pc still at the start of the instruction and
    # return the next PC value.

    def exec_alu(self, ins: Decoded) -> int:
        ra, rb = ins.operands
        result, flags = alu(ins.mnemonic, self.reg[ra], self.reg[rb])
        self.reg[rb] = result
        self.flags.set(flags.carry, flags.a_larger, flags.equal, flags.zero)
        return self.pc + ins.length

    def exec_st(self, ins: Decoded) -> int:
        """mem[RB] = RA"""
        ra, rb = ins.operands
        self.write_byte(self.reg[rb], self.reg[ra])
        return self.pc + ins.length

    def exec_ld(self, ins: Decoded) -> int:
        """RB = mem[RA]"""
        ra, rb = ins.operands
        self.reg[rb] = self.read_byte(self.reg[ra])
        return self.pc + ins.length

    def exec_data(self, ins: Decoded) -> int:
        rb, value = ins.operands
        self.reg[rb] = value
        return self.pc + ins.length

    def exec_jmpr(self, ins: Decoded) -> int:
        rb, = ins.operands
        return self.reg[rb]

    def exec_jmp(self, ins: Decoded) -> int:
        target, = ins.operands
        return target

    def exec_jif(self, ins: Decoded) -> int:
        mask, target = ins.operands
        if self.flags.satisfies(mask):
            return target
        return self.pc + ins.length

    def exec_clf(self, ins: Decoded) -> int:
        self.flags.clear()
        return self.pc + ins.length

    def exec_end(self, ins: Decoded) -> int:
        self.state = RunState.HALTED
        return self.pc + ins.length

    def step(self) -> RunState:
        """Execute one instruction; a no-op once HALTED or FAULTED"""
        if self.state in TERMINAL_STATES:
            return self.state

        if self.trace:
            logger.debug(self.format_state())

        try:
            ins = decode(self.memory, self.pc, self.program_size)
            self.state = RunState.EXECUTE
            self.pc = self.executors[ins.mnemonic](ins)
        except CPUFault as fault:
            self.fault = fault
            self.state = RunState.FAULTED
            logger.warning("Faulted after %d steps: %s", self.steps, fault)
            return self.state

        self.steps += 1
        if self.state is RunState.EXECUTE:
            self.state = RunState.FETCH
        else:
            logger.info("Halted after %d steps", self.steps)
        return self.state

    def run(self, max_steps: Optional[int] = None) -> RunState:
        """Run until HALTED, FAULTED or ``max_steps`` more steps have run"""
        executed = 0
        while self.state not in TERMINAL_STATES:
            if max_steps is not None and executed >= max_steps:
                logger.info("Execution stopped: step limit (%d) reached at PC 0x%02X",
                            max_steps, self.pc)
                break
            self.step()
            executed += 1
        return self.state

    @property
    def halted(self) -> bool:
        return self.state is RunState.HALTED

    @property
    def faulted(self) -> bool:
        return self.state is RunState.FAULTED

    # ------------------------------------------------------------------------
    # DEBUGGING AND UTILITIES
    # ------------------------------------------------------------------------

    def format_state(self) -> str:
        regs = ' '.join(f"{isa.REGISTER_NAMES[i]}:{value:3d}" for i, value in enumerate(self.reg))
        return f"PC:0x{self.pc:02X} {regs} F:{self.flags} [{self.state.value}]"

    def dump_memory(self, start: int = 0, length: Optional[int] = None) -> str:
        """Hex dump, 16 bytes per row"""
        if length is None:
            length = self.memory_size - start
        end = min(start + length, self.memory_size)
        rows = []
        for addr in range(start, end, 16):
            chunk = self.memory[addr:min(addr + 16, end)]
            rows.append(f"0x{addr:02X}: " + ' '.join(f"{byte:02X}" for byte in chunk))
        return '\n'.join(rows)


def run_image(image: bytes, max_steps: Optional[int] = None, **kwargs) -> CPU:
    """Load ``image`` into a fresh CPU and run it"""
    cpu = CPU(image, **kwargs)
    cpu.run(max_steps)
    return cpu
