"""
================================================================================
Instruction set of the 4-register toy CPU
================================================================================

INSTRUCTION FORMAT (MSB first):

    Class               Byte 1        Byte 2
    ------------------  ------------  ----------------
    ALU  ADD..XOR       1 CCC AA BB   -
    ST   RA RB          0001 AA BB    -
    LD   RA RB          0000 AA BB    -
    DATA RB x           001000 BB     literal x
    JMPR RB             001100 BB     -
    JMP  mark           01000000      resolved address
    JIF  CAEZ mark      0101 C A E Z  resolved address
    CLF                 01100000      -
    END                 11001111      -

ALU CODES (CCC):
    ADD 000  SHR 001  SHL 010  NOT 011  AND 100  OR 101  XOR 110  CMP 111

CMP is reserved: it has an encoding but is not enabled.

FLAGS:
  - C (Carry):  carry out of the last ALU operation
  - A (Larger): operand a was greater than operand b
  - E (Equal):  operand a equalled operand b
  - Z (Zero):   the ALU result was zero
"""

from typing import Dict, List, NamedTuple, Optional, Tuple

# ============================================================================
# MACHINE CONSTANTS
# ============================================================================

WORD_BITS = 8
WORD_MASK = 0xFF
MEMORY_SIZE = 1 << WORD_BITS  # 8-bit addresses

NUM_REGISTERS = 4
REGISTER_NAMES = {0: 'R0', 1: 'R1', 2: 'R2', 3: 'R3'}

# JIF condition mask bits, in encoding order C A E Z
FLAG_C = 0b1000
FLAG_A = 0b0100
FLAG_E = 0b0010
FLAG_Z = 0b0001
FLAG_LETTERS = (('C', FLAG_C), ('A', FLAG_A), ('E', FLAG_E), ('Z', FLAG_Z))

# Operand kinds
REG = 'reg'
IMM = 'imm'
LABEL = 'label'
COND = 'cond'

# Shift marker for operands that occupy the whole second byte
SECOND_BYTE = None


class Opcode:
    """Fixed opcode bits for every mnemonic"""
    # ALU: 1 CCC AA BB
    ADD  = 0b10000000
    SHR  = 0b10010000
    SHL  = 0b10100000
    NOT  = 0b10110000
    AND  = 0b11000000
    OR   = 0b11010000
    XOR  = 0b11100000
    CMP  = 0b11110000  # reserved

    # Memory
    LD   = 0b00000000
    ST   = 0b00010000
    DATA = 0b00100000

    # Control flow
    JMPR = 0b00110000
    JMP  = 0b01000000
    JIF  = 0b01010000
    CLF  = 0b01100000
    END  = 0b11001111


ALU_MNEMONICS = ('ADD', 'SHR', 'SHL', 'NOT', 'AND', 'OR', 'XOR', 'CMP')


# ============================================================================
# ENCODING TABLE
# ============================================================================

class InstructionSpec(NamedTuple):
    """Encoding shape of one mnemonic.

    ``operands`` lists ``(kind, shift)`` pairs in source order. A register or
    condition operand is packed into byte 1 at ``shift``; an immediate or label
    operand (``shift`` is ``SECOND_BYTE``) becomes byte 2.
    """
    mnemonic: str
    opcode: int
    operands: Tuple[Tuple[str, Optional[int]], ...]
    length: int
    enabled: bool = True

    @property
    def kinds(self) -> Tuple[str, ...]:
        return tuple(kind for kind, _ in self.operands)

    @property
    def fixed_mask(self) -> int:
        """Bits of byte 1 that are not operand fields"""
        mask = WORD_MASK
        for kind, shift in self.operands:
            if shift is SECOND_BYTE:
                continue
            width = 4 if kind == COND else 2
            mask &= ~(((1 << width) - 1) << shift)
        return mask & WORD_MASK


_REG_PAIR = ((REG, 2), (REG, 0))

ISA: Dict[str, InstructionSpec] = {
    'ADD':  InstructionSpec('ADD',  Opcode.ADD,  _REG_PAIR, 1),
    'SHR':  InstructionSpec('SHR',  Opcode.SHR,  _REG_PAIR, 1),
    'SHL':  InstructionSpec('SHL',  Opcode.SHL,  _REG_PAIR, 1),
    'NOT':  InstructionSpec('NOT',  Opcode.NOT,  _REG_PAIR, 1),
    'AND':  InstructionSpec('AND',  Opcode.AND,  _REG_PAIR, 1),
    'OR':   InstructionSpec('OR',   Opcode.OR,   _REG_PAIR, 1),
    'XOR':  InstructionSpec('XOR',  Opcode.XOR,  _REG_PAIR, 1),
    'CMP':  InstructionSpec('CMP',  Opcode.CMP,  _REG_PAIR, 1, enabled=False),
    'ST':   InstructionSpec('ST',   Opcode.ST,   _REG_PAIR, 1),
    'LD':   InstructionSpec('LD',   Opcode.LD,   _REG_PAIR, 1),
    'DATA': InstructionSpec('DATA', Opcode.DATA, ((REG, 0), (IMM, SECOND_BYTE)), 2),
    'JMPR': InstructionSpec('JMPR', Opcode.JMPR, ((REG, 0),), 1),
    'JMP':  InstructionSpec('JMP',  Opcode.JMP,  ((LABEL, SECOND_BYTE),), 2),
    'JIF':  InstructionSpec('JIF',  Opcode.JIF,  ((COND, 0), (LABEL, SECOND_BYTE)), 2),
    'CLF':  InstructionSpec('CLF',  Opcode.CLF,  (), 1),
    'END':  InstructionSpec('END',  Opcode.END,  (), 1),
}

# Most specific patterns first, so END (no operand bits) wins over AND R3 R3
_DECODE_ORDER: List[InstructionSpec] = sorted(
    ISA.values(), key=lambda spec: -bin(spec.fixed_mask).count('1'))


def lookup(mnemonic: str) -> Optional[InstructionSpec]:
    """Case-insensitive mnemonic lookup"""
    return ISA.get(mnemonic.upper())


def match_opcode(byte: int) -> Optional[InstructionSpec]:
    """Return the table entry whose fixed bits match ``byte``, if any."""
    byte &= WORD_MASK
    for spec in _DECODE_ORDER:
        if byte & spec.fixed_mask == spec.opcode:
            return spec
    return None


def pack_first_byte(spec: InstructionSpec, values: Tuple[int, ...]) -> int:
    """Fixed bits of ``spec`` with the byte-1 operand fields filled in"""
    byte = spec.opcode
    for (kind, shift), value in zip(spec.operands, values):
        if shift is not SECOND_BYTE:
            byte |= value << shift
    return byte & WORD_MASK


def condition_text(mask: int) -> str:
    """Render a JIF mask as its flag letters, e.g. 0b1001 -> 'CZ'"""
    return ''.join(letter for letter, bit in FLAG_LETTERS if mask & bit)
