"""
Source parser: assembly text to instruction and MARK records.

Each non-blank line holds one instruction or one ``MARK name`` pseudo-op.
Operands are whitespace separated. Anything after ``//`` (or ``#``) is a
comment.

    MARK loop
    DATA R0 5        // R0 = 5
    ADD R0 R1
    JIF 0010 loop    // same as: JIF E loop
    END
"""

import logging
import re
from typing import Iterable, List, NamedTuple, Optional, Tuple, Union

from . import isa
from .errors import (AsmSyntaxError, AssemblerError, DisabledOpcodeError,
                     OperandRangeError, ReservedEncodingError,
                     UnknownMnemonicError)

logger = logging.getLogger(__name__)

COMMENT_MARKERS = ('//', '#')
LABEL_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
REGISTER_RE = re.compile(r'^[Rr](0|[1-9][0-9]*)$')
NUMBER_RE = re.compile(r'^[+-]?(0[xX][0-9a-fA-F]+|0[bB][01]+|[0-9]+)$')
MASK_BITS_RE = re.compile(r'^[01]{4}$')
MASK_LETTERS_RE = re.compile(r'^[CAEZcaez]+$')


# ============================================================================
# RECORDS
# ============================================================================

class Register(NamedTuple):
    index: int


class Immediate(NamedTuple):
    value: int


class Condition(NamedTuple):
    mask: int


class LabelRef(NamedTuple):
    name: str


Operand = Union[Register, Immediate, Condition, LabelRef]


class Instruction(NamedTuple):
    mnemonic: str
    operands: Tuple[Operand, ...]
    line: int
    length: int

    @property
    def spec(self) -> isa.InstructionSpec:
        return isa.ISA[self.mnemonic]


class Mark(NamedTuple):
    """Zero-length pseudo-op binding ``name`` to the next instruction"""
    name: str
    line: int
    length: int = 0


Record = Union[Instruction, Mark]


# ============================================================================
# OPERANDS
# ============================================================================

def parse_register(token: str, line: int) -> Register:
    match = REGISTER_RE.match(token)
    if not match:
        raise AsmSyntaxError(f"expected a register R0-R3, got '{token}'", line, token)
    index = int(match.group(1))
    if index >= isa.NUM_REGISTERS:
        raise OperandRangeError(f"register '{token}' does not exist (R0-R3)", line, token)
    return Register(index)


def parse_immediate(token: str, line: int) -> Immediate:
    if not NUMBER_RE.match(token):
        raise AsmSyntaxError(f"invalid number '{token}'", line, token)
    digits = token.lstrip('+-')
    value = int(digits, 0) if digits[:2].lower() in ('0x', '0b') else int(digits, 10)
    if token.startswith('-'):
        value = -value
    if not 0 <= value <= isa.WORD_MASK:
        raise OperandRangeError(f"immediate {token} does not fit in 8 bits (0-255)", line, token)
    return Immediate(value)


def parse_condition(token: str, line: int) -> Condition:
    """Accept a 4-bit CAEZ mask (``0110``) or flag letters (``AE``)"""
    if MASK_BITS_RE.match(token):
        mask = int(token, 2)
    elif MASK_LETTERS_RE.match(token):
        letters = token.upper()
        if len(set(letters)) != len(letters):
            raise AsmSyntaxError(f"repeated flag in condition '{token}'", line, token)
        mask = 0
        for letter, bit in isa.FLAG_LETTERS:
            if letter in letters:
                mask |= bit
    else:
        raise AsmSyntaxError(
            f"invalid JIF condition '{token}' (4 CAEZ bits or letters C, A, E, Z)", line, token)
    return Condition(mask)


def parse_label(token: str, line: int) -> LabelRef:
    if not LABEL_RE.match(token):
        raise AsmSyntaxError(f"invalid label name '{token}'", line, token)
    return LabelRef(token)


OPERAND_PARSERS = {
    isa.REG: parse_register,
    isa.IMM: parse_immediate,
    isa.COND: parse_condition,
    isa.LABEL: parse_label,
}


# ============================================================================
# LINES
# ============================================================================

def strip_comment(text: str) -> str:
    for marker in COMMENT_MARKERS:
        index = text.find(marker)
        if index != -1:
            text = text[:index]
    return text.strip()


def parse_line(text: str, line: int) -> Optional[Record]:
    """Parse one source line; blank and comment-only lines give ``None``."""
    text = strip_comment(text)
    if not text:
        return None

    words = text.split()
    mnemonic = words[0].upper()
    args = words[1:]

    if mnemonic == 'MARK':
        if len(args) != 1:
            raise AsmSyntaxError("MARK takes exactly one label name", line, text)
        return Mark(parse_label(args[0], line).name, line)

    spec = isa.lookup(mnemonic)
    if spec is None:
        raise UnknownMnemonicError(f"unknown instruction '{words[0]}'", line, words[0])
    if not spec.enabled:
        raise DisabledOpcodeError(f"{mnemonic} is reserved and cannot be assembled", line, words[0])
    if len(args) != len(spec.operands):
        raise AsmSyntaxError(
            f"{mnemonic} expects {len(spec.operands)} operand(s), got {len(args)}", line, text)

    operands = tuple(OPERAND_PARSERS[kind](token, line)
                     for (kind, _), token in zip(spec.operands, args))

    first = isa.pack_first_byte(
        spec, tuple(0 if isinstance(op, LabelRef) else op[0] for op in operands))
    if isa.match_opcode(first) is not spec:
        raise ReservedEncodingError(
            f"'{text}' encodes to {first:08b}, which is "
            f"{isa.match_opcode(first).mnemonic}", line, text)

    return Instruction(mnemonic, operands, line, spec.length)


def parse(source: Union[str, Iterable[str]]) -> Tuple[List[Record], List[AssemblerError]]:
    """Parse a whole program.

    Returns the records in source order and every error found; a line with an
    error contributes no record. Each call starts from scratch.
    """
    lines = source.splitlines() if isinstance(source, str) else source
    records: List[Record] = []
    errors: List[AssemblerError] = []
    for number, text in enumerate(lines, 1):
        try:
            record = parse_line(text, number)
        except AssemblerError as e:
            errors.append(e)
            continue
        if record is not None:
            records.append(record)
    logger.debug("Parsed %d record(s), %d error(s)", len(records), len(errors))
    return records, errors
