"""
Two-pass assembler.

Pass 1 (``resolve_symbols``) assigns every record a byte offset and binds each
``MARK`` to the offset of the instruction after it. Pass 2 (``generate_code``)
walks the same records and emits bytes, looking labels up in the pass-1
symbol table, so forward references work.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Tuple, Union

from . import isa
from .errors import (AssemblerError, AssemblyFailed, DuplicateLabelError, OperandRangeError,
                     ProgramTooLargeError, UnknownLabelError)
from .parser import Immediate, Instruction, LabelRef, Mark, Record, parse

logger = logging.getLogger(__name__)


class Layout(NamedTuple):
    """Result of pass 1"""
    offsets: Tuple[int, ...]  # byte offset of each record, by record index
    symbols: Mapping[str, int]
    size: int


# ============================================================================
# PASS 1: SYMBOL RESOLUTION
# ============================================================================

def resolve_symbols(records: List[Record]) -> Tuple[Layout, List[AssemblerError]]:
    offsets: List[int] = []
    symbols: Dict[str, int] = {}
    defined_on: Dict[str, int] = {}
    errors: List[AssemblerError] = []
    address = 0
    too_large = False

    for record in records:
        offsets.append(address)
        if isinstance(record, Mark):
            if record.name in symbols:
                errors.append(DuplicateLabelError(
                    f"label '{record.name}' already defined on line {defined_on[record.name]}",
                    record.line, record.name))
            else:
                symbols[record.name] = address
                defined_on[record.name] = record.line
            continue

        address += record.length
        if address > isa.MEMORY_SIZE and not too_large:
            too_large = True
            errors.append(ProgramTooLargeError(
                f"program does not fit in {isa.MEMORY_SIZE} bytes of memory", record.line))

    return Layout(tuple(offsets), MappingProxyType(symbols), address), errors


# ============================================================================
# PASS 2: CODE GENERATION
# ============================================================================

def _immediate_byte(operand: Immediate, symbols: Mapping[str, int], line: int) -> int:
    return operand.value


def _label_byte(operand: LabelRef, symbols: Mapping[str, int], line: int) -> int:
    if operand.name not in symbols:
        raise UnknownLabelError(f"label '{operand.name}' is never MARKed", line, operand.name)
    address = symbols[operand.name]
    if address > isa.WORD_MASK:
        raise OperandRangeError(
            f"label '{operand.name}' resolves to {address}, outside the 8-bit address space",
            line, operand.name)
    return address


SECOND_BYTE_ENCODERS = {
    isa.IMM: _immediate_byte,
    isa.LABEL: _label_byte,
}


def encode_instruction(instruction: Instruction, symbols: Mapping[str, int]) -> bytes:
    """Encode one instruction record to its 1 or 2 bytes"""
    spec = instruction.spec
    values = tuple(0 if isinstance(op, LabelRef) else op[0] for op in instruction.operands)
    encoded = bytearray([isa.pack_first_byte(spec, values)])
    for (kind, shift), operand in zip(spec.operands, instruction.operands):
        if shift is isa.SECOND_BYTE:
            encoded.append(SECOND_BYTE_ENCODERS[kind](operand, symbols, instruction.line))
    assert len(encoded) == spec.length, f"{spec.mnemonic} encoded to {len(encoded)} byte(s)"
    return bytes(encoded)


def generate_code(records: List[Record], layout: Layout) -> Tuple[bytes, List[AssemblerError]]:
    image = bytearray()
    errors: List[AssemblerError] = []

    for index, record in enumerate(records):
        assert len(image) == layout.offsets[index], (
            f"pass 2 at offset {len(image)} but pass 1 placed line {record.line} "
            f"at {layout.offsets[index]}")
        if isinstance(record, Mark):
            continue
        try:
            image += encode_instruction(record, layout.symbols)
        except AssemblerError as e:
            errors.append(e)
            # keep later offsets aligned with pass 1
            image += bytes(record.length)

    assert len(image) == layout.size
    return bytes(image), errors


# ============================================================================
# ASSEMBLER
# ============================================================================

class Assembler:
    """Assembles source text into a flat byte image.

    Every error from every stage is collected; if there are any, they are
    logged and raised together as ``AssemblyFailed`` and no image is returned.
    With ``append_end`` a final ``END`` is added after the last line.
    """

    def __init__(self, append_end: bool = False):
        self.append_end = append_end
        self.records: List[Record] = []
        self.layout = Layout((), MappingProxyType({}), 0)
        self.errors: List[AssemblerError] = []

    @property
    def symbols(self) -> Mapping[str, int]:
        return self.layout.symbols

    def assemble(self, source: Union[str, Iterable[str]]) -> bytes:
        lines = source.splitlines() if isinstance(source, str) else list(source)
        if self.append_end:
            lines.append('END')

        self.records, self.errors = parse(lines)
        self.layout, pass1_errors = resolve_symbols(self.records)
        image, pass2_errors = generate_code(self.records, self.layout)
        self.errors += pass1_errors + pass2_errors

        if self.errors:
            for error in self.errors:
                logger.error("%s", error)
            raise AssemblyFailed(self.errors)

        logger.info("Assembled %d bytes, %d label(s)", len(image), len(self.layout.symbols))
        return image


def assemble(source: Union[str, Iterable[str]], append_end: bool = False) -> bytes:
    return Assembler(append_end=append_end).assemble(source)


# ============================================================================
# BINARY LISTING
# ============================================================================

def to_listing(image: bytes) -> str:
    """One 8-digit binary string per byte, MSB first"""
    return '\n'.join(f"{byte:0{isa.WORD_BITS}b}" for byte in image)


def from_listing(text: str) -> bytes:
    """Inverse of ``to_listing``; blank lines are skipped"""
    image = bytearray()
    for number, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        if len(line) != isa.WORD_BITS or set(line) - {'0', '1'}:
            raise ValueError(f"line {number}: '{line}' is not an 8-bit binary word")
        image.append(int(line, 2))
    return bytes(image)
