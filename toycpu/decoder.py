"""Instruction decoding shared by the CPU and the disassembler."""

from typing import NamedTuple, Sequence, Tuple

from . import isa
from .errors import (AddressOutOfRangeFault, DecodeDisabledOpcodeFault,
                     InvalidOpcodeFault)


class Decoded(NamedTuple):
    """One decoded instruction.

    ``operands`` holds plain integers in source order: register indices,
    the JIF condition mask, the DATA literal or the jump target address.
    """
    address: int
    mnemonic: str
    operands: Tuple[int, ...]
    length: int

    def __str__(self):
        parts = [self.mnemonic]
        for (kind, _), value in zip(isa.ISA[self.mnemonic].operands, self.operands):
            if kind == isa.REG:
                parts.append(isa.REGISTER_NAMES[value])
            elif kind == isa.COND:
                parts.append(isa.condition_text(value) or '0000')
            elif kind == isa.LABEL:
                parts.append(f"0x{value:02X}")
            else:
                parts.append(str(value))
        return ' '.join(parts)


def decode(memory: Sequence[int], pc: int, limit: int) -> Decoded:
    """Decode the instruction at ``pc``.

    Bytes at or beyond ``limit`` may not be fetched; an instruction that
    starts or ends there raises ``AddressOutOfRangeFault``.
    """
    if not 0 <= pc < limit:
        raise AddressOutOfRangeFault(f"fetch outside the {limit}-byte program", pc)

    byte = memory[pc]
    spec = isa.match_opcode(byte)
    if spec is None:
        raise InvalidOpcodeFault(f"no instruction encodes as {byte:08b}", pc)
    if not spec.enabled:
        raise DecodeDisabledOpcodeFault(f"{spec.mnemonic} ({byte:08b}) is not executable", pc)
    if pc + spec.length > limit:
        raise AddressOutOfRangeFault(f"{spec.mnemonic} operand byte lies outside program", pc)

    operands = []
    for kind, shift in spec.operands:
        if shift is isa.SECOND_BYTE:
            operands.append(memory[pc + 1])
        else:
            width = 4 if kind == isa.COND else 2
            operands.append((byte >> shift) & ((1 << width) - 1))

    return Decoded(pc, spec.mnemonic, tuple(operands), spec.length)
