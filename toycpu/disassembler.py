"""
Disassembler: byte image back to assembly source.

Jump targets get synthetic ``L<hex>`` labels with a ``MARK`` line in front of
the instruction they point at, so the output reassembles to the same image.
"""

import logging
from typing import Dict, List

from .decoder import Decoded, decode

logger = logging.getLogger(__name__)

JUMP_MNEMONICS = ('JMP', 'JIF')


def label_name(address: int) -> str:
    return f"L{address:02X}"


def disassemble(image: bytes) -> List[Decoded]:
    """Decode ``image`` front to back; decoding faults propagate"""
    decoded = []
    pc = 0
    while pc < len(image):
        ins = decode(image, pc, len(image))
        decoded.append(ins)
        pc += ins.length
    return decoded


def to_source(image: bytes) -> str:
    instructions = disassemble(image)
    boundaries = {ins.address for ins in instructions} | {len(image)}
    targets: Dict[int, str] = {}
    for ins in instructions:
        if ins.mnemonic in JUMP_MNEMONICS:
            target = ins.operands[-1]
            targets[target] = label_name(target)

    lines = []
    for ins in instructions:
        if ins.address in targets:
            lines.append(f"MARK {targets[ins.address]}")
        text = str(ins)
        if ins.mnemonic in JUMP_MNEMONICS:
            head, _ = text.rsplit(' ', 1)
            text = f"{head} {targets[ins.operands[-1]]}"
        lines.append(text)
    if len(image) in targets:
        lines.append(f"MARK {targets[len(image)]}")

    for target in sorted(set(targets) - boundaries):
        logger.warning("Jump target 0x%02X is not an instruction boundary", target)
        lines.append(f"// {targets[target]} = 0x{target:02X} is not an instruction boundary")
    return '\n'.join(lines) + '\n'
