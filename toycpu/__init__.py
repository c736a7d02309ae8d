"""Assembler and emulator for a 4-register 8-bit toy CPU."""

from .assembler import Assembler, assemble, from_listing, to_listing
from .cpu import CPU, Flags, RunState, run_image
from .decoder import Decoded, decode
from .disassembler import disassemble, to_source
from .errors import (AddressOutOfRangeFault, AsmSyntaxError, AssemblerError,
                     AssemblyFailed, CPUFault, DecodeDisabledOpcodeFault,
                     DisabledOpcodeError, DuplicateLabelError,
                     InvalidOpcodeFault, OperandRangeError,
                     ProgramTooLargeError, ReservedEncodingError,
                     UnknownLabelError, UnknownMnemonicError)

__version__ = '0.1.0'
