"""Assembly-time errors and emulation-time faults."""

from typing import Iterable, List, Optional


# ============================================================================
# ASSEMBLER ERRORS
# ============================================================================

class AssemblerError(Exception):
    """An error tied to one line of assembly source"""

    def __init__(self, message: str, line: Optional[int] = None, token: Optional[str] = None):
        self.message = message
        self.line = line
        self.token = token
        super().__init__(str(self))

    def __str__(self):
        if self.line is None:
            return self.message
        return f"line {self.line}: {self.message}"


class AsmSyntaxError(AssemblerError):
    """Malformed line or operand"""


class UnknownMnemonicError(AssemblerError):
    pass


class DisabledOpcodeError(AssemblerError):
    """Mnemonic exists in the ALU table but is reserved (CMP)"""


class DuplicateLabelError(AssemblerError):
    pass


class UnknownLabelError(AssemblerError):
    pass


class OperandRangeError(AssemblerError):
    """Immediate outside 0-255 or register outside R0-R3"""


class ReservedEncodingError(AssemblerError):
    """Operands that would encode to another instruction's bit pattern"""


class ProgramTooLargeError(AssemblerError):
    pass


class AssemblyFailed(Exception):
    """Raised once per assembly with every error that was recorded"""

    def __init__(self, errors: Iterable[AssemblerError]):
        self.errors: List[AssemblerError] = sorted(
            errors, key=lambda e: (e.line is None, e.line or 0))
        summary = '; '.join(str(e) for e in self.errors)
        super().__init__(f"{len(self.errors)} assembly error(s): {summary}")


# ============================================================================
# EMULATION FAULTS
# ============================================================================

class CPUFault(Exception):
    """Terminal emulation error at a given program counter"""

    kind = 'fault'

    def __init__(self, message: str, pc: int):
        self.message = message
        self.pc = pc
        super().__init__(f"{self.kind} at PC 0x{pc:02X}: {message}")


class InvalidOpcodeFault(CPUFault):
    kind = 'invalid opcode'


class AddressOutOfRangeFault(CPUFault):
    kind = 'address out of range'


class DecodeDisabledOpcodeFault(CPUFault):
    kind = 'disabled opcode'
