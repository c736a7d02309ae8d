# =============================================================================
# test_isa.py - Encoding table tests
# =============================================================================

from toycpu import isa
from toycpu.cpu import ALU_OPERATIONS, CPU


class TestTable:

    def test_lengths(self):
        """Only DATA, JMP and JIF carry a second byte."""
        two_byte = {m for m, spec in isa.ISA.items() if spec.length == 2}
        assert two_byte == {'DATA', 'JMP', 'JIF'}

    def test_cmp_is_reserved(self):
        assert not isa.ISA['CMP'].enabled
        assert all(spec.enabled for m, spec in isa.ISA.items() if m != 'CMP')

    def test_fixed_masks(self):
        assert isa.ISA['ADD'].fixed_mask == 0xF0
        assert isa.ISA['DATA'].fixed_mask == 0xFC
        assert isa.ISA['JMPR'].fixed_mask == 0xFC
        assert isa.ISA['JIF'].fixed_mask == 0xF0
        assert isa.ISA['JMP'].fixed_mask == 0xFF
        assert isa.ISA['END'].fixed_mask == 0xFF

    def test_lookup_is_case_insensitive(self):
        assert isa.lookup('jmpr') is isa.ISA['JMPR']
        assert isa.lookup('MARK') is None


class TestMatchOpcode:

    def test_end_wins_over_and(self):
        """11001111 is END even though AND R3 R3 has the same bits."""
        assert isa.match_opcode(0b11001111).mnemonic == 'END'
        assert isa.match_opcode(0b11001110).mnemonic == 'AND'

    def test_every_class(self):
        assert isa.match_opcode(0b10000110).mnemonic == 'ADD'
        assert isa.match_opcode(0b00000110).mnemonic == 'LD'
        assert isa.match_opcode(0b00010110).mnemonic == 'ST'
        assert isa.match_opcode(0b00100011).mnemonic == 'DATA'
        assert isa.match_opcode(0b00110001).mnemonic == 'JMPR'
        assert isa.match_opcode(0b01000000).mnemonic == 'JMP'
        assert isa.match_opcode(0b01011010).mnemonic == 'JIF'
        assert isa.match_opcode(0b01100000).mnemonic == 'CLF'

    def test_cmp_pattern(self):
        assert isa.match_opcode(0b11110001).mnemonic == 'CMP'

    def test_unassigned_patterns(self):
        for byte in (0b00100100, 0b00111000, 0b01000001, 0b01100001, 0b01110000):
            assert isa.match_opcode(byte) is None


class TestDispatchCoverage:
    """Every enabled mnemonic has an executor and every ALU op a function."""

    def test_cpu_executors(self):
        enabled = {m for m, spec in isa.ISA.items() if spec.enabled}
        assert set(CPU().executors) == enabled

    def test_alu_operations(self):
        enabled_alu = {m for m in isa.ALU_MNEMONICS if isa.ISA[m].enabled}
        assert set(ALU_OPERATIONS) == enabled_alu


def test_condition_text():
    assert isa.condition_text(0b1001) == 'CZ'
    assert isa.condition_text(0b1111) == 'CAEZ'
    assert isa.condition_text(0) == ''


def test_pack_first_byte():
    assert isa.pack_first_byte(isa.ISA['XOR'], (3, 2)) == 0b11101110
    assert isa.pack_first_byte(isa.ISA['DATA'], (2, 200)) == 0b00100010
    assert isa.pack_first_byte(isa.ISA['JIF'], (0b0110, 0)) == 0b01010110
