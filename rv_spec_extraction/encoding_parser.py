"""
RISC-V Encoding Line Parser

Tokenizes the operand/encoding part of a riscv-opcodes definition line into
operand names and bit-field assignments. This centralizes the grammar shared
by regular instructions and ``$pseudo_op`` lines.

Usage:
    from rv_spec_extraction.encoding_parser import parse_encoding_line

    operands, encoding = parse_encoding_line("rd rs1 rs2 31..25=0 14..12=0 6..2=0x0C 1..0=3")
    # operands -> ["rd", "rs1", "rs2"]
    # encoding -> [BitField([31:25], 0), BitField([14:12], 0), ...]

The parser is purely syntactic: it never checks that ranges are ordered,
disjoint or cover the whole word. ``validate_encoding_fields`` performs those
checks separately for callers that want them.
"""

import re
from typing import AbstractSet, List, Optional, Tuple, Union

from .models import BitField


# ============================================================================
# Operand Vocabulary
# ============================================================================

OPERAND_VOCABULARY_VERSION = "riscv-opcodes/arg_lut-2024"

KNOWN_OPERANDS = frozenset([
    # Integer operands
    'rd', 'rs1', 'rs2', 'rs3',
    'imm12', 'imm20', 'jimm20',
    'bimm12hi', 'bimm12lo',
    'simm12hi', 'simm12lo',
    'shamtw', 'shamtd', 'shamt',
    'rm', 'aq', 'rl',
    'pred', 'succ',
    'csr', 'zimm',
    'fm',
    # Compressed operands
    'rd_p', 'rs1_p', 'rs2_p',
    'c_nzuimm10', 'c_uimm8sp_s', 'c_uimm8sp', 'c_uimm7lo', 'c_uimm7hi',
    'c_imm6lo', 'c_imm6hi', 'c_nzimm6lo', 'c_nzimm6hi',
    'c_nzuimm5', 'c_nzuimm6lo', 'c_nzuimm6hi',
    'c_uimm8lo', 'c_uimm8hi', 'c_uimm9lo', 'c_uimm9hi',
    'c_nzimm10hi', 'c_nzimm10lo', 'c_nzimm18hi', 'c_nzimm18lo',
    'c_imm12', 'c_bimm9lo', 'c_bimm9hi',
    'c_nzimm5', 'c_spimm',
    'c_index', 'c_rlist',
    # Vector operands
    'vd', 'vs1', 'vs2', 'vs3', 'vm', 'nf', 'wd',
    'simm5', 'zimm10', 'zimm11', 'zimm5',
])


# ============================================================================
# Token Grammar
# ============================================================================

# 31..25=0, 6..2=0x0C, 24..20=rs2
BIT_RANGE_RE = re.compile(r'^(\d+)\.\.(\d+)=(.+)$')

# 12=1
SINGLE_BIT_RE = re.compile(r'^(\d+)=(.+)$')

SYMBOLIC_VALUE_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def parse_field_value(value: str) -> Optional[Union[int, str]]:
    """
    Parse the right-hand side of a bit assignment.

    Examples:
        "0x33" -> 51
        "3"    -> 3
        "rs2"  -> "rs2" (symbolic)
        "0b11" -> None (not part of the grammar)
    """
    if value[:2] in ('0x', '0X'):
        try:
            return int(value[2:], 16)
        except ValueError:
            return None

    if value.isdecimal():
        return int(value)

    if SYMBOLIC_VALUE_RE.match(value):
        return value

    return None


def parse_encoding_line(
    line: str,
    known_operands: AbstractSet[str] = KNOWN_OPERANDS,
) -> Tuple[List[str], List[BitField]]:
    """
    Split a definition line remainder into operands and bit fields.

    Args:
        line: Everything after the mnemonic (e.g. "rd rs1 imm12 14..12=0 6..2=0x04 1..0=3")
        known_operands: Closed vocabulary used to recognise operand tokens

    Returns:
        (operands, encoding) in source token order. Unrecognised tokens are dropped.
    """
    operands: List[str] = []
    encoding: List[BitField] = []

    for token in line.split():
        if token in known_operands:
            operands.append(token)
            continue

        range_match = BIT_RANGE_RE.match(token)
        if range_match:
            high, low, raw_value = range_match.groups()
            value = parse_field_value(raw_value)
            if value is not None:
                encoding.append(BitField(int(high), int(low), value))
                _record_symbolic_operand(value, operands, known_operands)
            continue

        single_match = SINGLE_BIT_RE.match(token)
        if single_match:
            bit, raw_value = single_match.groups()
            value = parse_field_value(raw_value)
            if value is not None:
                encoding.append(BitField(int(bit), int(bit), value))
                _record_symbolic_operand(value, operands, known_operands)
            continue

        # Anything else is not part of the grammar

    return operands, encoding


def _record_symbolic_operand(value, operands: List[str], known_operands: AbstractSet[str]) -> None:
    # 24..20=rs2 names an operand through its value
    if isinstance(value, str) and value in known_operands and value not in operands:
        operands.append(value)


# ============================================================================
# Optional Validation
# ============================================================================

def validate_encoding_fields(encoding: List[BitField], width: int = 32) -> List[str]:
    """
    Check an encoding for structural problems.

    Checks:
    - Bit ranges are ordered (high >= low)
    - Bit ranges fall inside the instruction word
    - No overlapping bit ranges
    - Fixed values fit in their range

    Gaps are allowed: unassigned bits are don't-care bits.

    Args:
        encoding: Fields produced by parse_encoding_line()
        width: Instruction word width in bits

    Returns:
        List of problem descriptions; empty when the encoding is consistent.
    """
    problems = []
    owner = [None] * width

    for field in encoding:
        if field.high < field.low:
            problems.append(f"range {field.high}..{field.low} is reversed")
            continue

        if field.low < 0 or field.high >= width:
            problems.append(f"range {field.high}..{field.low} exceeds {width}-bit word")
            continue

        if field.is_fixed and field.value >= (1 << field.width):
            problems.append(
                f"value {field.value:#x} does not fit in {field.width} bit(s) at {field.high}..{field.low}"
            )

        for bit in range(field.low, field.high + 1):
            if owner[bit] is not None:
                other = owner[bit]
                problems.append(
                    f"bit {bit} assigned by both {other.high}..{other.low} and {field.high}..{field.low}"
                )
                break
            owner[bit] = field

    return problems
