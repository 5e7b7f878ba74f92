"""
RISC-V Opcode File Extractor

Parses the instruction definition files of the riscv-opcodes repository
(``extensions/rv*`` plus ``extensions/unratified/rv*``) into Instruction
records with empty descriptions.

Line format:
    add      rd rs1 rs2 31..25=0  14..12=0 6..2=0x0C 1..0=3
    $pseudo_op rv_zicsr::csrrs frflags rd 19..15=0 31..20=0x002 14..12=2 6..2=0x1C 1..0=3
    $import rv_zba::sh1add.uw
"""

import re
from pathlib import Path
from typing import Dict, List, Optional

from .encoding_parser import KNOWN_OPERANDS, OPERAND_VOCABULARY_VERSION, parse_encoding_line
from .models import Instruction


# ============================================================================
# Line Grammar
# ============================================================================

MNEMONIC_RE = re.compile(r'^[A-Za-z0-9_.]+$')

PSEUDO_OP_RE = re.compile(r'^\$pseudo_op\s+\S+\s+([A-Za-z0-9_.]+)\s+(.*)$')

UNRATIFIED_SUBDIR = "unratified"


class ExtractionStats:
    """Tracks extraction statistics."""

    def __init__(self):
        self.by_extension: Dict[str, int] = {}
        self.total_instructions = 0
        self.pseudo_ops = 0
        self.skipped_files: List[str] = []

    def add_file(self, extension: str, instructions: List[Instruction]):
        """Record per-file statistics."""
        self.by_extension[extension] = len(instructions)
        self.total_instructions += len(instructions)
        self.pseudo_ops += sum(1 for instr in instructions if instr.type == "pseudo")


def parse_opcode_line(line: str, extension: str, known_operands=KNOWN_OPERANDS) -> Optional[Instruction]:
    """
    Parse a single line from an opcode definition file.

    Returns:
        Instruction object or None if the line does not define one
    """
    line = line.strip()

    # Skip empty lines, comments and directives
    if not line or line.startswith('#') or line.startswith('@'):
        return None

    if line.startswith('$pseudo_op'):
        match = PSEUDO_OP_RE.match(line)
        if not match:
            return None
        name, rest = match.groups()
        operands, encoding = parse_encoding_line(rest, known_operands)
        return Instruction(name, extension, operands, encoding, type="pseudo")

    # $import and any other directive: imported definitions are not resolved
    if line.startswith('$'):
        return None

    parts = line.split()
    if len(parts) < 2:
        return None

    name = parts[0]
    if not MNEMONIC_RE.match(name):
        return None

    operands, encoding = parse_encoding_line(' '.join(parts[1:]), known_operands)

    # Lines without a single bit assignment are not instruction definitions
    if not encoding:
        return None

    return Instruction(name, extension, operands, encoding, type="instruction")


def parse_opcode_file(content: str, extension: str, known_operands=KNOWN_OPERANDS) -> List[Instruction]:
    """Parse every line of an opcode definition file, keeping source order."""
    instructions = []
    for line in content.split('\n'):
        instr = parse_opcode_line(line, extension, known_operands)
        if instr:
            instructions.append(instr)
    return instructions


def list_opcode_files(directory: Path) -> List[Path]:
    """Opcode files are named ``rv*`` and carry no file suffix."""
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.name.startswith('rv') and '.' not in path.name
    )


def extract_from_directory(directory: Path, tag_prefix: str, stats: ExtractionStats) -> List[Instruction]:
    """Parse all opcode files in one directory, tagging each with its extension name."""
    instructions: List[Instruction] = []

    try:
        files = list_opcode_files(directory)
    except OSError as e:
        print(f"  WARNING: Cannot read {directory}: {e}")
        return instructions

    for path in files:
        extension = f"{tag_prefix}{path.name}"
        try:
            content = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            print(f"  WARNING: Failed to parse {extension}: {e}")
            stats.skipped_files.append(extension)
            continue

        parsed = parse_opcode_file(content, extension)
        stats.add_file(extension, parsed)
        instructions.extend(parsed)

    return instructions


def extract_instructions(extensions_dir: Path, stats: ExtractionStats) -> List[Instruction]:
    """
    Extract all instructions from a riscv-opcodes ``extensions`` directory.

    Ratified files come first so that, after deduplication, a ratified
    definition always wins over an unratified one with the same name.

    Returns:
        List of Instruction objects in traversal order
    """
    print("\n" + "=" * 70)
    print("EXTRACTING INSTRUCTIONS FROM OPCODE FILES")
    print("=" * 70)

    extensions_dir = Path(extensions_dir)
    if not extensions_dir.is_dir():
        print(f"  WARNING: Opcode directory not found: {extensions_dir}")
        return []

    instructions = extract_from_directory(extensions_dir, "", stats)

    unratified_dir = extensions_dir / UNRATIFIED_SUBDIR
    if unratified_dir.is_dir():
        instructions.extend(
            extract_from_directory(unratified_dir, f"{UNRATIFIED_SUBDIR}/", stats)
        )

    print(f"\n✓ Extracted {len(instructions)} instructions from {len(stats.by_extension)} files")
    print(f"  Pseudo-ops: {stats.pseudo_ops}")
    print(f"  Operand vocabulary: {OPERAND_VOCABULARY_VERSION}")
    if stats.skipped_files:
        print(f"  Skipped files: {len(stats.skipped_files)}")

    return instructions
