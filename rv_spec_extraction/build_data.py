#!/usr/bin/env python3
"""
RISC-V Spec Data Builder

Builds ``src/lib/data/instructions.json`` for the RISC-V reference search application:

    1. Fetch riscv-opcodes and riscv-isa-manual (or use local checkouts)
    2. Parse instruction definition files and the CSR table
    3. Mine the manual's AsciiDoc sources for descriptions
    4. Merge, deduplicate and write the dataset

Usage:
    python -m rv_spec_extraction.build_data [--output PATH]
        [--opcodes-dir DIR] [--manual-dir DIR] [--validate]

Requirements: pip install requests
"""

import argparse
import contextlib
import json
import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .encoding_parser import validate_encoding_fields
from .extract_csrs import extract_csrs
from .extract_descriptions import DescriptionExtractor, Descriptions
from .extract_opcodes import ExtractionStats, extract_instructions
from .fetch_sources import (
    MANUAL_ARCHIVE_URL,
    OPCODES_ARCHIVE_URL,
    SourceFetchError,
    fetch_repository,
    working_directory,
)
from .models import CSR, Dataset, Instruction


# ============================================================================
# Configuration
# ============================================================================

OUTPUT_JSON = Path("src") / "lib" / "data" / "instructions.json"
DATASET_VERSION = "1.0.0"

# Layout of the upstream trees
OPCODES_EXTENSIONS_SUBDIR = "extensions"
CSR_FILE_NAME = "csrs.csv"
MANUAL_SOURCE_SUBDIR = "src"


class OutputWriteError(RuntimeError):
    """Raised when the dataset cannot be written to its output path."""


# ============================================================================
# Merge & Assembly
# ============================================================================

def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-10-19T08:15:30.123Z"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def attach_descriptions(records, descriptions: Mapping[str, str]):
    """Copy each record with its description attached, when one was found."""
    attached = []
    for record in records:
        description = descriptions.get(record.name.lower())
        attached.append(record.with_description(description) if description else record)
    return attached


def deduplicate_instructions(instructions: List[Instruction]) -> List[Instruction]:
    """Keep the first instruction seen for each name, preserving order."""
    seen: Dict[str, Instruction] = {}
    for instr in instructions:
        if instr.name not in seen:
            seen[instr.name] = instr
    return list(seen.values())


def assemble_dataset(
    instructions: List[Instruction],
    csrs: List[CSR],
    descriptions: Descriptions,
    generated_at: Optional[str] = None,
) -> Dataset:
    """
    Join parsed records with mined descriptions.

    Parsed records are never modified, so assembling twice from the same
    inputs yields identical instruction and CSR lists.

    Args:
        instructions: Instructions in traversal order (ratified first)
        csrs: CSRs in table order; aliases are kept
        descriptions: Maps produced by DescriptionExtractor
        generated_at: Timestamp override, defaults to now

    Returns:
        Dataset ready for serialization
    """
    described = attach_descriptions(instructions, descriptions.instructions)
    return Dataset(
        instructions=deduplicate_instructions(described),
        csrs=attach_descriptions(csrs, descriptions.csrs),
        version=DATASET_VERSION,
        generated_at=generated_at or utc_timestamp(),
    )


def summarize(dataset: Dataset) -> Dict[str, int]:
    """Diagnostic counts; not part of the written artifact."""
    return {
        "instructions": len(dataset.instructions),
        "instructionsWithDescription": sum(1 for i in dataset.instructions if i.description),
        "csrs": len(dataset.csrs),
        "csrsWithDescription": sum(1 for c in dataset.csrs if c.description),
    }


def write_dataset(dataset: Dataset, output_path: Path) -> None:
    """
    Write the dataset atomically.

    The JSON is written to a temporary file next to ``output_path`` and
    renamed over it, so a failure never leaves a truncated artifact.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.name}.", dir=output_path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(dataset.to_dict(), f, indent=2, ensure_ascii=False)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, output_path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def report_encoding_problems(instructions: List[Instruction]) -> int:
    """Print structural encoding problems (only with --validate)."""
    print("\n" + "=" * 70)
    print("VALIDATING ENCODINGS")
    print("=" * 70)

    flagged = 0
    for instr in instructions:
        problems = validate_encoding_fields(instr.encoding)
        if problems:
            flagged += 1
            print(f"  WARNING: {instr.name} ({instr.extension}): {'; '.join(problems)}")

    print(f"✓ Checked {len(instructions)} instructions, {flagged} with problems")
    return flagged


# ============================================================================
# Main Pipeline
# ============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Build the RISC-V instruction/CSR dataset')
    parser.add_argument('--output', type=Path, default=OUTPUT_JSON,
                        help='Path of the generated JSON file')
    parser.add_argument('--opcodes-dir', type=Path,
                        help='Local riscv-opcodes checkout (skips fetching it)')
    parser.add_argument('--manual-dir', type=Path,
                        help='Local riscv-isa-manual checkout (skips fetching it)')
    parser.add_argument('--opcodes-url', default=OPCODES_ARCHIVE_URL,
                        help='Archive URL of riscv-opcodes')
    parser.add_argument('--manual-url', default=MANUAL_ARCHIVE_URL,
                        help='Archive URL of riscv-isa-manual')
    parser.add_argument('--validate', action='store_true',
                        help='Report overlapping or malformed encodings')
    return parser.parse_args(argv)


def build(opcodes_dir: Path, manual_dir: Path, output_path: Path, validate: bool = False) -> Dataset:
    """Run every stage on local source trees and write the dataset."""
    stats = ExtractionStats()
    instructions = extract_instructions(opcodes_dir / OPCODES_EXTENSIONS_SUBDIR, stats)
    csrs = extract_csrs(opcodes_dir / CSR_FILE_NAME)

    extractor = DescriptionExtractor()
    descriptions = extractor.extract_from_directory(manual_dir / MANUAL_SOURCE_SUBDIR)

    dataset = assemble_dataset(instructions, csrs, descriptions)
    counts = summarize(dataset)

    if validate:
        report_encoding_problems(dataset.instructions)

    print("\n" + "=" * 70)
    print("GENERATING OUTPUTS")
    print("=" * 70)

    try:
        write_dataset(dataset, output_path)
    except OSError as e:
        raise OutputWriteError(f"Cannot write {output_path}: {e}") from e

    print(f"Generated {counts['instructions']} instructions "
          f"({counts['instructionsWithDescription']} with descriptions) and "
          f"{counts['csrs']} CSRs ({counts['csrsWithDescription']} with descriptions)")
    print(f"✓ Output written to {output_path}")
    return dataset


def run(args: argparse.Namespace) -> Dataset:
    with working_directory() as work_dir:
        opcodes_dir = args.opcodes_dir
        manual_dir = args.manual_dir
        if opcodes_dir is None:
            opcodes_dir = fetch_repository(args.opcodes_url, work_dir, "opcodes")
        if manual_dir is None:
            manual_dir = fetch_repository(args.manual_url, work_dir, "manual")
        return build(opcodes_dir, manual_dir, args.output, validate=args.validate)


def main(argv: Optional[List[str]] = None) -> int:
    """Main extraction pipeline."""
    print("=" * 70)
    print("RISC-V SPEC DATA BUILDER")
    print("=" * 70)

    args = parse_args(argv)

    try:
        run(args)
    except SourceFetchError as e:
        print(f"✗ Source retrieval failed: {e}")
        return 1
    except OutputWriteError as e:
        print(f"✗ Output stage failed: {e}")
        return 1

    print("\n" + "=" * 70)
    print("EXTRACTION COMPLETE")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
