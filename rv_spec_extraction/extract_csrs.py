"""
RISC-V CSR Table Extractor

Parses ``csrs.csv`` from the riscv-opcodes repository. Each record looks like:

    0x305, "mtvec"

Lines that do not match (headers, comments, blank lines) are ignored.
"""

import re
from pathlib import Path
from typing import List, Optional

from .models import CSR


# ============================================================================
# Privilege Inference
# ============================================================================

# (start, end, privilege) - half-open ranges checked in order, first match wins.
# end=None means no upper bound.
PRIVILEGE_RANGES = [
    (0x100, 0x200, 'S'),   # Supervisor
    (0x200, 0x300, 'H'),   # Hypervisor
    (0x300, 0x400, 'M'),   # Machine
    (0x500, 0x600, 'S'),   # Supervisor
    (0x600, 0x700, 'H'),   # Hypervisor
    (0x700, 0x800, 'M'),   # Machine
    (0xB00, 0xC00, 'M'),   # Machine counters
    (0xC00, 0xD00, 'U'),   # User counters (read-only)
    (0xF00, None, 'M'),    # Machine information
]

DEFAULT_PRIVILEGE = 'U'

CSR_LINE_RE = re.compile(r'^(0x[0-9A-Fa-f]+),\s*"([^"]+)"')


def privilege_for_address(address: int) -> str:
    """
    Infer the privilege tier of a CSR from its 12-bit address.

    Examples:
        0x305 -> "M" (mtvec)
        0x105 -> "S" (stvec)
        0xC01 -> "U" (time)
        0x001 -> "U" (fflags, outside every range)
    """
    for start, end, privilege in PRIVILEGE_RANGES:
        if address >= start and (end is None or address < end):
            return privilege
    return DEFAULT_PRIVILEGE


def parse_csr_line(line: str) -> Optional[CSR]:
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    match = CSR_LINE_RE.match(line)
    if not match:
        return None

    address, name = match.groups()
    return CSR(name, address, privilege_for_address(int(address, 16)))


def parse_csr_file(content: str) -> List[CSR]:
    """Parse a CSR table, keeping every matching record (aliases included)."""
    csrs = []
    for line in content.split('\n'):
        csr = parse_csr_line(line)
        if csr:
            csrs.append(csr)
    return csrs


def extract_csrs(csr_path: Path) -> List[CSR]:
    """Read and parse the CSR table; a missing or unreadable file yields no CSRs."""
    print("\n" + "=" * 70)
    print("EXTRACTING CSRS")
    print("=" * 70)

    try:
        content = Path(csr_path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        print(f"  WARNING: Cannot read CSR table {csr_path}: {e}")
        return []

    csrs = parse_csr_file(content)

    by_privilege = {}
    for csr in csrs:
        by_privilege[csr.privilege] = by_privilege.get(csr.privilege, 0) + 1

    print(f"✓ Extracted {len(csrs)} CSRs")
    for privilege in sorted(by_privilege):
        print(f"  {privilege}: {by_privilege[privilege]}")

    return csrs
