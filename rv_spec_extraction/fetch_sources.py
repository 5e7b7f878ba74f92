"""
Upstream Source Retrieval

Downloads the riscv-opcodes and riscv-isa-manual source trees as GitHub
archives into a per-run temporary directory. Any failure here is fatal for
the run: a partial dataset is never produced from partial sources.

Requirements: pip install requests
"""

import contextlib
import tarfile
import tempfile
from pathlib import Path
from typing import Iterator

import requests


# ============================================================================
# Configuration
# ============================================================================

OPCODES_ARCHIVE_URL = "https://github.com/riscv/riscv-opcodes/archive/refs/heads/master.tar.gz"
MANUAL_ARCHIVE_URL = "https://github.com/riscv/riscv-isa-manual/archive/refs/heads/main.tar.gz"

REQUEST_TIMEOUT = 120
CHUNK_SIZE = 1 << 16


class SourceFetchError(RuntimeError):
    """Raised when an upstream tree cannot be retrieved or unpacked."""


@contextlib.contextmanager
def working_directory(prefix: str = "rv-spec-data-") -> Iterator[Path]:
    """Temporary directory for one run, removed on every exit path."""
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        yield Path(tmp)


def download_archive(url: str, destination: Path) -> Path:
    """Stream ``url`` to ``destination``."""
    print(f"Fetching {url}...")
    try:
        with requests.get(url, stream=True, timeout=REQUEST_TIMEOUT) as response:
            response.raise_for_status()
            size = 0
            with open(destination, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
                    size += len(chunk)
    except (requests.RequestException, OSError) as e:
        raise SourceFetchError(f"Failed to fetch {url}: {e}") from e

    print(f"✓ Downloaded {size:,} bytes")
    return destination


def unpack_archive(archive: Path, target_dir: Path) -> Path:
    """
    Extract a GitHub source archive.

    GitHub archives hold a single top-level ``<repo>-<ref>/`` directory;
    its path is returned.
    """
    target_dir.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, 'r:*') as tar:
            if hasattr(tarfile, 'data_filter'):
                tar.extractall(target_dir, filter='data')
            else:
                tar.extractall(target_dir)
    except (tarfile.TarError, OSError) as e:
        raise SourceFetchError(f"Failed to unpack {archive.name}: {e}") from e

    roots = [path for path in target_dir.iterdir() if path.is_dir()]
    if len(roots) != 1:
        raise SourceFetchError(
            f"Expected one top-level directory in {archive.name}, found {len(roots)}"
        )
    return roots[0]


def fetch_repository(url: str, work_dir: Path, name: str) -> Path:
    """
    Download and unpack one repository archive below ``work_dir``.

    Returns:
        Root directory of the unpacked source tree
    """
    archive = download_archive(url, work_dir / f"{name}.tar.gz")
    root = unpack_archive(archive, work_dir / name)
    archive.unlink()
    return root
