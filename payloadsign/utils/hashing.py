"""Hashing utilities for deterministic buffer and file-region digests."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Iterable
from pathlib import Path

from payloadsign.errors import DigestInputError

DIGEST_SIZE = 32
DEFAULT_CHUNK_SIZE = 65536


def compute_digest(content: bytes) -> bytes:
    """Compute the raw SHA-256 digest of ``content``.

    Args:
        content: Bytes to hash

    Returns:
        32-byte digest
    """
    return hashlib.sha256(content).digest()


def compute_sha256_hex(content: bytes) -> str:
    """Compute SHA-256 hash of content as a hexadecimal string."""
    return hashlib.sha256(content).hexdigest()


def compute_digest_of_file_region(
    file_path: Path, offset: int, length: int, *, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> bytes:
    """Digest exactly ``length`` bytes of ``file_path`` starting at ``offset``.

    Raises:
        DigestInputError: If the file cannot be read or the region exceeds its bounds
    """
    return compute_digest_of_file_regions(file_path, [(offset, length)], chunk_size=chunk_size)


def compute_digest_of_file_regions(
    file_path: Path,
    regions: Iterable[tuple[int, int]],
    *,
    prefix: bytes = b"",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> bytes:
    """Digest several ``(offset, length)`` regions of one file, concatenated in order.

    Args:
        file_path: Path to file
        regions: Byte ranges to feed into the digest
        prefix: In-memory bytes fed to the digest before any region
        chunk_size: Size of chunks to read (default 64KB)

    Returns:
        32-byte digest of ``prefix`` followed by the regions

    Raises:
        DigestInputError: If the file cannot be read or any region exceeds its bounds
    """
    sha256 = hashlib.sha256(prefix)
    path = Path(file_path)

    try:
        with open(path, "rb") as f:
            file_size = os.fstat(f.fileno()).st_size
            for offset, length in regions:
                if offset < 0 or length < 0:
                    raise DigestInputError(
                        f"Invalid region (offset={offset}, length={length}) for {path}"
                    )
                if offset + length > file_size:
                    raise DigestInputError(
                        f"Region [{offset}, {offset + length}) exceeds size {file_size} of {path}"
                    )

                f.seek(offset)
                remaining = length
                while remaining > 0:
                    chunk = f.read(min(chunk_size, remaining))
                    if not chunk:
                        raise DigestInputError(f"Unexpected end of file while reading {path}")
                    sha256.update(chunk)
                    remaining -= len(chunk)
    except OSError as exc:
        raise DigestInputError(f"Cannot read {path}: {exc}") from exc

    return sha256.digest()
