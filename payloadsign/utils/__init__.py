"""Utility modules for common operations."""

from payloadsign.utils.crypto import atomic_write_bytes, load_or_create_hmac_key
from payloadsign.utils.hashing import (
    DIGEST_SIZE,
    compute_digest,
    compute_digest_of_file_region,
    compute_digest_of_file_regions,
    compute_sha256_hex,
)

__all__ = [
    "DIGEST_SIZE",
    "atomic_write_bytes",
    "compute_digest",
    "compute_digest_of_file_region",
    "compute_digest_of_file_regions",
    "compute_sha256_hex",
    "load_or_create_hmac_key",
]
