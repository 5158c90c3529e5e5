"""PKCS#1 v1.5 signature block framing for SHA-256 digests (RFC 8017, section 9.2)."""

from __future__ import annotations

import hmac

from payloadsign.utils.hashing import DIGEST_SIZE

# DER encoding of DigestInfo { AlgorithmIdentifier sha256, NULL }, OCTET STRING header.
SHA256_DIGEST_INFO_PREFIX = bytes(
    [
        0x30, 0x31, 0x30, 0x0D, 0x06, 0x09, 0x60, 0x86,
        0x48, 0x01, 0x65, 0x03, 0x04, 0x02, 0x01, 0x05,
        0x00, 0x04, 0x20,
    ]
)  # fmt: skip

_MIN_PADDING = 8


def frame_digest_info(digest_info: bytes, modulus_size: int) -> bytes:
    """Frame ``digest_info`` as ``00 01 FF.. 00 digest_info`` of ``modulus_size`` bytes."""
    filler = modulus_size - len(digest_info) - 3
    if filler < _MIN_PADDING:
        raise ValueError(
            f"Modulus size {modulus_size} is too small for {len(digest_info)} bytes of DigestInfo"
        )
    return b"\x00\x01" + b"\xff" * filler + b"\x00" + digest_info


def pad_sha256_digest(digest: bytes, modulus_size: int) -> bytes:
    """Build the PKCS#1 v1.5 block for a SHA-256 ``digest``.

    Raises:
        ValueError: If ``digest`` is not exactly 32 bytes or the modulus is too small
    """
    if len(digest) != DIGEST_SIZE:
        raise ValueError(f"SHA-256 digest must be {DIGEST_SIZE} bytes, got {len(digest)}")
    return frame_digest_info(SHA256_DIGEST_INFO_PREFIX + bytes(digest), modulus_size)


def unpad_sha256_block(block: bytes, modulus_size: int) -> bytes | None:
    """Return the digest carried by ``block``, or None if the framing is not exact."""
    if len(block) != modulus_size or len(block) < DIGEST_SIZE:
        return None
    digest = bytes(block[-DIGEST_SIZE:])
    try:
        expected = pad_sha256_digest(digest, modulus_size)
    except ValueError:
        return None
    if not hmac.compare_digest(expected, bytes(block)):
        return None
    return digest
