"""Tests for PKCS#1 v1.5 SHA-256 block framing."""

import pytest

from payloadsign.app.verifier import pad_rsa2048_sha256_hash, pad_rsa_sha256_hash
from payloadsign.format.pkcs1 import (
    SHA256_DIGEST_INFO_PREFIX,
    frame_digest_info,
    pad_sha256_digest,
    unpad_sha256_block,
)
from payloadsign.utils.hashing import compute_digest

DIGEST = compute_digest(b"This is some data to sign.")


def test_rsa2048_block_structure():
    """The 2048-bit block is 00 01, 202 bytes of FF, 00, DigestInfo, digest."""
    block = pad_rsa2048_sha256_hash(DIGEST)

    assert len(block) == 256
    assert block[:2] == b"\x00\x01"
    assert block[2:204] == b"\xff" * 202
    assert block[204] == 0
    assert block[205:224] == SHA256_DIGEST_INFO_PREFIX
    assert block[224:] == DIGEST


def test_digest_info_prefix_bytes():
    assert SHA256_DIGEST_INFO_PREFIX.hex() == "3031300d060960864801650304020105000420"


def test_block_scales_with_modulus_size():
    block = pad_rsa_sha256_hash(DIGEST, 512)

    assert len(block) == 512
    assert block.endswith(SHA256_DIGEST_INFO_PREFIX + DIGEST)
    assert pad_rsa_sha256_hash(DIGEST, 256) == pad_rsa2048_sha256_hash(DIGEST)


@pytest.mark.parametrize("length", [0, 20, 31, 33, 64])
def test_wrong_digest_length_rejected(length):
    with pytest.raises(ValueError):
        pad_rsa2048_sha256_hash(b"\x00" * length)


def test_modulus_too_small_rejected():
    # 51 bytes of DigestInfo + 3 framing bytes leaves fewer than 8 filler bytes
    with pytest.raises(ValueError):
        pad_sha256_digest(DIGEST, 61)
    assert len(pad_sha256_digest(DIGEST, 62)) == 62


def test_unpad_round_trip():
    block = pad_rsa2048_sha256_hash(DIGEST)

    assert unpad_sha256_block(block, 256) == DIGEST


@pytest.mark.parametrize(
    "mutate",
    [
        lambda b: b"\x00\x02" + b[2:],
        lambda b: b[:10] + b"\xfe" + b[11:],
        lambda b: b[:205] + b"\x31" + b[206:],
        lambda b: b[:-1],
    ],
)
def test_unpad_rejects_bad_framing(mutate):
    block = mutate(pad_rsa2048_sha256_hash(DIGEST))

    assert unpad_sha256_block(block, 256) is None


def test_frame_digest_info_matches_pad():
    info = SHA256_DIGEST_INFO_PREFIX + DIGEST

    assert frame_digest_info(info, 256) == pad_rsa2048_sha256_hash(DIGEST)
