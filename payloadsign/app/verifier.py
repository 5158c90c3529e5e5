"""Signature verification against one or more candidate public keys."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Sequence
from pathlib import Path

from payloadsign.app.ports import KeyHandle, RsaPort
from payloadsign.errors import ParseError
from payloadsign.format.pkcs1 import pad_sha256_digest, unpad_sha256_block
from payloadsign.format.signatures import SIGNATURE_VERSION, SignatureEntry, decode_signatures

logger = logging.getLogger(__name__)

RSA2048_MODULUS_SIZE = 256


def pad_rsa_sha256_hash(digest: bytes, modulus_size: int) -> bytes:
    """Build the PKCS#1 v1.5 block for ``digest`` sized to ``modulus_size`` bytes."""
    return pad_sha256_digest(digest, modulus_size)


def pad_rsa2048_sha256_hash(digest: bytes) -> bytes:
    """Build the 256-byte PKCS#1 v1.5 block for a 2048-bit key.

    Raises:
        ValueError: If ``digest`` is not exactly 32 bytes
    """
    return pad_sha256_digest(digest, RSA2048_MODULUS_SIZE)


class PayloadVerifier:
    """Checks signature containers against candidate public keys.

    A container matches if any version-1 entry recovers to the expected padded
    block under any candidate key. Malformed containers never match.
    """

    def __init__(self, rsa_port: RsaPort) -> None:
        self.rsa = rsa_port

    @staticmethod
    def _decode(signature_blob: bytes) -> list[SignatureEntry]:
        try:
            return decode_signatures(signature_blob)
        except ParseError as exc:
            logger.warning("Rejecting malformed signature container: %s", exc)
            return []

    def _match(
        self, entries: list[SignatureEntry], key: KeyHandle, expected_padded_block: bytes
    ) -> bool:
        for index, entry in enumerate(entries):
            if entry.version != SIGNATURE_VERSION:
                logger.debug("Skipping signature %d with unknown version %d", index, entry.version)
                continue
            recovered = self.rsa.recover(key, entry.data)
            if recovered is not None and hmac.compare_digest(recovered, expected_padded_block):
                logger.debug("Signature %d verified with %s", index, key.location)
                return True
        return False

    def verify_signature(
        self, signature_blob: bytes, public_key_path: Path, expected_padded_block: bytes
    ) -> bool:
        """Return True if any entry of ``signature_blob`` verifies under one key.

        Raises:
            KeyLoadError: If the public key cannot be read
            RsaOperationError: If the key size is unsupported
        """
        key = self.rsa.load_public_key(Path(public_key_path))
        return self._match(self._decode(signature_blob), key, expected_padded_block)

    def verify_signature_with_keys(
        self, signature_blob: bytes, public_key_paths: Sequence[Path], digest: bytes
    ) -> bool:
        """Return True if any entry verifies under any of ``public_key_paths``.

        Every key is loaded before the first check, so a bad key path or an
        unsupported key size fails the call regardless of its position in
        the list.
        """
        keys = [self.rsa.load_public_key(Path(path)) for path in public_key_paths]
        entries = self._decode(signature_blob)
        if not entries:
            return False

        for key in keys:
            if self._match(entries, key, pad_rsa_sha256_hash(digest, key.modulus_size)):
                return True

        logger.debug("No candidate key among %d verified the signature", len(keys))
        return False

    def get_raw_hash_from_signature(self, signature: bytes, public_key_path: Path) -> bytes | None:
        """Recover the SHA-256 digest a raw signature was made over, if it is well formed."""
        key = self.rsa.load_public_key(Path(public_key_path))
        block = self.rsa.recover(key, signature)
        if block is None:
            return None
        return unpad_sha256_block(block, key.modulus_size)
