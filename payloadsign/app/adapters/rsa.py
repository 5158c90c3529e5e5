"""RSA port implementation backed by the ``cryptography`` package."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from cryptography.hazmat.primitives.serialization import (
    load_pem_private_key,
    load_pem_public_key,
)

from payloadsign.app.ports import KeyHandle, RsaPort
from payloadsign.errors import KeyLoadError, RsaOperationError
from payloadsign.format.pkcs1 import frame_digest_info, unpad_sha256_block

logger = logging.getLogger(__name__)

DEFAULT_SUPPORTED_KEY_SIZES = (2048, 4096)


@dataclass(frozen=True, slots=True)
class RsaKeyHandle:
    """Loaded RSA key plus the metadata the signing layer is allowed to see."""

    location: Path
    modulus_size: int
    key: Any = field(repr=False, compare=False)


class CryptographyRsaAdapter(RsaPort):
    """Adapter that loads PEM keys and runs PKCS#1 v1.5 transforms via OpenSSL.

    The private transform is requested through ``Prehashed(SHA256)`` after the
    padded block has been checked against the exact framing the library will
    build, so the output equals the raw RSA transform of that block.
    """

    def __init__(self, *, supported_key_sizes: Iterable[int] = DEFAULT_SUPPORTED_KEY_SIZES):
        self.supported_key_sizes = frozenset(supported_key_sizes)

    @staticmethod
    def _read_key_bytes(path: Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise KeyLoadError(f"Cannot read key file {path}: {exc}") from exc

    def load_private_key(self, path: Path) -> RsaKeyHandle:
        raw = self._read_key_bytes(path)
        try:
            key = load_pem_private_key(raw, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyLoadError(f"Cannot parse private key {path}: {exc}") from exc

        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyLoadError(f"Private key {path} is not an RSA key")

        return self._handle(path, key)

    def load_public_key(self, path: Path) -> RsaKeyHandle:
        raw = self._read_key_bytes(path)
        try:
            key = load_pem_public_key(raw)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise KeyLoadError(f"Cannot parse public key {path}: {exc}") from exc

        if not isinstance(key, rsa.RSAPublicKey):
            raise KeyLoadError(f"Public key {path} is not an RSA key")

        return self._handle(path, key)

    def _check_key_size(self, key_size: int, location: Path) -> None:
        if key_size not in self.supported_key_sizes:
            raise RsaOperationError(
                f"Unsupported RSA key size {key_size} for {location}; "
                f"supported sizes: {sorted(self.supported_key_sizes)}"
            )

    def _handle(self, path: Path, key: Any) -> RsaKeyHandle:
        self._check_key_size(key.key_size, Path(path))
        return RsaKeyHandle(location=Path(path), modulus_size=(key.key_size + 7) // 8, key=key)

    def _resolve(self, handle: KeyHandle, key_type: type) -> Any:
        if not isinstance(handle, RsaKeyHandle):
            raise RsaOperationError(f"Unsupported key handle type: {type(handle).__name__}")
        if not isinstance(handle.key, key_type):
            raise RsaOperationError(f"Key {handle.location} is not a {key_type.__name__}")
        self._check_key_size(handle.key.key_size, handle.location)
        return handle.key

    def sign(self, key: KeyHandle, padded_block: bytes) -> bytes:
        private_key = self._resolve(key, rsa.RSAPrivateKey)

        digest = unpad_sha256_block(padded_block, key.modulus_size)
        if digest is None:
            raise RsaOperationError(
                f"Input is not a {key.modulus_size}-byte PKCS#1 v1.5 SHA-256 block"
            )

        try:
            signature = private_key.sign(digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
        except (ValueError, TypeError) as exc:
            raise RsaOperationError(f"RSA signing failed with {key.location}: {exc}") from exc

        if len(signature) != key.modulus_size:
            raise RsaOperationError(
                f"Signature length {len(signature)} does not match modulus size {key.modulus_size}"
            )
        return signature

    def recover(self, key: KeyHandle, signature: bytes) -> bytes | None:
        public_key = self._resolve(key, rsa.RSAPublicKey)

        if len(signature) != key.modulus_size:
            logger.debug(
                "Signature length %d does not match %s modulus size %d",
                len(signature),
                key.location,
                key.modulus_size,
            )
            return None

        try:
            digest_info = public_key.recover_data_from_signature(
                bytes(signature), padding.PKCS1v15(), None
            )
        except InvalidSignature:
            return None

        return frame_digest_info(digest_info, key.modulus_size)
