"""RSA port interface for key loading and raw signature transforms."""

from pathlib import Path
from typing import Protocol


class KeyHandle(Protocol):
    """Opaque reference to key material.

    Exposes only where the key came from and its modulus size in bytes;
    the key bytes themselves stay inside the adapter.
    """

    @property
    def location(self) -> Path: ...

    @property
    def modulus_size(self) -> int: ...


class RsaPort(Protocol):
    """Port interface for the RSA primitive.

    Adapters implementing this port must provide:
    - PEM key loading (private and public)
    - Private-key transform of a PKCS#1 v1.5 padded block
    - Public-key transform recovering the padded block from a signature

    Side effects: Reads key files (offline).
    """

    def load_private_key(self, path: Path) -> KeyHandle:
        """Load a private key.

        Args:
            path: Key file location

        Returns:
            Handle carrying the key's modulus size

        Raises:
            KeyLoadError: If the key is missing, unreadable, or not RSA
            RsaOperationError: If the key size is not supported
        """
        ...

    def load_public_key(self, path: Path) -> KeyHandle:
        """Load a public key.

        Raises:
            KeyLoadError: If the key is missing, unreadable, or not RSA
            RsaOperationError: If the key size is not supported
        """
        ...

    def sign(self, key: KeyHandle, padded_block: bytes) -> bytes:
        """Apply the private-key transform to ``padded_block``.

        Args:
            key: Private key handle from :meth:`load_private_key`
            padded_block: PKCS#1 v1.5 block sized to the key's modulus

        Returns:
            Raw signature bytes, ``key.modulus_size`` long

        Raises:
            RsaOperationError: On unsupported key size or primitive failure
        """
        ...

    def recover(self, key: KeyHandle, signature: bytes) -> bytes | None:
        """Apply the public-key transform to ``signature``.

        Returns:
            The recovered padded block, or None if ``signature`` does not
            recover to a well-formed block under ``key``
        """
        ...
