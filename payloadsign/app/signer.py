"""Payload signing service.

Turns digests into signature containers, embeds containers into payloads,
and verifies signed payloads end to end. All I/O goes through ports.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from payloadsign.app.hash_planner import PayloadHashPlanner, PayloadHashSet
from payloadsign.app.ports import LedgerPort, PayloadAssemblerPort, RsaPort
from payloadsign.app.verifier import PayloadVerifier, pad_rsa_sha256_hash
from payloadsign.errors import ParseError
from payloadsign.format.payload import BRILLO_MAJOR_PAYLOAD_VERSION, PayloadLayout
from payloadsign.format.signatures import (
    SIGNATURE_VERSION,
    SignatureEntry,
    decode_signatures,
    encode_signatures,
)
from payloadsign.utils.hashing import DIGEST_SIZE

logger = logging.getLogger(__name__)


class PayloadSigner:
    """Orchestrates signing and verification of update payloads."""

    def __init__(
        self,
        rsa_port: RsaPort,
        hash_planner: PayloadHashPlanner,
        verifier: PayloadVerifier,
        assembler: PayloadAssemblerPort,
        ledger_port: LedgerPort | None = None,
    ):
        """Initialize payload signer.

        Args:
            rsa_port: Key loading and RSA transforms
            hash_planner: Computes signing hashes and signature sizes
            verifier: Checks signature containers
            assembler: Payload layout reads and writes
            ledger_port: Audit logging port (None disables auditing)
        """
        self.rsa = rsa_port
        self.planner = hash_planner
        self.verifier = verifier
        self.assembler = assembler
        self.ledger = ledger_port

    def _audit(
        self,
        operation: str,
        inputs: list[str],
        outputs: list[str],
        args: dict[str, Any],
    ) -> None:
        if self.ledger is None:
            return
        self.ledger.log(operation=operation, inputs=inputs, outputs=outputs, args=args)

    def sign_hash_with_keys(self, digest: bytes, private_key_paths: Sequence[Path]) -> bytes:
        """Sign ``digest`` with every key, in order, and return the encoded container.

        Args:
            digest: 32-byte SHA-256 digest
            private_key_paths: Private keys; one signature entry per key

        Returns:
            Signature container bytes

        Raises:
            KeyLoadError: If a key cannot be read
            RsaOperationError: If the RSA primitive rejects a key or operation
        """
        if len(digest) != DIGEST_SIZE:
            raise ValueError(f"Digest must be {DIGEST_SIZE} bytes, got {len(digest)}")
        if not private_key_paths:
            raise ValueError("At least one private key is required for signing")

        entries: list[SignatureEntry] = []
        for path in private_key_paths:
            key = self.rsa.load_private_key(Path(path))
            padded = pad_rsa_sha256_hash(digest, key.modulus_size)
            entries.append(SignatureEntry(version=SIGNATURE_VERSION, data=self.rsa.sign(key, padded)))

        return encode_signatures(entries)

    def sign_payload(
        self,
        unsigned_payload_path: Path,
        private_key_paths: Sequence[Path],
        output_path: Path,
    ) -> PayloadHashSet:
        """Hash, sign and embed signatures into a payload in one step.

        ``output_path`` may equal ``unsigned_payload_path`` to sign in place.

        Returns:
            The hash set that was signed
        """
        unsigned_payload_path = Path(unsigned_payload_path)
        output_path = Path(output_path)

        layout = self.assembler.read_layout(unsigned_payload_path)
        sizes = self.planner.signature_sizes(private_key_paths)
        hash_set = self.planner.hash_payload_for_signing(unsigned_payload_path, sizes)

        payload_signature = self.sign_hash_with_keys(hash_set.payload_hash, private_key_paths)
        metadata_signature = None
        if layout.major_version == BRILLO_MAJOR_PAYLOAD_VERSION:
            metadata_signature = self.sign_hash_with_keys(hash_set.metadata_hash, private_key_paths)

        self.assembler.embed_signatures(
            unsigned_payload_path, payload_signature, metadata_signature, output_path
        )

        logger.info(
            "Signed payload %s with %d key(s) -> %s",
            unsigned_payload_path,
            len(private_key_paths),
            output_path,
        )
        self._audit(
            "sign_payload",
            inputs=[str(unsigned_payload_path), *(str(p) for p in private_key_paths)],
            outputs=[str(output_path), hash_set.payload_hash.hex(), hash_set.metadata_hash.hex()],
            args={"key_count": len(private_key_paths), "signature_blob_length": len(payload_signature)},
        )
        return hash_set

    def add_signatures_to_payload(
        self,
        payload_path: Path,
        payload_signature: bytes,
        metadata_signature: bytes | None,
        output_path: Path,
    ) -> PayloadLayout:
        """Embed containers produced by an offline signer.

        Raises:
            ParseError: If a container is malformed or empty
            PayloadFormatError: If a container does not fit the reserved layout
        """
        for name, blob in (("payload", payload_signature), ("metadata", metadata_signature)):
            if blob is None:
                continue
            if not decode_signatures(blob):
                raise ParseError(f"The {name} signature container holds no signatures")

        layout = self.assembler.embed_signatures(
            Path(payload_path), payload_signature, metadata_signature, Path(output_path)
        )

        self._audit(
            "embed_signatures",
            inputs=[str(payload_path)],
            outputs=[str(output_path)],
            args={
                "payload_signature_size": len(payload_signature),
                "metadata_signature_size": len(metadata_signature or b""),
            },
        )
        return layout

    def verify_signed_payload(self, payload_path: Path, public_key_paths: Sequence[Path]) -> bool:
        """Verify a signed payload against candidate public keys.

        Returns False when the payload carries no signature, holds bytes past
        the end of its signature, or no candidate key validates it.

        Raises:
            DigestInputError: If the payload cannot be read
            PayloadFormatError: If the payload metadata is malformed
            KeyLoadError: If a public key cannot be read
            RsaOperationError: If a public key size is not supported
        """
        payload_path = Path(payload_path)
        layout = self.assembler.read_layout(payload_path)
        region = layout.payload_signature_region

        if region is None:
            logger.warning("Payload %s carries no payload signature", payload_path)
            verified = False
        elif region.end != layout.file_size:
            logger.warning(
                "Payload %s is %d bytes but its signature ends at offset %d",
                payload_path,
                layout.file_size,
                region.end,
            )
            verified = False
        else:
            hash_set = self.planner.hash_signed_payload(payload_path)
            verified = self.verifier.verify_signature_with_keys(
                self.assembler.read_region(payload_path, region),
                public_key_paths,
                hash_set.payload_hash,
            )
            metadata_region = layout.metadata_signature_region
            if verified and metadata_region is not None:
                verified = self.verifier.verify_signature_with_keys(
                    self.assembler.read_region(payload_path, metadata_region),
                    public_key_paths,
                    hash_set.metadata_hash,
                )

        self._audit(
            "verify_payload",
            inputs=[str(payload_path), *(str(p) for p in public_key_paths)],
            outputs=[],
            args={"verified": verified},
        )
        return verified
