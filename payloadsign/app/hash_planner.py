"""Payload hash planning: signature size prediction and signing hashes.

The hashes produced here never cover signature bytes. Metadata is hashed in
its signed shape (manifest and header already describing the signature
regions), so a payload hashed before signing and the same payload hashed
after its signatures were embedded yield identical hash sets.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from payloadsign.app.ports import PayloadAssemblerPort, RsaPort
from payloadsign.format.payload import (
    BRILLO_MAJOR_PAYLOAD_VERSION,
    PayloadLayout,
    SignatureRegion,
    build_metadata,
)
from payloadsign.format.signatures import encoded_signatures_length
from payloadsign.utils.hashing import (
    DEFAULT_CHUNK_SIZE,
    DIGEST_SIZE,
    compute_digest,
    compute_digest_of_file_regions,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PayloadHashSet:
    """Digests an offline signer needs: one for the payload, one for its metadata."""

    payload_hash: bytes
    metadata_hash: bytes

    def __post_init__(self) -> None:
        for name in ("payload_hash", "metadata_hash"):
            value = getattr(self, name)
            if len(value) != DIGEST_SIZE:
                raise ValueError(f"{name} must be {DIGEST_SIZE} bytes, got {len(value)}")

    def to_json(self) -> str:
        """Serialize as a JSON document with hex-encoded digests."""
        return json.dumps(
            {"metadata_hash": self.metadata_hash.hex(), "payload_hash": self.payload_hash.hex()},
            sort_keys=True,
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> PayloadHashSet:
        """Parse a document produced by :meth:`to_json`.

        Raises:
            ValueError: If the document is malformed
        """
        try:
            data = json.loads(raw)
            return cls(
                payload_hash=bytes.fromhex(data["payload_hash"]),
                metadata_hash=bytes.fromhex(data["metadata_hash"]),
            )
        except (KeyError, TypeError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid payload hash set document: {exc}") from exc


class PayloadHashPlanner:
    """Computes what must be signed and how much room the signatures take."""

    def __init__(
        self,
        rsa_port: RsaPort,
        assembler: PayloadAssemblerPort,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.rsa = rsa_port
        self.assembler = assembler
        self.chunk_size = chunk_size

    def signature_sizes(self, private_key_paths: Sequence[Path]) -> list[int]:
        """Return the modulus size in bytes of each key, in order.

        Raises:
            KeyLoadError: If any key cannot be read
            RsaOperationError: If any key size is not supported
        """
        return [self.rsa.load_private_key(Path(path)).modulus_size for path in private_key_paths]

    def signature_blob_length_for_sizes(self, signature_sizes: Sequence[int]) -> int:
        """Return the signature container length for signatures of the given sizes."""
        if not signature_sizes:
            raise ValueError("At least one signature size is required")
        return encoded_signatures_length(signature_sizes)

    def signature_blob_length(self, private_key_paths: Sequence[Path]) -> int:
        """Predict the signature container length for ``private_key_paths``.

        Only the key moduli are inspected; nothing is signed.

        Raises:
            KeyLoadError: If any key cannot be read
            RsaOperationError: If any key size is not supported
        """
        length = self.signature_blob_length_for_sizes(self.signature_sizes(private_key_paths))
        logger.debug(
            "Predicted %d-byte signature blob for %d key(s)", length, len(private_key_paths)
        )
        return length

    def reserved_signature_region(self, payload_path: Path) -> SignatureRegion | None:
        """Return the payload signature region declared by ``payload_path``, if any."""
        return self.assembler.read_layout(Path(payload_path)).payload_signature_region

    def _hash_regions(
        self, payload_path: Path, layout: PayloadLayout, metadata: bytes
    ) -> PayloadHashSet:
        data_region = (layout.data_offset, layout.data_length)
        payload_hash = compute_digest_of_file_regions(
            payload_path, [data_region], prefix=metadata, chunk_size=self.chunk_size
        )
        return PayloadHashSet(payload_hash=payload_hash, metadata_hash=compute_digest(metadata))

    def hash_payload_for_signing(
        self, payload_path: Path, signature_sizes: Sequence[int]
    ) -> PayloadHashSet:
        """Hash a payload as it will look once signed with keys of ``signature_sizes``.

        The signature regions are derived from the payload's own offset table
        and excluded from both digests. Unsigned payloads, payloads with
        reserved placeholder regions, and signed payloads all hash the same.

        Raises:
            DigestInputError: If the payload cannot be read
            PayloadFormatError: If the payload metadata is malformed
        """
        payload_path = Path(payload_path)
        blob_length = self.signature_blob_length_for_sizes(signature_sizes)
        layout = self.assembler.read_layout(payload_path)

        manifest = layout.manifest.model_copy(
            update={"signatures_offset": layout.data_length, "signatures_size": blob_length}
        )
        metadata_signature_size = (
            blob_length if layout.major_version == BRILLO_MAJOR_PAYLOAD_VERSION else 0
        )
        metadata = build_metadata(
            layout.major_version, manifest, metadata_signature_size=metadata_signature_size
        )
        return self._hash_regions(payload_path, layout, metadata)

    def hash_signed_payload(self, payload_path: Path) -> PayloadHashSet:
        """Hash a payload using exactly the signature regions it declares."""
        payload_path = Path(payload_path)
        layout = self.assembler.read_layout(payload_path)
        metadata = self.assembler.read_region(
            payload_path, SignatureRegion(0, layout.metadata_size)
        )
        return self._hash_regions(payload_path, layout, metadata)
