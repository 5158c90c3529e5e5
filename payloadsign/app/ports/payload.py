"""Payload assembler port: the layout contract between payload files and signing."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from payloadsign.format.payload import PayloadLayout, SignatureRegion


class PayloadAssemblerPort(Protocol):
    """Port interface for reading and writing payload files.

    The assembler owns the on-disk layout. Signing code only asks it to
    reserve signature space, to report the offset/size table, and to embed
    finished signature containers.

    Side effects: Reads/writes payload files (offline).
    """

    def write_payload(
        self,
        path: Path,
        data: bytes,
        *,
        major_version: int | None = None,
        signature_blob_length: int | None = None,
    ) -> PayloadLayout:
        """Write an unsigned payload.

        Args:
            path: Destination payload path
            data: Concatenated data blobs
            major_version: Payload major version (defaults to configured version)
            signature_blob_length: When given, reserve zero-filled signature
                regions of this length

        Returns:
            Layout of the written payload
        """
        ...

    def read_layout(self, path: Path) -> PayloadLayout:
        """Parse the header and manifest of ``path``.

        Raises:
            DigestInputError: If the payload cannot be read
            PayloadFormatError: If the metadata is malformed
        """
        ...

    def read_region(self, path: Path, region: SignatureRegion) -> bytes:
        """Return the bytes of ``region`` in ``path``."""
        ...

    def embed_signatures(
        self,
        payload_path: Path,
        payload_signature: bytes,
        metadata_signature: bytes | None,
        output_path: Path,
    ) -> PayloadLayout:
        """Write ``payload_path`` to ``output_path`` with signatures embedded.

        Raises:
            PayloadFormatError: If the signatures do not fit the reserved layout
        """
        ...
