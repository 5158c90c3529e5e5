"""Filesystem-backed payload assembler."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from payloadsign.app.ports import PayloadAssemblerPort
from payloadsign.errors import DigestInputError, PayloadFormatError
from payloadsign.format.payload import (
    BRILLO_MAJOR_PAYLOAD_VERSION,
    CHROMEOS_MAJOR_PAYLOAD_VERSION,
    PayloadHeader,
    PayloadLayout,
    PayloadManifest,
    SignatureRegion,
    build_metadata,
    header_size,
)
from payloadsign.utils.crypto import atomic_write_bytes

logger = logging.getLogger(__name__)

_MAX_HEADER_SIZE = header_size(BRILLO_MAJOR_PAYLOAD_VERSION)


class PayloadFile(PayloadAssemblerPort):
    """Adapter that lays out update payloads on disk.

    Signature regions are either absent (unsigned payload), reserved as
    zero-filled placeholders, or populated with signature containers. The
    manifest and header always describe the final signed layout when a
    region is reserved or populated.
    """

    def __init__(
        self,
        *,
        major_version: int = BRILLO_MAJOR_PAYLOAD_VERSION,
        block_size: int = 4096,
        minor_version: int = 0,
    ) -> None:
        header_size(major_version)
        self.major_version = major_version
        self.block_size = block_size
        self.minor_version = minor_version

    def _write(
        self,
        path: Path,
        major_version: int,
        manifest: PayloadManifest,
        metadata_signature: bytes,
        data: bytes,
        payload_signature: bytes,
    ) -> PayloadLayout:
        metadata = build_metadata(
            major_version, manifest, metadata_signature_size=len(metadata_signature)
        )
        blob = b"".join([metadata, metadata_signature, data, payload_signature])
        atomic_write_bytes(Path(path), blob)

        logger.debug(
            "Wrote payload %s (major=%d, metadata=%d, data=%d, signature=%d bytes)",
            path,
            major_version,
            len(metadata),
            len(data),
            len(payload_signature),
        )
        return PayloadLayout(
            header=PayloadHeader.from_bytes(metadata),
            manifest=manifest,
            file_size=len(blob),
        )

    def write_payload(
        self,
        path: Path,
        data: bytes,
        *,
        major_version: int | None = None,
        signature_blob_length: int | None = None,
    ) -> PayloadLayout:
        version = major_version if major_version is not None else self.major_version
        header_size(version)

        manifest = PayloadManifest(block_size=self.block_size, minor_version=self.minor_version)
        metadata_signature = b""
        payload_signature = b""

        if signature_blob_length:
            manifest = manifest.model_copy(
                update={"signatures_offset": len(data), "signatures_size": signature_blob_length}
            )
            payload_signature = bytes(signature_blob_length)
            if version == BRILLO_MAJOR_PAYLOAD_VERSION:
                metadata_signature = bytes(signature_blob_length)

        return self._write(path, version, manifest, metadata_signature, data, payload_signature)

    def read_layout(self, path: Path) -> PayloadLayout:
        try:
            with open(path, "rb") as fh:
                header = PayloadHeader.from_bytes(fh.read(_MAX_HEADER_SIZE))
                fh.seek(header.size)
                manifest_bytes = fh.read(header.manifest_size)
                file_size = os.fstat(fh.fileno()).st_size
        except OSError as exc:
            raise DigestInputError(f"Cannot read payload {path}: {exc}") from exc

        if len(manifest_bytes) != header.manifest_size:
            raise PayloadFormatError(
                f"Manifest truncated in {path}: expected {header.manifest_size} bytes, "
                f"got {len(manifest_bytes)}"
            )

        layout = PayloadLayout(
            header=header,
            manifest=PayloadManifest.from_bytes(manifest_bytes),
            file_size=file_size,
        )
        layout.validate()
        return layout

    def read_region(self, path: Path, region: SignatureRegion) -> bytes:
        try:
            with open(path, "rb") as fh:
                fh.seek(region.offset)
                chunk = fh.read(region.length)
        except OSError as exc:
            raise DigestInputError(f"Cannot read payload {path}: {exc}") from exc

        if len(chunk) != region.length:
            raise PayloadFormatError(
                f"Region [{region.offset}, {region.end}) of {path} is truncated"
            )
        return chunk

    def embed_signatures(
        self,
        payload_path: Path,
        payload_signature: bytes,
        metadata_signature: bytes | None,
        output_path: Path,
    ) -> PayloadLayout:
        layout = self.read_layout(payload_path)
        version = layout.major_version

        if version == CHROMEOS_MAJOR_PAYLOAD_VERSION and metadata_signature:
            raise PayloadFormatError("Major version 1 payloads cannot carry a metadata signature")
        if version == BRILLO_MAJOR_PAYLOAD_VERSION and not metadata_signature:
            raise PayloadFormatError("Major version 2 payloads require a metadata signature")
        metadata_signature = metadata_signature or b""

        reserved = layout.payload_signature_region
        if reserved is not None and reserved.length != len(payload_signature):
            raise PayloadFormatError(
                f"Payload signature is {len(payload_signature)} bytes but "
                f"{reserved.length} were reserved"
            )
        reserved = layout.metadata_signature_region
        if reserved is not None and reserved.length != len(metadata_signature):
            raise PayloadFormatError(
                f"Metadata signature is {len(metadata_signature)} bytes but "
                f"{reserved.length} were reserved"
            )

        data = self.read_region(
            payload_path, SignatureRegion(layout.data_offset, layout.data_length)
        )
        manifest = layout.manifest.model_copy(
            update={
                "signatures_offset": layout.data_length,
                "signatures_size": len(payload_signature),
            }
        )
        return self._write(
            output_path, version, manifest, metadata_signature, data, payload_signature
        )
