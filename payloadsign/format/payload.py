"""Update payload header, manifest, and layout model.

Binary layout (all integers big-endian)::

    magic "CrAU" | u64 major version | u64 manifest size
    | u32 metadata signature size (major version 2 only)
    | manifest | metadata signature | data blobs | payload signature

The manifest records where the payload signature lives relative to the
start of the data blobs. Header plus manifest form the metadata region.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from payloadsign.errors import PayloadFormatError

PAYLOAD_MAGIC = b"CrAU"

CHROMEOS_MAJOR_PAYLOAD_VERSION = 1
BRILLO_MAJOR_PAYLOAD_VERSION = 2
SUPPORTED_MAJOR_VERSIONS = (CHROMEOS_MAJOR_PAYLOAD_VERSION, BRILLO_MAJOR_PAYLOAD_VERSION)

MAX_MANIFEST_SIZE = 64 * 1024 * 1024

_HEADER_V1 = struct.Struct(">4sQQ")
_HEADER_V2 = struct.Struct(">4sQQI")


def header_size(major_version: int) -> int:
    """Return the fixed header size for ``major_version``."""
    if major_version == CHROMEOS_MAJOR_PAYLOAD_VERSION:
        return _HEADER_V1.size
    if major_version == BRILLO_MAJOR_PAYLOAD_VERSION:
        return _HEADER_V2.size
    raise PayloadFormatError(f"Unsupported payload major version: {major_version}")


@dataclass(frozen=True, slots=True)
class SignatureRegion:
    """Byte range of a payload that holds signature bytes once embedded."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


class PayloadManifest(BaseModel):
    """Payload manifest subset owned by the signing layout contract."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    block_size: int = Field(default=4096, gt=0, description="Filesystem block size")
    minor_version: int = Field(default=0, ge=0, description="Payload minor version")
    signatures_offset: int | None = Field(
        default=None,
        ge=0,
        description="Offset of the payload signature blob, relative to the data blobs",
    )
    signatures_size: int | None = Field(
        default=None,
        ge=0,
        description="Size in bytes of the payload signature blob",
    )

    def to_bytes(self) -> bytes:
        """Serialize as canonical JSON (sorted keys, no whitespace)."""
        data = self.model_dump(mode="json", exclude_none=True)
        return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> PayloadManifest:
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise PayloadFormatError(f"Invalid payload manifest: {exc}") from exc


@dataclass(frozen=True, slots=True)
class PayloadHeader:
    """Fixed-size payload header."""

    major_version: int
    manifest_size: int
    metadata_signature_size: int = 0

    @property
    def size(self) -> int:
        return header_size(self.major_version)

    def to_bytes(self) -> bytes:
        if self.major_version == CHROMEOS_MAJOR_PAYLOAD_VERSION:
            if self.metadata_signature_size:
                raise PayloadFormatError(
                    "Major version 1 payloads cannot carry a metadata signature"
                )
            return _HEADER_V1.pack(PAYLOAD_MAGIC, self.major_version, self.manifest_size)
        if self.major_version == BRILLO_MAJOR_PAYLOAD_VERSION:
            return _HEADER_V2.pack(
                PAYLOAD_MAGIC,
                self.major_version,
                self.manifest_size,
                self.metadata_signature_size,
            )
        raise PayloadFormatError(f"Unsupported payload major version: {self.major_version}")

    @classmethod
    def from_bytes(cls, raw: bytes) -> PayloadHeader:
        """Parse a header from the leading bytes of a payload.

        Raises:
            PayloadFormatError: On bad magic, truncation, or unsupported version
        """
        if len(raw) < _HEADER_V1.size:
            raise PayloadFormatError("Payload is too short to contain a header")

        magic, major_version, manifest_size = _HEADER_V1.unpack_from(raw)
        if magic != PAYLOAD_MAGIC:
            raise PayloadFormatError(f"Bad payload magic: {magic!r}")
        if manifest_size > MAX_MANIFEST_SIZE:
            raise PayloadFormatError(f"Manifest size {manifest_size} exceeds limit")

        if major_version == CHROMEOS_MAJOR_PAYLOAD_VERSION:
            return cls(major_version=major_version, manifest_size=manifest_size)
        if major_version == BRILLO_MAJOR_PAYLOAD_VERSION:
            if len(raw) < _HEADER_V2.size:
                raise PayloadFormatError("Payload header truncated")
            _, _, _, metadata_signature_size = _HEADER_V2.unpack_from(raw)
            return cls(
                major_version=major_version,
                manifest_size=manifest_size,
                metadata_signature_size=metadata_signature_size,
            )
        raise PayloadFormatError(f"Unsupported payload major version: {major_version}")


def build_metadata(
    major_version: int, manifest: PayloadManifest, *, metadata_signature_size: int = 0
) -> bytes:
    """Return header plus manifest bytes for a payload."""
    manifest_bytes = manifest.to_bytes()
    header = PayloadHeader(
        major_version=major_version,
        manifest_size=len(manifest_bytes),
        metadata_signature_size=metadata_signature_size,
    )
    return header.to_bytes() + manifest_bytes


@dataclass(frozen=True, slots=True)
class PayloadLayout:
    """Offset/size table of a payload file as declared by its metadata."""

    header: PayloadHeader
    manifest: PayloadManifest
    file_size: int

    @property
    def major_version(self) -> int:
        return self.header.major_version

    @property
    def metadata_size(self) -> int:
        return self.header.size + self.header.manifest_size

    @property
    def data_offset(self) -> int:
        return self.metadata_size + self.header.metadata_signature_size

    @property
    def data_length(self) -> int:
        """Length of the data blobs, excluding any payload signature."""
        if self.manifest.signatures_offset is not None:
            return self.manifest.signatures_offset
        return self.file_size - self.data_offset

    @property
    def metadata_signature_region(self) -> SignatureRegion | None:
        if not self.header.metadata_signature_size:
            return None
        return SignatureRegion(self.metadata_size, self.header.metadata_signature_size)

    @property
    def payload_signature_region(self) -> SignatureRegion | None:
        if self.manifest.signatures_offset is None or not self.manifest.signatures_size:
            return None
        return SignatureRegion(
            self.data_offset + self.manifest.signatures_offset,
            self.manifest.signatures_size,
        )

    def validate(self) -> None:
        """Check that every declared region fits in the file.

        Raises:
            PayloadFormatError: If the layout overruns the file
        """
        if self.data_offset > self.file_size:
            raise PayloadFormatError(
                f"Metadata region ends at {self.data_offset}, past file size {self.file_size}"
            )
        if self.data_offset + self.data_length > self.file_size:
            raise PayloadFormatError("Data blobs overrun payload file")
        region = self.payload_signature_region
        if region is not None and region.end > self.file_size:
            raise PayloadFormatError(
                f"Payload signature region [{region.offset}, {region.end}) "
                f"overruns file size {self.file_size}"
            )
