"""Binary formats: signature containers and update payload layout."""

from payloadsign.format.payload import (
    BRILLO_MAJOR_PAYLOAD_VERSION,
    CHROMEOS_MAJOR_PAYLOAD_VERSION,
    PAYLOAD_MAGIC,
    SUPPORTED_MAJOR_VERSIONS,
    PayloadHeader,
    PayloadLayout,
    PayloadManifest,
    SignatureRegion,
    build_metadata,
    header_size,
)
from payloadsign.format.signatures import (
    SIGNATURE_VERSION,
    SignatureEntry,
    decode_signatures,
    encode_signatures,
    encoded_signatures_length,
)

__all__ = [
    "BRILLO_MAJOR_PAYLOAD_VERSION",
    "CHROMEOS_MAJOR_PAYLOAD_VERSION",
    "PAYLOAD_MAGIC",
    "SIGNATURE_VERSION",
    "SUPPORTED_MAJOR_VERSIONS",
    "PayloadHeader",
    "PayloadLayout",
    "PayloadManifest",
    "SignatureEntry",
    "SignatureRegion",
    "build_metadata",
    "decode_signatures",
    "encode_signatures",
    "encoded_signatures_length",
    "header_size",
]
