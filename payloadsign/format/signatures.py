"""Signature container codec.

The container is an ordered list of signature entries framed with the
protocol-buffer wire format used by update payloads::

    Signatures { repeated Signature signatures = 1; }
    Signature  { uint32 version = 1; bytes data = 2; }

Unknown fields are skipped on decode. Unknown version tags are preserved;
only verification decides which versions it understands.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import cast

from payloadsign.errors import ParseError

SIGNATURE_VERSION = 1

_WIRE_VARINT = 0
_WIRE_FIXED64 = 1
_WIRE_LENGTH_DELIMITED = 2
_WIRE_FIXED32 = 5

_FIELD_SIGNATURES = 1
_FIELD_VERSION = 1
_FIELD_DATA = 2

_MAX_VARINT_BYTES = 10
_MAX_UINT32 = 0xFFFFFFFF


@dataclass(frozen=True, slots=True)
class SignatureEntry:
    """One signature produced by one signing key."""

    version: int
    data: bytes

    def __post_init__(self) -> None:
        if not 0 <= self.version <= _MAX_UINT32:
            raise ValueError(f"Signature version out of range: {self.version}")


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _varint_length(value: int) -> int:
    return len(_encode_varint(value))


def _tag(field_number: int, wire_type: int) -> bytes:
    return _encode_varint((field_number << 3) | wire_type)


def _decode_varint(blob: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    for _ in range(_MAX_VARINT_BYTES):
        if pos >= len(blob):
            raise ParseError("Truncated varint in signature container")
        byte = blob[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
    raise ParseError("Varint exceeds 10 bytes in signature container")


def _iter_fields(blob: bytes) -> Iterator[tuple[int, int, int | bytes]]:
    """Yield ``(field_number, wire_type, value)`` for each field of a message."""
    pos = 0
    end = len(blob)
    while pos < end:
        key, pos = _decode_varint(blob, pos)
        field_number, wire_type = key >> 3, key & 0x07
        if field_number == 0:
            raise ParseError("Invalid field number 0 in signature container")

        if wire_type == _WIRE_VARINT:
            value, pos = _decode_varint(blob, pos)
            yield field_number, wire_type, value
        elif wire_type == _WIRE_LENGTH_DELIMITED:
            length, pos = _decode_varint(blob, pos)
            if pos + length > end:
                raise ParseError(
                    f"Length-delimited field {field_number} overruns container "
                    f"({length} bytes at offset {pos}, {end} available)"
                )
            yield field_number, wire_type, blob[pos : pos + length]
            pos += length
        elif wire_type in (_WIRE_FIXED32, _WIRE_FIXED64):
            width = 4 if wire_type == _WIRE_FIXED32 else 8
            if pos + width > end:
                raise ParseError(f"Truncated fixed-width field {field_number}")
            yield field_number, wire_type, blob[pos : pos + width]
            pos += width
        else:
            raise ParseError(f"Unsupported wire type {wire_type} for field {field_number}")


def _encode_entry(entry: SignatureEntry) -> bytes:
    return b"".join(
        [
            _tag(_FIELD_VERSION, _WIRE_VARINT),
            _encode_varint(entry.version),
            _tag(_FIELD_DATA, _WIRE_LENGTH_DELIMITED),
            _encode_varint(len(entry.data)),
            entry.data,
        ]
    )


def _decode_entry(blob: bytes) -> SignatureEntry:
    version = 0
    data = b""
    for field_number, wire_type, value in _iter_fields(blob):
        if field_number == _FIELD_VERSION:
            if wire_type != _WIRE_VARINT:
                raise ParseError("Signature version must be a varint")
            version = cast(int, value)
            if version > _MAX_UINT32:
                raise ParseError(f"Signature version {version} exceeds uint32")
        elif field_number == _FIELD_DATA:
            if wire_type != _WIRE_LENGTH_DELIMITED:
                raise ParseError("Signature data must be length-delimited")
            data = cast(bytes, value)
    return SignatureEntry(version=version, data=data)


def encode_signatures(entries: Iterable[SignatureEntry]) -> bytes:
    """Serialize ``entries`` into a signature container, preserving order."""
    parts: list[bytes] = []
    for entry in entries:
        body = _encode_entry(entry)
        parts.append(_tag(_FIELD_SIGNATURES, _WIRE_LENGTH_DELIMITED))
        parts.append(_encode_varint(len(body)))
        parts.append(body)
    return b"".join(parts)


def decode_signatures(blob: bytes) -> list[SignatureEntry]:
    """Parse a signature container.

    Raises:
        ParseError: If the container is truncated or its framing is malformed
    """
    entries: list[SignatureEntry] = []
    for field_number, wire_type, value in _iter_fields(bytes(blob)):
        if field_number != _FIELD_SIGNATURES:
            continue
        if wire_type != _WIRE_LENGTH_DELIMITED:
            raise ParseError("Signature entries must be length-delimited")
        entries.append(_decode_entry(cast(bytes, value)))
    return entries


def encoded_signatures_length(signature_sizes: Sequence[int]) -> int:
    """Return the encoded container length for version-1 entries of the given sizes.

    No entry needs to exist: the length depends only on the data sizes.
    """
    total = 0
    for size in signature_sizes:
        if size <= 0:
            raise ValueError(f"Signature size must be positive, got {size}")
        body = (
            len(_tag(_FIELD_VERSION, _WIRE_VARINT))
            + _varint_length(SIGNATURE_VERSION)
            + len(_tag(_FIELD_DATA, _WIRE_LENGTH_DELIMITED))
            + _varint_length(size)
            + size
        )
        total += len(_tag(_FIELD_SIGNATURES, _WIRE_LENGTH_DELIMITED)) + _varint_length(body) + body
    return total
