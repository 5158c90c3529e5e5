"""End-to-end payload signing and verification flows."""

from __future__ import annotations

from pathlib import Path

import pytest

from payloadsign.app import PayloadHashSet
from payloadsign.bootstrap import bootstrap_application
from payloadsign.config import Settings
from payloadsign.errors import ParseError, PayloadFormatError
from payloadsign.format.signatures import SignatureEntry, decode_signatures, encode_signatures

DATA = b"\x00\x01\x02\x03" * 2048


@pytest.mark.parametrize("data", [b"", DATA])
@pytest.mark.parametrize("major_version", [1, 2])
def test_sign_and_verify_payload(
    container, rsa2048_key, rsa2048_second_key, temp_dir: Path, major_version, data
):
    """A signed payload verifies with its key and fails with an unrelated key."""
    unsigned = temp_dir / "unsigned.bin"
    signed = temp_dir / "signed.bin"
    container.assembler.write_payload(unsigned, data, major_version=major_version)

    hash_set = container.signer.sign_payload(unsigned, [rsa2048_key.private_path], signed)

    layout = container.assembler.read_layout(signed)
    assert layout.major_version == major_version
    assert layout.payload_signature_region.length == 264
    assert (layout.metadata_signature_region is not None) == (major_version == 2)
    assert container.hash_planner.hash_signed_payload(signed) == hash_set

    assert container.signer.verify_signed_payload(signed, [rsa2048_key.public_path])
    assert not container.signer.verify_signed_payload(signed, [rsa2048_second_key.public_path])


def test_sign_into_reserved_region_in_place(container, rsa2048_key, temp_dir: Path):
    """Signing in place fills the reserved regions without moving the data blobs."""
    path = temp_dir / "payload.bin"
    keys = [rsa2048_key.private_path]
    reserved = container.assembler.write_payload(
        path, DATA, signature_blob_length=container.hash_planner.signature_blob_length(keys)
    )

    container.signer.sign_payload(path, keys, path)

    layout = container.assembler.read_layout(path)
    assert layout == reserved
    assert container.signer.verify_signed_payload(path, [rsa2048_key.public_path])


def test_tampered_data_fails_verification(container, rsa2048_key, temp_dir: Path):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA)
    container.signer.sign_payload(path, [rsa2048_key.private_path], path)
    layout = container.assembler.read_layout(path)

    raw = bytearray(path.read_bytes())
    raw[layout.data_offset + 5] ^= 0xFF
    path.write_bytes(bytes(raw))

    assert not container.signer.verify_signed_payload(path, [rsa2048_key.public_path])


def test_tampered_metadata_signature_fails_verification(container, rsa2048_key, temp_dir: Path):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA)
    container.signer.sign_payload(path, [rsa2048_key.private_path], path)
    region = container.assembler.read_layout(path).metadata_signature_region

    raw = bytearray(path.read_bytes())
    raw[region.end - 1] ^= 0x01
    path.write_bytes(bytes(raw))

    assert not container.signer.verify_signed_payload(path, [rsa2048_key.public_path])


def test_unsigned_payload_does_not_verify(container, rsa2048_key, temp_dir: Path):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA)

    assert not container.signer.verify_signed_payload(path, [rsa2048_key.public_path])


def test_offline_signing_flow(container, rsa2048_key, rsa2048_second_key, temp_dir: Path):
    """Hash on one side, sign the exported hashes elsewhere, then embed."""
    unsigned = temp_dir / "unsigned.bin"
    signed = temp_dir / "signed.bin"
    keys = [rsa2048_key.private_path, rsa2048_second_key.private_path]
    container.assembler.write_payload(unsigned, DATA)

    sizes = container.hash_planner.signature_sizes(keys)
    exported = container.hash_planner.hash_payload_for_signing(unsigned, sizes).to_json()

    hash_set = PayloadHashSet.from_json(exported)
    payload_signature = container.signer.sign_hash_with_keys(hash_set.payload_hash, keys)
    metadata_signature = container.signer.sign_hash_with_keys(hash_set.metadata_hash, keys)
    container.signer.add_signatures_to_payload(
        unsigned, payload_signature, metadata_signature, signed
    )

    assert container.signer.verify_signed_payload(signed, [rsa2048_second_key.public_path])
    assert container.signer.verify_signed_payload(signed, [rsa2048_key.public_path])


def test_add_signatures_rejects_empty_or_malformed_containers(
    container, rsa2048_key, temp_dir: Path
):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA)
    valid = container.signer.sign_hash_with_keys(b"\x00" * 32, [rsa2048_key.private_path])

    with pytest.raises(ParseError):
        container.signer.add_signatures_to_payload(path, b"", valid, path)
    with pytest.raises(ParseError):
        container.signer.add_signatures_to_payload(path, valid, b"\x0a\x05", path)


def test_add_signatures_rejects_wrong_size_for_reservation(container, rsa2048_key, temp_dir: Path):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA, signature_blob_length=264)
    short = encode_signatures([SignatureEntry(version=1, data=b"\x01" * 8)])

    with pytest.raises(PayloadFormatError):
        container.signer.add_signatures_to_payload(path, short, short, path)


def test_signing_operations_are_audited(container, rsa2048_key, temp_dir: Path):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA)
    container.signer.sign_payload(path, [rsa2048_key.private_path], path)
    container.signer.verify_signed_payload(path, [rsa2048_key.public_path])

    entries = container.ledger_port.read_all()

    assert [entry.operation for entry in entries] == ["sign_payload", "verify_payload"]
    assert entries[0].args["key_count"] == 1
    assert entries[1].args["verified"] is True
    assert container.ledger_port.verify() == (True, None)


def test_audit_disabled_uses_noop_ledger(temp_dir: Path, rsa2048_key):
    settings = Settings(
        data_dir=temp_dir / "data",
        config_dir=temp_dir / "config",
        audit_enabled=False,
    )
    container = bootstrap_application(settings=settings)
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA)

    container.signer.sign_payload(path, [rsa2048_key.private_path], path)

    assert container.ledger_port.read_all() == []
    assert not settings.get_audit_path().exists()


def test_signed_payload_signature_container_is_well_formed(
    container, rsa2048_key, temp_dir: Path
):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA)
    container.signer.sign_payload(path, [rsa2048_key.private_path], path)
    layout = container.assembler.read_layout(path)

    blob = container.assembler.read_region(path, layout.payload_signature_region)

    (entry,) = decode_signatures(blob)
    assert entry.version == 1
    assert len(entry.data) == 256


@pytest.mark.parametrize("major_version", [1, 2])
def test_bytes_appended_after_signature_fail_verification(
    container, rsa2048_key, temp_dir: Path, major_version
):
    """A signed payload must end exactly where its signature ends."""
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(path, DATA, major_version=major_version)
    container.signer.sign_payload(path, [rsa2048_key.private_path], path)
    assert container.signer.verify_signed_payload(path, [rsa2048_key.public_path])

    with open(path, "ab") as fh:
        fh.write(b"APPENDED BYTES")

    assert not container.signer.verify_signed_payload(path, [rsa2048_key.public_path])
    assert container.ledger_port.read_all()[-1].args["verified"] is False


def test_reserved_but_unsigned_payload_does_not_verify(container, rsa2048_key, temp_dir: Path):
    path = temp_dir / "payload.bin"
    container.assembler.write_payload(
        path, DATA, signature_blob_length=container.hash_planner.signature_blob_length(
            [rsa2048_key.private_path]
        )
    )

    assert not container.signer.verify_signed_payload(path, [rsa2048_key.public_path])
