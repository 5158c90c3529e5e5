"""Append-only audit ledger recording signing and verification events."""

from __future__ import annotations

import hashlib
import hmac
import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from payloadsign import __version__
from payloadsign.utils.crypto import load_or_create_hmac_key
from payloadsign.utils.hashing import compute_sha256_hex

GENESIS_HASH = "0" * 64
GENESIS_SIGNATURE = "0" * 64


class AuditEntry(BaseModel):
    """Single audit ledger entry.

    Entries are linked in a hash chain and sealed with an HMAC so that edits,
    reordering and truncation of the ledger are detectable.
    """

    timestamp: str = Field(..., description="ISO 8601 timestamp in UTC")
    operation: str = Field(..., description="Operation name (e.g., sign_payload)")
    inputs: list[str] = Field(default_factory=list, description="Payload paths or key locations")
    outputs: list[str] = Field(default_factory=list, description="Digests or output paths")
    args: dict[str, Any] = Field(default_factory=dict, description="Operation parameters")
    versions: dict[str, str] = Field(default_factory=dict, description="Tool versions")
    previous_hash: str = Field(default=GENESIS_HASH, description="entry_hash of the previous entry")
    sequence: int | None = Field(default=None, ge=1, description="Monotonic sequence from 1")
    entry_hash: str | None = Field(default=None, description="SHA-256 of the entry content")
    signature: str | None = Field(default=None, description="HMAC seal over the chain link")

    def compute_hash(self) -> str:
        """Compute deterministic hash of entry content (excluding entry_hash and signature)."""
        data = self.model_dump(
            mode="json",
            exclude={"entry_hash", "signature"},
            exclude_none=True,
        )
        content = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return compute_sha256_hex(content.encode("utf-8"))


class AuditLedger:
    """JSONL audit ledger for payload signing operations."""

    def __init__(self, ledger_path: Path, *, hmac_key: bytes | None = None) -> None:
        """Initialize audit ledger.

        Args:
            ledger_path: Path to JSONL ledger file
            hmac_key: Optional sealing key (defaults to a key file beside the ledger)
        """
        self.ledger_path = ledger_path
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)

        if hmac_key is None:
            hmac_key = load_or_create_hmac_key(ledger_path.with_suffix(".key"), length=32)
        self._hmac_key = hmac_key

        self._last_hash = GENESIS_HASH
        self._last_sequence = 0
        self._last_signature = GENESIS_SIGNATURE

        entries = self._read_entries()
        if entries:
            last_entry = entries[-1]
            self._last_hash = last_entry.entry_hash or GENESIS_HASH
            self._last_sequence = last_entry.sequence or len(entries)
            self._last_signature = last_entry.signature or GENESIS_SIGNATURE

    def _read_entries(self) -> list[AuditEntry]:
        if not self.ledger_path.exists():
            return []

        entries: list[AuditEntry] = []
        with open(self.ledger_path, encoding="utf-8") as fh:
            for line_num, raw_line in enumerate(fh, 1):
                line = raw_line.strip()
                if not line:
                    continue
                try:
                    entries.append(AuditEntry.model_validate_json(line))
                except ValueError as exc:
                    raise ValueError(
                        f"Invalid entry at line {line_num} in {self.ledger_path}: {exc}"
                    ) from exc

        return entries

    def _compute_signature(self, entry: AuditEntry, previous_signature: str) -> str:
        payload = "|".join(
            [
                str(entry.sequence or 0),
                entry.previous_hash,
                entry.entry_hash or "",
                previous_signature,
            ]
        ).encode("utf-8")
        return hmac.new(self._hmac_key, payload, hashlib.sha256).hexdigest()

    def log(
        self,
        operation: str,
        inputs: list[str] | None = None,
        outputs: list[str] | None = None,
        args: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Append an operation to the ledger and return the sealed entry."""
        sequence = self._last_sequence + 1

        entry = AuditEntry(
            timestamp=datetime.now(UTC).isoformat(),
            operation=operation,
            inputs=inputs or [],
            outputs=outputs or [],
            args=args or {},
            versions={"payloadsign": __version__},
            previous_hash=self._last_hash,
            sequence=sequence,
        )
        entry.entry_hash = entry.compute_hash()
        entry.signature = self._compute_signature(entry, self._last_signature)

        with open(self.ledger_path, "a", encoding="utf-8") as fh:
            fh.write(entry.model_dump_json() + "\n")
            fh.flush()
            os.fsync(fh.fileno())

        self._last_sequence = sequence
        self._last_hash = entry.entry_hash
        self._last_signature = entry.signature
        return entry

    def read_all(self) -> list[AuditEntry]:
        """Read all entries in chronological order."""
        return self._read_entries()

    def verify(self) -> tuple[bool, str | None]:
        """Verify the hash chain and HMAC seals.

        Returns:
            Tuple of (is_valid, error_message). error_message is None if valid.
        """
        try:
            entries = self._read_entries()
        except ValueError as exc:
            return False, str(exc)

        previous_hash = GENESIS_HASH
        previous_signature = GENESIS_SIGNATURE

        for idx, entry in enumerate(entries, 1):
            if entry.entry_hash is None or entry.signature is None:
                return False, f"Entry {idx} is missing its hash or signature."

            if not hmac.compare_digest(entry.entry_hash, entry.compute_hash()):
                return False, f"Entry {idx} has invalid hash; ledger corrupted or tampered."

            if entry.previous_hash != previous_hash:
                return False, f"Entry {idx} breaks hash chain."

            expected_signature = self._compute_signature(entry, previous_signature)
            if not hmac.compare_digest(entry.signature, expected_signature):
                return False, f"Entry {idx} has invalid signature; ledger may have been tampered."

            if entry.sequence != idx:
                return False, f"Entry {idx} sequence mismatch (got {entry.sequence})."

            previous_hash = entry.entry_hash
            previous_signature = entry.signature

        return True, None

    def get_by_operation(self, operation: str) -> list[AuditEntry]:
        """Get all entries for a specific operation."""
        return [entry for entry in self.read_all() if entry.operation == operation]
