"""Application bootstrap wiring ports, adapters, and services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from payloadsign.app import PayloadHashPlanner, PayloadSigner, PayloadVerifier
from payloadsign.app.adapters import CryptographyRsaAdapter, PayloadFile
from payloadsign.app.ports import LedgerPort, PayloadAssemblerPort, RsaPort
from payloadsign.audit.ledger import AuditLedger
from payloadsign.config import Settings, get_settings


@dataclass(slots=True)
class ApplicationContainer:
    """Aggregates wired services and adapters."""

    settings: Settings
    rsa_port: RsaPort
    assembler: PayloadAssemblerPort
    hash_planner: PayloadHashPlanner
    verifier: PayloadVerifier
    signer: PayloadSigner
    ledger_port: LedgerPort


class NoOpLedger:
    """Ledger implementation that drops all writes."""

    def log(self, *args: Any, **kwargs: Any) -> None:
        return None

    def read_all(self) -> list[Any]:
        return []

    def verify(self) -> tuple[bool, str | None]:
        return (True, None)


def bootstrap_application(settings: Settings | None = None) -> ApplicationContainer:
    """Create the application container for the active settings."""

    active_settings = settings or get_settings()

    if active_settings.audit_enabled:
        ledger_port: LedgerPort = AuditLedger(
            active_settings.get_audit_path(),
            hmac_key=active_settings.get_audit_hmac_key(),
        )
    else:
        ledger_port = NoOpLedger()

    rsa_port = CryptographyRsaAdapter(supported_key_sizes=active_settings.supported_key_sizes)
    assembler = PayloadFile(
        major_version=active_settings.major_version,
        block_size=active_settings.block_size,
    )
    hash_planner = PayloadHashPlanner(
        rsa_port, assembler, chunk_size=active_settings.read_chunk_size
    )
    verifier = PayloadVerifier(rsa_port)
    signer = PayloadSigner(
        rsa_port,
        hash_planner,
        verifier,
        assembler,
        ledger_port=ledger_port,
    )

    return ApplicationContainer(
        settings=active_settings,
        rsa_port=rsa_port,
        assembler=assembler,
        hash_planner=hash_planner,
        verifier=verifier,
        signer=signer,
        ledger_port=ledger_port,
    )
