"""Port interfaces for the payloadsign application layer.

These protocol interfaces define contracts for adapters.
Signing and verification logic depends on these ports, never on concrete
implementations.
"""

__all__ = [
    "KeyHandle",
    "LedgerPort",
    "PayloadAssemblerPort",
    "RsaPort",
]

from payloadsign.app.ports.ledger import LedgerPort
from payloadsign.app.ports.payload import PayloadAssemblerPort
from payloadsign.app.ports.rsa import KeyHandle, RsaPort
