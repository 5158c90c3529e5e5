"""Application layer for payloadsign.

This layer orchestrates signing and verification without direct filesystem
access. All side effects are delegated to adapters via port interfaces.
"""

__all__ = [
    "PayloadHashPlanner",
    "PayloadHashSet",
    "PayloadSigner",
    "PayloadVerifier",
    "pad_rsa2048_sha256_hash",
    "pad_rsa_sha256_hash",
]

from payloadsign.app.hash_planner import PayloadHashPlanner, PayloadHashSet
from payloadsign.app.signer import PayloadSigner
from payloadsign.app.verifier import (
    PayloadVerifier,
    pad_rsa2048_sha256_hash,
    pad_rsa_sha256_hash,
)
