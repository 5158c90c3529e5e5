"""Concrete adapters wiring application ports to built-in implementations."""

from __future__ import annotations

from .payload_file import PayloadFile
from .rsa import CryptographyRsaAdapter, RsaKeyHandle

__all__ = [
    "CryptographyRsaAdapter",
    "PayloadFile",
    "RsaKeyHandle",
]
