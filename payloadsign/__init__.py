"""payloadsign - signing and verification for OS update payloads.

Predicts signature sizes, hashes payloads independently of their signature
bytes, and signs and verifies multi-key RSA signature containers.
"""

__version__ = "0.1.0"
__author__ = "payloadsign Contributors"

from payloadsign.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
