"""Exception taxonomy for payload signing and verification.

A verification mismatch is never an exception: verifiers return ``False``.
"""


class PayloadSignError(Exception):
    """Base class for all payloadsign failures."""


class KeyLoadError(PayloadSignError):
    """Raised when a key file is missing, unreadable, or malformed."""


class DigestInputError(PayloadSignError):
    """Raised when a digest source is unreadable or a region exceeds file bounds."""


class ParseError(PayloadSignError):
    """Raised when a signature container is malformed or truncated."""


class RsaOperationError(PayloadSignError):
    """Raised when the RSA primitive rejects an operation."""


class PayloadFormatError(PayloadSignError):
    """Raised when a payload header or manifest is malformed or its layout is violated."""
