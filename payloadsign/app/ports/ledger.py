"""Ledger port interface for signing audit trail operations."""

from typing import Any, Protocol


class LedgerPort(Protocol):
    """Port interface for audit ledger operations.

    Adapters implementing this port must provide:
    - Append-only audit logging
    - Hash chain verification

    Side effects: Writes to audit ledger (offline).
    """

    def log(
        self,
        operation: str,
        inputs: list[str] | None = None,
        outputs: list[str] | None = None,
        args: dict[str, Any] | None = None,
    ) -> Any:
        """Log an operation to the audit ledger.

        Args:
            operation: Operation name (e.g., "sign_payload", "verify_payload")
            inputs: List of input paths/identifiers
            outputs: List of output digests/paths
            args: Additional arguments/metadata
        """
        ...

    def verify(self) -> tuple[bool, str | None]:
        """Verify audit ledger integrity.

        Returns:
            Tuple of (is_valid, error_message)
        """
        ...

    def read_all(self) -> list[Any]:
        """Read all audit entries."""
        ...
