"""Exceptions raised by the replication engine and store adapters."""

from typing import Any, Dict, List, Optional


class ReplicationError(Exception):
    """Base exception for replication failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize replication error.

        Args:
            message: Error message
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class TransientRemoteError(ReplicationError):
    """Network failure, rate limit rejection or expired session; safe to retry."""


class DataError(ReplicationError):
    """The destination rejected one or more records of a batch."""

    def __init__(self, message: str, failures: Optional[List[Dict[str, Any]]] = None) -> None:
        """
        Initialize data error.

        Args:
            message: Error message
            failures: Per-record failures as {"record": ..., "errors": ...}
        """
        self.failures = failures or []
        super().__init__(message, details={"failed_records": len(self.failures)})


class ConfigurationError(ReplicationError):
    """A destination object type is missing the external-id field."""
