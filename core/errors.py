"""Error taxonomy shared by the core, infrastructure and app layers."""

from __future__ import annotations


class PixError(Exception):
    """Base exception for media library operations."""


class MalformedCredentialPayload(PixError):
    """Raised when a scanned credential payload lacks a token or server URL."""


class TransportFailure(PixError):
    """Raised when the remote media service cannot be reached or understood."""


class PartialServerRejection(PixError):
    """Raised (or reported) when the server rejected part of a batch.

    Attributes:
        rejected: Server keys the remote service refused.
    """

    def __init__(self, rejected: list[str]) -> None:
        self.rejected = list(rejected)
        super().__init__(f"Server rejected {len(self.rejected)} item(s)")

    @property
    def count(self) -> int:
        """Number of rejected items."""
        return len(self.rejected)


class PersistenceFailure(PixError):
    """Raised when the local key-value store cannot be read or written."""


class InvariantViolation(PixError):
    """Raised when cache and selection disagree. Always a programming error."""


class OperationInProgress(PixError):
    """Raised when a batch operation starts while another is in flight."""
