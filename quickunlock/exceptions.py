"""QuickUnlock exceptions.

Messages never include PINs, keys, nonces or ciphertext.
"""


class QuickUnlockError(Exception):
    """Base class for QuickUnlock errors."""


class InvalidArgumentError(QuickUnlockError, ValueError):
    """A call was made with an argument the cache cannot accept."""


class NotAvailableError(QuickUnlockError, KeyError):
    """No usable cached key exists for a resource (missing or expired)."""

    def __init__(self, resource_id: str, reason: str = "not cached"):
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(resource_id)

    def __str__(self) -> str:
        return f"QuickUnlock is not available for {self.resource_id!r} ({self.reason})"
