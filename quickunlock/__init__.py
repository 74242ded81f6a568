"""QuickUnlock — Reopen a database with a short PIN instead of the full key.

Security Note (Threat Model):
    The unlock key is kept in process memory encrypted with a stream cipher
    keyed from the PIN. Ciphertext carries no authentication tag, so a wrong
    PIN yields a wrong key that only the host's own unlock check detects;
    every cached key is consumed by its first resolve attempt. This protects
    against casual memory inspection, not against an attacker who can read
    process memory while a key is being used.
"""

from .version import __version__
from .cache import CacheEntry, QuickUnlockCache, NEVER_EXPIRES
from .config import Mode, PartOfOrigin, QuickUnlockConfig, VALID_DEFAULT, VALID_UNLIMITED
from .exceptions import QuickUnlockError, InvalidArgumentError, NotAvailableError
from .provider import UnlockOrchestrator

__all__ = [
    "__version__",
    "CacheEntry",
    "QuickUnlockCache",
    "NEVER_EXPIRES",
    "Mode",
    "PartOfOrigin",
    "QuickUnlockConfig",
    "VALID_DEFAULT",
    "VALID_UNLIMITED",
    "QuickUnlockError",
    "InvalidArgumentError",
    "NotAvailableError",
    "UnlockOrchestrator",
]
