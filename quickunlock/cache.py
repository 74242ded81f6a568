"""
QuickUnlockCache — PIN-encrypted unlock keys bound to a host session.

Provides the cache API used by the host after a full unlock and by the
unlock orchestrator when the user asks to reopen a database:

- ``add(resource_id, pin, unlock_key)`` — encrypt and cache an unlock key
- ``resolve(resource_id, pin)`` — decrypt and consume a cached key
- ``remove(resource_id)`` / ``clear()`` — drop one or all entries
- ``is_cached(resource_id)`` / ``is_available(resource_id)`` — slot checks
- ``purge_expired()`` — drop expired entries (called by a host timer)

Security Note:
    Never log PINs, keys, nonces or ciphertext. Only log resource ids and
    validity timestamps. Errors are raised to the caller, never logged here.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .config import QuickUnlockConfig, VALID_UNLIMITED
from .crypto import (
    FILE_VERSION_CHACHA20,
    create_cipher,
    decrypt,
    encrypt,
    generate_nonce,
    nonce_length_for,
)
from .exceptions import InvalidArgumentError, NotAvailableError
from .memory import Secret, as_secret, wiped

logger = logging.getLogger("quickunlock")

NEVER_EXPIRES = datetime.max.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """Encrypted unlock key with its nonce and expiry."""

    valid_until: datetime
    nonce: bytes
    encrypted_key: bytes

    def is_valid(self, now: datetime) -> bool:
        return now <= self.valid_until

    def __repr__(self) -> str:
        return f"<CacheEntry valid_until={self.valid_until.isoformat()}>"


class QuickUnlockCache:
    """Thread-safe map of resource id to PIN-encrypted unlock key.

    One exclusive lock guards the whole map; every public operation holds it
    while touching entries. Each entry is single use: ``resolve`` removes it
    whether or not the PIN was right, so a cached key allows one PIN guess.

    The cache is owned by the host integration layer and lives for one host
    session. Use it as a context manager, or call ``close()``, to clear it at
    session end.
    """

    def __init__(
        self,
        config: Optional[QuickUnlockConfig] = None,
        format_version: int = FILE_VERSION_CHACHA20,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._config = config or QuickUnlockConfig()
        self._nonce_length = nonce_length_for(format_version)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._issued_nonces: set[bytes] = set()
        self._lock = threading.Lock()

    @property
    def config(self) -> QuickUnlockConfig:
        return self._config

    @property
    def nonce_length(self) -> int:
        return self._nonce_length

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_resource_id(resource_id: str) -> None:
        if not isinstance(resource_id, str) or not resource_id:
            raise InvalidArgumentError("resource_id must be a non-empty string")

    @staticmethod
    def _pin_bytes(pin: Secret) -> bytearray:
        """Private copy of the PIN; rejects missing or non-bytes-like PINs."""
        if pin is None:
            raise InvalidArgumentError("pin must not be None")
        try:
            return as_secret(pin)
        except TypeError as err:
            raise InvalidArgumentError("pin must be bytes-like or str") from err

    def _valid_until(self, validity_seconds: int) -> datetime:
        if validity_seconds == VALID_UNLIMITED:
            return NEVER_EXPIRES
        try:
            return self._clock() + timedelta(seconds=validity_seconds)
        except OverflowError:
            return NEVER_EXPIRES

    def _fresh_nonce(self) -> bytes:
        """Random nonce never issued before by this cache. Caller holds the lock."""
        while True:
            nonce = generate_nonce(self._nonce_length)
            if nonce not in self._issued_nonces:
                self._issued_nonces.add(nonce)
                return nonce

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(
        self,
        resource_id: str,
        pin: Secret,
        unlock_key: bytes,
        validity_seconds: Optional[int] = None,
    ) -> None:
        """Encrypt ``unlock_key`` under ``pin`` and cache it.

        Replaces any entry already cached for ``resource_id``. The caller
        keeps ownership of ``pin`` and ``unlock_key`` and should wipe them.

        Args:
            resource_id: Identifier of the protected resource (database path).
            pin: Short secret used to encrypt the key.
            unlock_key: Full unlock key, treated as opaque bytes.
            validity_seconds: Seconds the entry stays usable; 0 means
                unlimited, ``None`` uses the configured valid period.

        Raises:
            InvalidArgumentError: If resource_id is empty, pin or unlock_key
                is None, pin is not bytes-like or str, or validity_seconds
                is negative.
        """
        self._validate_resource_id(resource_id)
        if pin is None:
            raise InvalidArgumentError("pin must not be None")
        if unlock_key is None:
            raise InvalidArgumentError("unlock_key must not be None")
        if validity_seconds is None:
            validity_seconds = self._config.valid_period
        if validity_seconds < 0:
            raise InvalidArgumentError("validity_seconds must not be negative")

        pin_bytes = self._pin_bytes(pin)
        with wiped(pin_bytes), self._lock:
            nonce = self._fresh_nonce()
            cipher = create_cipher(pin_bytes, nonce)
            entry = CacheEntry(
                valid_until=self._valid_until(validity_seconds),
                nonce=nonce,
                encrypted_key=encrypt(cipher, unlock_key),
            )
            self._entries[resource_id] = entry

        logger.debug(
            "QuickUnlock key cached: resource=%s valid_until=%s",
            resource_id, entry.valid_until.isoformat(),
        )

    def remove(self, resource_id: str) -> None:
        """Remove the entry for ``resource_id``; no-op if there is none."""
        with self._lock:
            removed = self._entries.pop(resource_id, None)
        if removed is not None:
            logger.debug("QuickUnlock key removed: resource=%s", resource_id)

    def is_cached(self, resource_id: str) -> bool:
        """True if an entry exists, whether or not it has expired."""
        with self._lock:
            return resource_id in self._entries

    def is_available(self, resource_id: str) -> bool:
        """True if an entry exists and has not expired."""
        with self._lock:
            entry = self._entries.get(resource_id)
            return entry is not None and entry.is_valid(self._clock())

    def purge_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if not entry.is_valid(now)
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("QuickUnlock purged %d expired key(s)", len(expired))
        return len(expired)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug("QuickUnlock cache cleared (%d key(s))", count)

    def resolve(self, resource_id: str, pin: Secret) -> bytearray:
        """Decrypt and consume the key cached for ``resource_id``.

        The entry is removed before decryption, so each cached key can be
        tried once. A wrong PIN is not detected here: it yields wrong bytes,
        which the host's own unlock check rejects.

        Args:
            resource_id: Identifier of the protected resource.
            pin: PIN entered by the user.

        Returns:
            Decrypted unlock key in a fresh bytearray the caller must wipe.

        Raises:
            InvalidArgumentError: If resource_id is empty or pin is None
                or not bytes-like or str. The entry is left in place.
            NotAvailableError: If no entry exists or it has expired.
        """
        self._validate_resource_id(resource_id)
        pin_bytes = self._pin_bytes(pin)

        with wiped(pin_bytes):
            with self._lock:
                entry = self._entries.get(resource_id)
                if entry is None:
                    raise NotAvailableError(resource_id)
                if not entry.is_valid(self._clock()):
                    raise NotAvailableError(resource_id, "expired")
                del self._entries[resource_id]

            logger.debug("QuickUnlock key consumed: resource=%s", resource_id)
            cipher = create_cipher(pin_bytes, entry.nonce)
            return decrypt(cipher, entry.encrypted_key)

    # ------------------------------------------------------------------
    # Container protocol / lifecycle
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, resource_id: object) -> bool:
        return self.is_cached(resource_id)  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"<QuickUnlockCache entries={len(self)} nonce_length={self._nonce_length}>"

    def close(self) -> None:
        """Clear the cache at the end of the host session."""
        self.clear()

    def __enter__(self) -> "QuickUnlockCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
