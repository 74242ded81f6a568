"""
UnlockOrchestrator — QuickUnlock as seen by the host application.

The host hands the orchestrator two collaborators:

- ``prompt``: callable returning the PIN the user typed (``bytes``,
  ``bytearray`` or ``str``), or ``None`` if the prompt was cancelled.
- ``consumer``: callable passed to ``unlock`` that opens the database with
  the decrypted key.

The orchestrator keeps no copy of the PIN or the key: both are wiped once
the consumer returns, and on every failure path.
"""
import logging
from typing import Callable, Optional, TypeVar, Union

from .cache import QuickUnlockCache
from .config import Mode, QuickUnlockConfig
from .exceptions import InvalidArgumentError, NotAvailableError
from .memory import Secret, as_secret, wiped, zero_bytes

logger = logging.getLogger("quickunlock")

T = TypeVar("T")

PinPrompt = Callable[[], Optional[Union[bytes, bytearray, str]]]


class UnlockOrchestrator:
    """Coordinates the PIN prompt, the cache and the host unlock pipeline."""

    def __init__(
        self,
        cache: QuickUnlockCache,
        prompt: PinPrompt,
        config: Optional[QuickUnlockConfig] = None,
    ):
        self._cache = cache
        self._prompt = prompt
        self._config = config or cache.config

    @property
    def cache(self) -> QuickUnlockCache:
        return self._cache

    def should_auto_prompt(self, resource_id: str) -> bool:
        """True if the host should open the PIN prompt without user action."""
        return self._config.auto_prompt and self._cache.is_available(resource_id)

    def _read_pin(self) -> Optional[bytearray]:
        entered = self._prompt()
        if entered is None:
            return None
        pin = as_secret(entered)
        if isinstance(entered, bytearray):
            zero_bytes(entered)
        return pin

    def unlock(
        self,
        resource_id: str,
        consumer: Callable[[bytearray], T],
        creating_new_key: bool = False,
    ) -> Optional[T]:
        """Reopen ``resource_id`` with the cached key.

        Args:
            resource_id: Identifier of the protected resource.
            consumer: Host callable that opens the resource with the key.
                The key buffer is wiped as soon as it returns.
            creating_new_key: True when the host is asking for a key to
                protect a new database, which QuickUnlock cannot provide.

        Returns:
            The consumer's result, or None if QuickUnlock could not be used
            (new key, no usable entry, prompt cancelled).
        """
        if creating_new_key:
            logger.warning("Can't use QuickUnlock to create new keys.")
            return None

        if not self._cache.is_available(resource_id):
            logger.warning(
                "QuickUnlock is not available for this database: %s",
                resource_id,
            )
            return None

        pin = self._read_pin()
        if pin is None:
            logger.debug("QuickUnlock prompt cancelled: resource=%s", resource_id)
            return None

        with wiped(pin):
            try:
                key = self._cache.resolve(resource_id, pin)
            except NotAvailableError as err:
                # expired or consumed between the check and the prompt
                logger.warning("%s", err)
                return None

        with wiped(key):
            return consumer(key)

    def remember(
        self,
        resource_id: str,
        unlock_key: bytes,
        pin: Optional[Secret] = None,
        password: Optional[Secret] = None,
        validity_seconds: Optional[int] = None,
    ) -> None:
        """Cache ``unlock_key`` after a full unlock.

        Uses ``pin`` when given. Otherwise, in ``Mode.ENTRY_OR_PART_OF``,
        cuts the PIN from the master ``password``.

        Raises:
            InvalidArgumentError: If no PIN can be determined.
        """
        if pin is not None:
            self._cache.add(resource_id, pin, unlock_key, validity_seconds)
            return
        if self._config.mode is not Mode.ENTRY_OR_PART_OF or password is None:
            raise InvalidArgumentError(
                "a PIN is required unless part-of-password mode is enabled"
            )
        derived = self._config.part_of_pin(password)
        with wiped(derived):
            self._cache.add(resource_id, derived, unlock_key, validity_seconds)

    def forget(self, resource_id: str) -> None:
        self._cache.remove(resource_id)

    def lock_all(self) -> None:
        self._cache.clear()
