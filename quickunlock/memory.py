"""
Secret buffer helpers — best-effort wiping of key material.

Secrets handled by QuickUnlock (PINs, derived keys, digests, decrypted unlock
keys) live in ``bytearray`` buffers so they can be overwritten in place once
they are no longer needed.

Security Note:
    Decrypted keys are written straight into ``bytearray`` buffers. The one
    immutable copy left is the SHA-512 digest returned by the hash
    ``finalize()`` call: it is copied into a ``bytearray`` and dropped right
    away, so its memory is reclaimed, not wiped.
"""
import ctypes
from contextlib import contextmanager
from typing import Iterator, Optional, Union

Secret = Union[bytes, bytearray, memoryview, str]


def zero_bytes(buf: Optional[bytearray]) -> None:
    """Overwrite a bytearray with zeros.

    Uses ctypes.memset for a C-level overwrite. ``None`` and empty buffers
    are ignored; immutable buffers are rejected.
    """
    if buf is None:
        return
    if not isinstance(buf, bytearray):
        raise TypeError(
            f"only bytearray buffers can be wiped, got {type(buf).__name__}"
        )
    n = len(buf)
    if n == 0:
        return
    ctypes.memset((ctypes.c_char * n).from_buffer(buf), 0, n)


def as_secret(value: Secret) -> bytearray:
    """Return a private, wipeable copy of a secret.

    ``str`` values are UTF-8 encoded. The caller owns the returned buffer and
    must wipe it.
    """
    if isinstance(value, str):
        return bytearray(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytearray(value)
    raise TypeError(f"secret must be bytes-like or str, got {type(value).__name__}")


@contextmanager
def wiped(*buffers: Optional[bytearray]) -> Iterator[None]:
    """Zero every given buffer when the block exits, however it exits."""
    try:
        yield
    finally:
        for buf in buffers:
            zero_bytes(buf)
