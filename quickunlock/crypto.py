"""
QuickUnlock Crypto Core — PIN key derivation and stream ciphers.

A cached unlock key is encrypted with a stream cipher keyed from the PIN:

- Key: SHA-512(pin)[:32]
- Cipher: ChaCha20 (RFC 7539, 12-byte nonce) for current database formats,
  Salsa20 (8-byte nonce) for formats older than 2.35.

Encryption and decryption are the same keystream XOR; ciphertext length
equals plaintext length. There is no authentication tag: decrypting with the
wrong PIN returns wrong bytes rather than raising.

Security Note:
    Never log PINs, keys, nonces or ciphertext.
"""
import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from Crypto.Cipher import Salsa20

from .exceptions import InvalidArgumentError
from .memory import Secret, as_secret, wiped

KEY_LENGTH = 32  # 256-bit cipher key
NONCE_SIZE = 12  # ChaCha20, RFC 7539
LEGACY_NONCE_SIZE = 8  # Salsa20

# First database format version whose inner stream cipher is ChaCha20 (2.35).
FILE_VERSION_CHACHA20 = 0x0002002300000000


def nonce_length_for(format_version: int) -> int:
    """Return the nonce length matching a database format version."""
    return NONCE_SIZE if format_version >= FILE_VERSION_CHACHA20 else LEGACY_NONCE_SIZE


def generate_nonce(length: int = NONCE_SIZE) -> bytes:
    """Return ``length`` random bytes for a new cache entry."""
    if length not in (NONCE_SIZE, LEGACY_NONCE_SIZE):
        raise InvalidArgumentError(f"Unsupported nonce length: {length}")
    return os.urandom(length)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(secret: bytes) -> bytearray:
    """Derive a 32-byte cipher key from a short secret.

    Args:
        secret: PIN bytes (bytes-like). An empty secret is allowed.

    Returns:
        Fresh bytearray holding the first 32 bytes of SHA-512(secret). The
        caller must wipe it.
    """
    if secret is None:
        raise InvalidArgumentError("secret must not be None")
    h = hashes.Hash(hashes.SHA512())
    h.update(secret)
    digest = bytearray(h.finalize())
    with wiped(digest):
        return digest[:KEY_LENGTH]


# ---------------------------------------------------------------------------
# Stream ciphers
# ---------------------------------------------------------------------------

class StreamCipher:
    """Keystream generator seeded with a key and a nonce, counter at zero.

    Instances are stateful: each call to ``apply`` continues the keystream.
    Build a new instance for every message.
    """

    def __init__(self, name: str, update, update_into) -> None:
        self.name = name
        self._update = update
        self._update_into = update_into

    def __repr__(self) -> str:
        return f"<StreamCipher {self.name}>"

    def apply(self, data) -> bytes:
        """XOR ``data`` with the next ``len(data)`` keystream bytes."""
        return self._update(data)

    def apply_into(self, data, out: bytearray) -> None:
        """XOR ``data`` with the keystream, writing into ``out``.

        ``out`` must be exactly ``len(data)`` bytes long.
        """
        if len(out) != len(data):
            raise InvalidArgumentError("output buffer must match the input length")
        if data:
            self._update_into(data, out)


def _chacha20(key: bytearray, nonce: bytes) -> StreamCipher:
    # OpenSSL takes a 16-byte IV: 32-bit little-endian block counter + nonce.
    iv = (0).to_bytes(4, "little") + bytes(nonce)
    encryptor = Cipher(algorithms.ChaCha20(key, iv), mode=None).encryptor()
    return StreamCipher("chacha20", encryptor.update, encryptor.update_into)


def _salsa20(key: bytearray, nonce: bytes) -> StreamCipher:
    cipher = Salsa20.new(key=key, nonce=bytes(nonce))
    return StreamCipher(
        "salsa20",
        cipher.encrypt,
        lambda data, out: cipher.encrypt(data, output=out),
    )


def new_cipher(key: bytearray, nonce: bytes) -> StreamCipher:
    """Build a stream cipher for ``key`` and ``nonce``.

    The nonce length selects the algorithm: 12 bytes for ChaCha20, 8 bytes
    for Salsa20.

    Raises:
        InvalidArgumentError: If the key is not 32 bytes or the nonce length
            is not supported.
    """
    if key is None or len(key) != KEY_LENGTH:
        raise InvalidArgumentError(f"cipher key must be exactly {KEY_LENGTH} bytes")
    if nonce is None:
        raise InvalidArgumentError("nonce must not be None")
    if len(nonce) == NONCE_SIZE:
        return _chacha20(key, nonce)
    if len(nonce) == LEGACY_NONCE_SIZE:
        return _salsa20(key, nonce)
    raise InvalidArgumentError(f"Unsupported nonce length: {len(nonce)}")


def create_cipher(secret: Secret, nonce: bytes) -> StreamCipher:
    """Derive a key from ``secret`` and build the matching cipher.

    The derived key is wiped before returning, on every path.
    """
    key = derive_key(secret)
    with wiped(key):
        return new_cipher(key, nonce)


def encrypt(cipher: StreamCipher, plaintext) -> bytes:
    return cipher.apply(plaintext)


def decrypt(cipher: StreamCipher, ciphertext) -> bytearray:
    """Decrypt into a fresh bytearray the caller must wipe.

    The plaintext is written straight into that buffer, never into an
    immutable intermediate.
    """
    plaintext = bytearray(len(ciphertext))
    cipher.apply_into(ciphertext, plaintext)
    return plaintext


def encrypt_with_pin(pin: Secret, nonce: bytes, plaintext) -> bytes:
    """Encrypt ``plaintext`` under a PIN and nonce. PIN copies are wiped."""
    pin_bytes = as_secret(pin)
    with wiped(pin_bytes):
        return encrypt(create_cipher(pin_bytes, nonce), plaintext)


def decrypt_with_pin(pin: Secret, nonce: bytes, ciphertext: bytes) -> bytearray:
    """Decrypt ``ciphertext`` under a PIN and nonce. PIN copies are wiped."""
    pin_bytes = as_secret(pin)
    with wiped(pin_bytes):
        return decrypt(create_cipher(pin_bytes, nonce), ciphertext)


__all__ = [
    "KEY_LENGTH",
    "NONCE_SIZE",
    "LEGACY_NONCE_SIZE",
    "FILE_VERSION_CHACHA20",
    "StreamCipher",
    "nonce_length_for",
    "generate_nonce",
    "derive_key",
    "new_cipher",
    "create_cipher",
    "encrypt",
    "decrypt",
    "encrypt_with_pin",
    "decrypt_with_pin",
]
