"""
Tests for the QuickUnlock crypto core.

Tests cover:
- PIN key derivation (SHA-512 truncated to 32 bytes)
- Cipher selection by nonce length (ChaCha20 / Salsa20)
- Stream XOR round-trips and length preservation
- Wiping of derived keys
- Decryption straight into caller-owned buffers
"""
import hashlib

import pytest

from quickunlock import crypto
from quickunlock.crypto import (
    FILE_VERSION_CHACHA20,
    KEY_LENGTH,
    LEGACY_NONCE_SIZE,
    NONCE_SIZE,
    create_cipher,
    decrypt,
    decrypt_with_pin,
    derive_key,
    encrypt,
    encrypt_with_pin,
    generate_nonce,
    new_cipher,
    nonce_length_for,
)
from quickunlock.exceptions import InvalidArgumentError

# ChaCha20 block 0 for an all-zero key and nonce (RFC 7539, A.1 test vector 1).
CHACHA20_ZERO_BLOCK = bytes.fromhex(
    "76b8e0ada0f13d90405d6ae55386bd28bdd219b8a08ded1aa836efcc8b770dc7"
    "da41597c5157488d7724e03fb8d84a376a43b8f41518a11cc387b669b2ee6586"
)

UNLOCK_KEY = bytes(range(32))


@pytest.fixture(params=[NONCE_SIZE, LEGACY_NONCE_SIZE], ids=["chacha20", "salsa20"])
def nonce(request):
    return generate_nonce(request.param)


class TestDeriveKey:
    """Tests for derive_key."""

    def test_is_truncated_sha512(self):
        """Test the key is the first 32 bytes of SHA-512(secret)."""
        key = derive_key(b"1234")
        assert key == hashlib.sha512(b"1234").digest()[:32]
        assert isinstance(key, bytearray)
        assert len(key) == KEY_LENGTH

    def test_empty_secret_allowed(self):
        """Test a zero-length secret still derives a key."""
        assert derive_key(b"").hex() == (
            "cf83e1357eefb8bdf1542850d66d8007d620e4050b5715dc83f4a921d36ce9ce"
        )

    def test_none_rejected(self):
        with pytest.raises(InvalidArgumentError):
            derive_key(None)

    def test_returns_fresh_buffer(self):
        """Test each call returns an independent buffer."""
        a = derive_key(b"1234")
        b = derive_key(b"1234")
        a[0] ^= 0xFF
        assert a != b


class TestNonces:
    """Tests for nonce generation and format selection."""

    def test_current_format_uses_12_bytes(self):
        assert nonce_length_for(FILE_VERSION_CHACHA20) == 12
        assert nonce_length_for(0x0004000100000000) == 12

    def test_old_format_uses_8_bytes(self):
        assert nonce_length_for(0x0002002200000000) == 8
        assert nonce_length_for(0x0002000000000000) == 8

    @pytest.mark.parametrize("length", [12, 8])
    def test_generate_nonce_length(self, length):
        assert len(generate_nonce(length)) == length

    def test_generate_nonce_is_random(self):
        assert generate_nonce() != generate_nonce()

    def test_generate_nonce_rejects_unsupported(self):
        with pytest.raises(InvalidArgumentError):
            generate_nonce(16)


class TestNewCipher:
    """Tests for cipher construction."""

    def test_12_byte_nonce_selects_chacha20(self):
        cipher = new_cipher(bytearray(32), bytes(12))
        assert cipher.name == "chacha20"

    def test_8_byte_nonce_selects_salsa20(self):
        cipher = new_cipher(bytearray(32), bytes(8))
        assert cipher.name == "salsa20"

    def test_chacha20_known_answer(self):
        """Test the keystream starts at block counter zero."""
        cipher = new_cipher(bytearray(32), bytes(12))
        assert cipher.apply(bytes(64)) == CHACHA20_ZERO_BLOCK

    @pytest.mark.parametrize("length", [0, 7, 11, 16, 24])
    def test_unsupported_nonce_length_rejected(self, length):
        with pytest.raises(InvalidArgumentError):
            new_cipher(bytearray(32), bytes(length))

    def test_bad_key_length_rejected(self):
        with pytest.raises(InvalidArgumentError):
            new_cipher(bytearray(16), bytes(12))

    def test_keystream_continues_across_calls(self):
        """Test a cipher instance is stateful like a counter-mode generator."""
        cipher = new_cipher(bytearray(32), bytes(12))
        first = cipher.apply(bytes(32))
        second = cipher.apply(bytes(32))
        assert first + second == CHACHA20_ZERO_BLOCK


class TestEncryptDecrypt:
    """Tests for stream encryption round-trips."""

    def test_round_trip(self, nonce):
        ciphertext = encrypt(create_cipher(b"1234", nonce), UNLOCK_KEY)
        assert ciphertext != UNLOCK_KEY
        assert len(ciphertext) == len(UNLOCK_KEY)
        plaintext = decrypt(create_cipher(b"1234", nonce), ciphertext)
        assert plaintext == UNLOCK_KEY
        assert isinstance(plaintext, bytearray)

    def test_encrypt_equals_decrypt(self, nonce):
        """Test encryption and decryption are the same XOR operation."""
        once = encrypt(create_cipher(b"1234", nonce), UNLOCK_KEY)
        twice = encrypt(create_cipher(b"1234", nonce), once)
        assert twice == UNLOCK_KEY

    def test_wrong_pin_gives_wrong_bytes(self, nonce):
        """Test a wrong PIN is not detected, it just decrypts to garbage."""
        ciphertext = encrypt_with_pin(b"1234", nonce, UNLOCK_KEY)
        plaintext = decrypt_with_pin(b"4321", nonce, ciphertext)
        assert len(plaintext) == len(UNLOCK_KEY)
        assert plaintext != UNLOCK_KEY

    def test_empty_plaintext(self, nonce):
        assert encrypt_with_pin(b"1234", nonce, b"") == b""

    def test_str_pin_matches_utf8_bytes(self, nonce):
        ciphertext = encrypt_with_pin("12é4", nonce, UNLOCK_KEY)
        assert decrypt_with_pin("12é4".encode("utf-8"), nonce, ciphertext) == UNLOCK_KEY

    def test_modes_do_not_cross_decrypt(self):
        """Test ChaCha20 ciphertext does not decrypt under Salsa20."""
        modern = generate_nonce(NONCE_SIZE)
        ciphertext = encrypt_with_pin(b"1234", modern, UNLOCK_KEY)
        legacy = modern[:LEGACY_NONCE_SIZE]
        assert decrypt_with_pin(b"1234", legacy, ciphertext) != UNLOCK_KEY

    def test_different_nonces_give_different_ciphertext(self):
        a = encrypt_with_pin(b"1234", generate_nonce(), UNLOCK_KEY)
        b = encrypt_with_pin(b"1234", generate_nonce(), UNLOCK_KEY)
        assert a != b


class TestKeyWiping:
    """Tests that derived key material is wiped."""

    def test_create_cipher_wipes_derived_key(self, monkeypatch):
        seen = []
        real_new_cipher = crypto.new_cipher

        def spy(key, nonce):
            seen.append(key)
            return real_new_cipher(key, nonce)

        monkeypatch.setattr(crypto, "new_cipher", spy)
        create_cipher(b"1234", generate_nonce())
        assert len(seen) == 1
        assert seen[0] == bytearray(KEY_LENGTH)

    def test_create_cipher_wipes_key_on_error(self, monkeypatch):
        seen = []
        real_new_cipher = crypto.new_cipher

        def spy(key, nonce):
            seen.append(key)
            return real_new_cipher(key, nonce)

        monkeypatch.setattr(crypto, "new_cipher", spy)
        with pytest.raises(InvalidArgumentError):
            create_cipher(b"1234", bytes(5))
        assert seen[0] == bytearray(KEY_LENGTH)

    def test_cipher_still_works_after_key_wiped(self):
        """Test the cipher keeps its own key schedule once the key is wiped."""
        nonce = generate_nonce()
        expected = new_cipher(derive_key(b"1234"), nonce).apply(UNLOCK_KEY)
        assert encrypt(create_cipher(b"1234", nonce), UNLOCK_KEY) == expected


class TestDecryptIntoBuffer:
    """Tests that plaintext is written straight into a wipeable buffer."""

    def test_apply_into_matches_apply(self, nonce):
        key = derive_key(b"1234")
        expected = new_cipher(key, nonce).apply(UNLOCK_KEY)
        out = bytearray(len(UNLOCK_KEY))
        new_cipher(key, nonce).apply_into(UNLOCK_KEY, out)
        assert out == expected

    def test_apply_into_rejects_wrong_length(self, nonce):
        cipher = create_cipher(b"1234", nonce)
        with pytest.raises(InvalidArgumentError):
            cipher.apply_into(UNLOCK_KEY, bytearray(len(UNLOCK_KEY) - 1))

    def test_decrypt_never_builds_immutable_plaintext(self, nonce):
        """Test decrypt goes through apply_into, not the bytes-returning apply."""
        ciphertext = encrypt_with_pin(b"1234", nonce, UNLOCK_KEY)
        cipher = create_cipher(b"1234", nonce)

        def forbidden(data):
            raise AssertionError("decrypt must not return plaintext as bytes")

        cipher.apply = forbidden
        plaintext = decrypt(cipher, ciphertext)
        assert plaintext == UNLOCK_KEY
        assert isinstance(plaintext, bytearray)

    def test_decrypt_empty(self, nonce):
        assert decrypt(create_cipher(b"1234", nonce), b"") == bytearray()
