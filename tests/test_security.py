# mypy: ignore-errors
"""Tests for the cryptographic primitives."""

from __future__ import annotations

import pytest

from custom_api_auth.core import security

RFC4231_CASE2_TAG = "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"


def test_derive_keys_is_deterministic_and_domain_separated() -> None:
    first = security.derive_keys("master")
    second = security.derive_keys(b"master")
    assert first == second
    assert len(first.encryption_key) == security.KEY_LENGTH_BYTES
    assert len(first.mac_key) == security.KEY_LENGTH_BYTES
    assert first.encryption_key != first.mac_key
    assert security.derive_keys("other").encryption_key != first.encryption_key


def test_derive_keys_rejects_empty_secret() -> None:
    with pytest.raises(ValueError):
        security.derive_keys("")


def test_derived_keys_repr_hides_material() -> None:
    keys = security.derive_keys("master")
    assert keys.encryption_key.hex() not in repr(keys)


def test_encrypt_decrypt_round_trip() -> None:
    key = security.random_bytes(32)
    iv = security.random_bytes(16)
    ciphertext = security.encrypt(b"42|4600|1000|abc", key, iv)
    assert len(ciphertext) % 16 == 0
    assert security.decrypt(ciphertext, key, iv) == b"42|4600|1000|abc"


def test_encrypt_rejects_bad_key_and_iv_lengths() -> None:
    with pytest.raises(ValueError):
        security.encrypt(b"data", b"short", security.random_bytes(16))
    with pytest.raises(ValueError):
        security.encrypt(b"data", security.random_bytes(32), b"short")


@pytest.mark.parametrize("ciphertext", [b"", b"x" * 15, b"x" * 17])
def test_decrypt_rejects_misaligned_ciphertext(ciphertext: bytes) -> None:
    assert security.decrypt(ciphertext, security.random_bytes(32), security.random_bytes(16)) is None


def test_decrypt_reports_bad_padding_as_none() -> None:
    key = security.random_bytes(32)
    iv = security.random_bytes(16)
    ciphertext = security.encrypt(b"sixteen byte msg", key, iv)
    # The final block is pure padding; truncating it leaves an unpadded message.
    assert security.decrypt(ciphertext[:16], key, iv) is None


def test_hmac_sha256_matches_rfc4231() -> None:
    tag = security.hmac_sha256("what do ya want for nothing?", "Jefe")
    assert tag.hex() == RFC4231_CASE2_TAG


def test_hash_secret_is_keyed() -> None:
    assert security.hash_secret(b"nonce", "k1") != security.hash_secret(b"nonce", "k2")
    assert security.hash_secret(b"nonce", "k1") != b"nonce".hex()


def test_constant_time_eq() -> None:
    assert security.constant_time_eq(b"abc", b"abc")
    assert security.constant_time_eq("abc", b"abc")
    assert not security.constant_time_eq(b"abc", b"abd")
    assert not security.constant_time_eq(b"abc", b"abcd")


def test_random_bytes_length_and_uniqueness() -> None:
    assert len(security.random_bytes(32)) == 32
    assert security.random_bytes(32) != security.random_bytes(32)


def test_b64_helpers_are_cookie_safe() -> None:
    data = bytes(range(256))
    encoded = security.b64encode(data)
    assert "=" not in encoded and "+" not in encoded and "/" not in encoded
    assert security.b64decode(encoded) == data


@pytest.mark.parametrize("value", ["not base64!", "a", "é"])
def test_b64decode_rejects_invalid_input(value: str) -> None:
    with pytest.raises(ValueError):
        security.b64decode(value)
