"""Cryptographic primitives used by the auth token protocol.

Everything here is stateless. Keys are derived from the configured master
secret with HKDF-SHA256, tokens are encrypted with AES-256-CBC and
authenticated with HMAC-SHA256 (encrypt-then-MAC).
"""
from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

KEY_LENGTH_BYTES = 32
IV_LENGTH_BYTES = 16
NONCE_LENGTH_BYTES = 32
ENCRYPTION_CONTEXT = b"encryption"
AUTHENTICATION_CONTEXT = b"authentication"


@dataclass(frozen=True)
class DerivedKeys:
    """Independent cipher and MAC keys derived from one master secret."""

    encryption_key: bytes
    mac_key: bytes

    def __repr__(self) -> str:
        return "DerivedKeys(<redacted>)"


def _to_bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def _hkdf(master_secret: bytes, info: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH_BYTES,
        salt=None,
        info=info,
    ).derive(master_secret)


def derive_keys(master_secret: str | bytes) -> DerivedKeys:
    """Derive the token encryption key and MAC key from `master_secret`.

    Args:
        master_secret: Configured application secret.

    Returns:
        DerivedKeys holding two 256-bit keys bound to distinct HKDF labels.

    Raises:
        ValueError: If the master secret is empty.
    """
    secret = _to_bytes(master_secret)
    if not secret:
        raise ValueError("Master secret must not be empty")
    return DerivedKeys(
        encryption_key=_hkdf(secret, ENCRYPTION_CONTEXT),
        mac_key=_hkdf(secret, AUTHENTICATION_CONTEXT),
    )


def encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    """Encrypt `plaintext` with AES-256-CBC and PKCS7 padding."""
    if len(key) != KEY_LENGTH_BYTES:
        raise ValueError("Encryption key must be 32 bytes")
    if len(iv) != IV_LENGTH_BYTES:
        raise ValueError("IV must be 16 bytes")
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes | None:
    """Decrypt AES-256-CBC `ciphertext`.

    Returns:
        The plaintext, or None when the ciphertext, IV or padding is invalid.
    """
    if len(key) != KEY_LENGTH_BYTES or len(iv) != IV_LENGTH_BYTES:
        return None
    if not ciphertext or len(ciphertext) % IV_LENGTH_BYTES:
        return None
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        return None


def hmac_sha256(data: str | bytes, key: str | bytes) -> bytes:
    """Return the raw HMAC-SHA256 tag of `data` under `key`."""
    mac = crypto_hmac.HMAC(_to_bytes(key), hashes.SHA256())
    mac.update(_to_bytes(data))
    return mac.finalize()


def hash_secret(value: str | bytes, key: str | bytes) -> str:
    """Return the hex HMAC of a secret, the only form in which nonces are stored."""
    return hmac_sha256(value, key).hex()


def constant_time_eq(a: str | bytes, b: str | bytes) -> bool:
    """Compare two values without leaking the mismatch position."""
    return secrets.compare_digest(_to_bytes(a), _to_bytes(b))


def random_bytes(n: int) -> bytes:
    """Return `n` bytes from the OS CSPRNG."""
    return secrets.token_bytes(n)


def b64encode(data: bytes) -> str:
    """URL-safe base64 without padding, so values need no cookie quoting."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64decode(data: str) -> bytes:
    """Strict URL-safe base64 decode, accepting omitted padding.

    Raises:
        ValueError: If `data` is not valid base64.
    """
    try:
        raw = data.encode("ascii")
        return base64.b64decode(raw + b"=" * (-len(raw) % 4), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as err:
        raise ValueError(f"Invalid base64 encoding: {err}") from err
