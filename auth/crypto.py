"""
auth/crypto.py -- Application-level encryption of login payloads.

The browser encrypts email and password before they reach the request body,
so credentials never show up in plaintext in devtools, proxies or request
logs, independent of TLS. This module is the server half of that contract.

Wire format (must match the frontend bit-for-bit):
  key        = PBKDF2-HMAC-SHA256(ENCRYPTION_KEY, salt=b"salt", 1000 iterations, 32 bytes)
  cipher     = AES-256-CBC, PKCS7 padding
  IV         = 16 random bytes, fresh per encrypt() call
  ciphertext = "<iv hex, 32 chars>:<ciphertext hex>"

The salt and iteration count are fixed by the frontend build. They are weak
for password storage but this is a transport obfuscation key, not a password
hash; changing them breaks every deployed client.

Every failure on the decrypt path raises DecryptionFailure. Nothing falls
back to returning the input unchanged.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import os
import secrets
from functools import lru_cache
from typing import Any

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from auth.errors import DecryptionFailure
from core.config import get_settings

logger = logging.getLogger("semprecheio.auth.crypto")

KDF_SALT = b"salt"
KDF_ITERATIONS = 1000
KEY_BYTES = 32
IV_BYTES = 16
_BLOCK_BITS = 128


@lru_cache(maxsize=8)
def derive_key(secret: str) -> bytes:
    """Derive the AES-256 key from the shared secret.

    Cached per secret: derivation is deterministic and runs on every login.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def encrypt(plaintext: str, secret: str | None = None) -> str:
    """Encrypt a string into the "iv_hex:ciphertext_hex" wire format.

    The server never needs this for login; it exists for the CLI, tests, and
    server-to-server callers that speak the same format.
    """
    key = derive_key(secret if secret is not None else get_settings().encryption_key)
    iv = os.urandom(IV_BYTES)

    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt(payload: str, secret: str | None = None) -> str:
    """Decrypt an "iv_hex:ciphertext_hex" string back to UTF-8 plaintext.

    Raises DecryptionFailure when the payload is not a two-part hex string,
    the IV is not 16 bytes, the ciphertext is not a whole number of blocks,
    the padding is wrong (wrong key or tampered data), or the plaintext is not
    valid UTF-8.
    """
    if not isinstance(payload, str):
        raise DecryptionFailure()
    parts = payload.split(":")
    if len(parts) != 2:
        raise DecryptionFailure()
    try:
        iv = bytes.fromhex(parts[0])
        ciphertext = bytes.fromhex(parts[1])
    except ValueError as exc:
        raise DecryptionFailure() from exc
    if len(iv) != IV_BYTES or not ciphertext or len(ciphertext) % IV_BYTES:
        raise DecryptionFailure()

    key = derive_key(secret if secret is not None else get_settings().encryption_key)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    try:
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8")
    except ValueError as exc:
        # Bad padding and bad UTF-8 both surface as ValueError.
        raise DecryptionFailure() from exc


def is_encrypted(payload: Any) -> bool:
    """True only for a mapping whose "encrypted" flag is the boolean True."""
    return isinstance(payload, dict) and payload.get("encrypted") is True


def decrypt_login_fields(email: str | None, password: str | None) -> tuple[str | None, str | None]:
    """Decrypt the credential fields of an encrypted login payload.

    Absent fields stay None so the login flow can report them as missing
    input rather than as a decryption failure.
    """
    plain_email = decrypt(email) if email else None
    plain_password = decrypt(password) if password else None
    logger.debug("Login payload decrypted")
    return plain_email, plain_password


def generate_encryption_key() -> str:
    """Return a fresh 256-bit secret as 64 hex characters."""
    return secrets.token_hex(32)


def validate_encryption_key(key: str) -> bool:
    return bool(key) and len(key) >= 32
