"""
auth/passwords.py -- Password hashing (bcrypt, used directly).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

The work factor comes from Settings.bcrypt_rounds. Hashes embed their own
cost, so raising the setting only affects newly written hashes.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    An empty string hashes fine. Passwords longer than 72 bytes are truncated
    to 72 bytes before hashing, which is what bcrypt has always done
    implicitly; bcrypt 4.x raises instead, so the truncation is explicit here.
    """
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(_encode(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A missing, empty or corrupt hash yields False, never an exception.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:72]


# Timing equalization dummy hash [C1].
# Computed once at module load. The login flow always runs one bcrypt check,
# against this hash when the email is unknown, so response time does not
# reveal whether an account exists.
DUMMY_HASH: str = hash_password("semprecheio_timing_dummy")
