"""
auth/passwords.py -- Salt generation and salted password hashing.

Each user row stores its own random 64-bit salt next to the hash. The
username plays no part in the hash.

Hash: bcrypt-pbkdf via bcrypt.kdf(). Unlike bcrypt.hashpw() it takes an
external salt and is fully deterministic for a given (password, salt,
rounds), which is what lets login recompute the hash and match it in SQL.
Each round is a full bcrypt invocation, so the round count is the cost
factor (Settings.password_hash_rounds).

Output is a 32-byte key rendered as 64 lowercase hex characters.
"""

from __future__ import annotations

import secrets

import bcrypt

from core.config import get_settings

_settings = get_settings()

_KEY_BYTES = 32
_SALT_BITS = 64


def generate_salt() -> int:
    """Return a fresh signed 64-bit salt from the OS CSPRNG.

    Signed so the value fits a BIGINT column on every engine.
    """
    return secrets.randbits(_SALT_BITS) - (1 << (_SALT_BITS - 1))


def hash_password(password: str, salt: int, rounds: int | None = None) -> str:
    """Derive the stored hash for password under salt.

    Raises ValueError on an empty password.
    """
    if not password:
        raise ValueError("Password must not be empty")
    key = bcrypt.kdf(
        password=password.encode("utf-8"),
        salt=salt.to_bytes(_SALT_BITS // 8, "big", signed=True),
        desired_key_bytes=_KEY_BYTES,
        rounds=rounds if rounds is not None else _settings.password_hash_rounds,
        # The floor is enforced (as a warning) by Settings, not per call.
        ignore_few_rounds=True,
    )
    return key.hex()
