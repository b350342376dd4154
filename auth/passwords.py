"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's internal
wrap-bug detection hashes a password longer than 72 bytes, which bcrypt
rejects with an explicit error.

Passwords longer than 72 bytes would be silently truncated by bcrypt. The API
layer caps signup passwords at 72 characters, hash_password() refuses
anything longer in bytes, and verify_password() never matches a longer
input, so two different passwords can never share a hash.

Plaintext passwords are never logged, stored, or included in exceptions.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 10
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of plain at the given cost factor.

    Raises ValueError for passwords bcrypt cannot hash faithfully. Any bcrypt
    failure propagates -- an unhashed password must never reach the store.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if plain matches hashed.

    Malformed hashes and passwords over 72 bytes never match: bcrypt would
    otherwise compare only the first 72 bytes.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    return hash_password("authgate_timing_dummy", rounds)


def burn_verify(plain: str, rounds: int = DEFAULT_ROUNDS) -> None:
    """Run one bcrypt verification against a throwaway hash.

    Signin calls this when the email is unknown so the response takes as long
    as a wrong-password attempt and cannot be used to enumerate accounts. The
    dummy hash uses the same cost factor as real hashes.
    """
    verify_password(plain, _dummy_hash(rounds))
