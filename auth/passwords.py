"""
auth/passwords.py -- bcrypt password hashing and verification.

Security design decisions:
  bcrypt directly (no passlib wrapper). passlib's wrap-bug detection builds a
  password longer than 72 bytes, which bcrypt 4.x rejects with an explicit
  error. Direct bcrypt usage is simpler and actively maintained.

  Work factor: fixed per process, passed in from Settings.bcrypt_rounds. Every
  hash gets a fresh salt from bcrypt.gensalt(), so two users with the same
  password never share a hash.

  72-byte limit: bcrypt only looks at the first 72 bytes of input, and current
  bcrypt releases raise instead of truncating. hash() rejects longer inputs up
  front with a ValidationError so the API returns 400, not 500.

  Timing equalization [C1]: the hasher computes a dummy hash once at
  construction. The login service runs verify_dummy() when the email is
  unknown, so "no such user" costs one bcrypt comparison just like "wrong
  password" and response time does not reveal which emails exist.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

from core.errors import ValidationError

_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Adaptive, salted password hashing with a fixed work factor.

    Usage:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        stored = hasher.hash("s3cret")
        hasher.verify("s3cret", stored)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed once so the first failed login is not measurably slower
        # than the rest.
        self._dummy_hash = self.hash("gridgate_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the plaintext password with a fresh salt."""
        encoded = plain.encode("utf-8")
        if len(encoded) > _MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {_MAX_PASSWORD_BYTES} bytes.")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        bcrypt.checkpw compares in constant time. A malformed stored hash raises
        ValueError inside bcrypt, which means "no match" here. Candidates over
        72 bytes never match: hash() refuses to store them, and some bcrypt
        releases would otherwise truncate the candidate to the stored prefix.
        """
        encoded = plain.encode("utf-8")
        if len(encoded) > _MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt comparison against the dummy hash [C1]."""
        self.verify(plain, self._dummy_hash)
