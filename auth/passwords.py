"""
auth/passwords.py -- One-way password hashing and verification.

Security design decisions:
  bcrypt, used directly rather than through passlib. passlib's wrap-bug
  detection builds a password longer than 72 bytes, which bcrypt 4.x+ rejects
  with an explicit error. Direct bcrypt usage is simpler and actively
  maintained.

  Work factor: BCRYPT_ROUNDS (12) is a fixed policy constant. The constructor
  accepts a lower value only so the test suite does not spend seconds per hash.

  72-byte limit: bcrypt only reads the first 72 bytes of its input. Older
  releases truncate silently, newer ones raise. hash() rejects longer inputs
  with HashingError so the behaviour does not depend on the installed version.
  An empty password is a valid input.

  compare() relies on bcrypt.checkpw, which compares in constant time. A
  malformed stored hash is reported as a mismatch, never as a crash.

Both operations are stateless and safe to call concurrently.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import bcrypt

from auth.errors import HashingError, MismatchError
from core.tracing import traced

logger = logging.getLogger("authservice.auth")

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72


class PasswordHasher(ABC):
    """Contract for credential hashing. One production variant: BcryptHasher."""

    @abstractmethod
    def hash(self, plaintext: str) -> str:
        """Return a salted one-way hash of plaintext. Raises HashingError."""

    @abstractmethod
    def compare(self, password_hash: str, plaintext: str) -> None:
        """Return None if plaintext reproduces password_hash. Raises MismatchError."""


class BcryptHasher(PasswordHasher):
    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds

    @traced("hasher.Hash", success="Password hashed")
    def hash(self, plaintext: str) -> str:
        encoded = plaintext.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            raise HashingError(f"password exceeds bcrypt's {BCRYPT_MAX_BYTES}-byte limit")
        try:
            return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            raise HashingError(f"bcrypt failed: {exc}") from exc

    @traced("hasher.Compare", success="Password matched")
    def compare(self, password_hash: str, plaintext: str) -> None:
        try:
            matched = bcrypt.checkpw(plaintext.encode("utf-8"), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            # Malformed hash or over-long input: nothing can match it.
            logger.debug("bcrypt rejected the stored hash or input during compare")
            matched = False
        if not matched:
            raise MismatchError("password does not match")
