"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store, hasher and
token issuer do the work; these classes own the domain shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class User:
    """A registered identity.

    id is a UUID4 string assigned at registration and never changes.
    email is unique across users and compared case-sensitively, as stored.
    password_hash is the bcrypt hash -- never the plaintext. repr=False keeps
    it out of log lines and tracebacks that format the whole object.
    created_at / updated_at are timezone-aware UTC datetimes.
    """

    id: str
    full_name: str
    email: str
    password_hash: str = field(repr=False)
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Identity fields signed into every issued token."""

    user_id: str
    full_name: str


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh token bundle returned by a successful login.

    Never stored server-side. The *_expires_at fields are unix timestamps
    matching the exp claim inside each token.
    """

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    access_expires_at: int
    refresh_expires_at: int
