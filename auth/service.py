"""
auth/service.py -- Registration and login orchestration.

AuthService owns no state of its own: the store, hasher and token issuer are
constructed once at startup and passed in. Concurrent calls for different
emails proceed independently; nothing here needs a lock.

Step order is part of the contract:

  register: lookup -> hash -> build User -> create
      The password is never hashed for an email that already exists, and
      create() runs exactly once, only after hashing succeeded. There is no
      lock around check-then-create: two concurrent registrations for the same
      new email can both pass the lookup, and the store's UNIQUE(email)
      constraint turns the loser into a PersistenceError.

  login: lookup -> compare -> access token -> refresh token
      A TokenPair exists only if both the lookup and the compare succeeded.
      The refresh token is not attempted when the access token fails.

Lookup failures: only UserNotFoundError means "no such user". Any other store
failure during a lookup is a PersistenceError in both flows, so a broken store
can never be mistaken for a free email.

Logging and tracing carry email, full name and user id only -- never the
plaintext password or its hash.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from opentelemetry import trace

from auth.errors import (
    DuplicateAccountError,
    HashingError,
    InvalidCredentialsError,
    MismatchError,
    PersistenceError,
    SigningError,
    TokenIssuanceError,
    UserNotFoundError,
)
from auth.models import TokenClaims, TokenPair, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.tracing import set_span_attributes, traced

logger = logging.getLogger("authservice.auth")


class AuthService:
    def __init__(self, store: UserStore, hasher: PasswordHasher, tokens: TokenIssuer) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens

    @traced(
        "service.RegisterUser",
        attributes=lambda args: {"email": args["email"], "full_name": args["full_name"]},
        success="User created successfully",
    )
    def register(self, full_name: str, email: str, password: str) -> None:
        """Create an account for email. Raises DuplicateAccountError,
        HashingError or PersistenceError.
        """
        logger.info("Registering user with email %s, full name %s", email, full_name)

        try:
            self._store.find_by_email(email)
        except UserNotFoundError:
            pass
        else:
            logger.error("User with email %s already exists", email)
            raise DuplicateAccountError(f"user with email {email} already exists")

        try:
            password_hash = self._hasher.hash(password)
        except HashingError:
            logger.error("Error hashing password for %s", email)
            raise

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            full_name=full_name,
            email=email,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )
        set_span_attributes(trace.get_current_span(), {"user_id": user.id})

        try:
            self._store.create(user)
        except PersistenceError:
            logger.error("Error creating user %s", email)
            raise
        logger.info("User %s registered (%s)", email, user.id)

    @traced(
        "service.LoginUser",
        attributes=lambda args: {"email": args["email"]},
        success="Login successful",
    )
    def login(self, email: str, password: str) -> TokenPair:
        """Verify credentials and issue a TokenPair. Raises
        InvalidCredentialsError, PersistenceError or TokenIssuanceError.
        """
        logger.info("Login user with email %s", email)

        try:
            user = self._store.find_by_email(email)
        except UserNotFoundError as exc:
            logger.warning("Login failed for %s: email not found", email)
            raise InvalidCredentialsError("email not found") from exc

        set_span_attributes(
            trace.get_current_span(),
            {"user_id": user.id, "full_name": user.full_name},
        )

        try:
            self._hasher.compare(user.password_hash, password)
        except MismatchError as exc:
            logger.warning("Login failed for %s: password mismatch", email)
            raise InvalidCredentialsError("password mismatch") from exc

        claims = TokenClaims(user_id=user.id, full_name=user.full_name)
        try:
            access_token, access_expires_at = self._tokens.generate_access_token(claims)
        except SigningError as exc:
            logger.error("Error generating access token for %s: %s", user.id, exc)
            raise TokenIssuanceError("error generating access token") from exc
        try:
            refresh_token, refresh_expires_at = self._tokens.generate_refresh_token(claims)
        except SigningError as exc:
            logger.error("Error generating refresh token for %s: %s", user.id, exc)
            raise TokenIssuanceError("error generating refresh token") from exc

        logger.info("User %s logged in", user.id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )
