"""
auth/errors.py -- Typed failures for the registration and login flows.

Every error raised out of AuthService is an AuthError. Each subclass carries a
stable machine-checkable ``code`` so the transport layer can map it to a
protocol response without parsing messages, plus a human-readable message.

InvalidCredentialsError is special: ``reason`` keeps the internal diagnostic
("email not found" / "password mismatch") for logs and traces, while
``public_message`` is the single generic text callers may show end users so a
response never reveals whether an email is registered.

The collaborator-level errors (MismatchError, SigningError, UserNotFoundError)
are raised by the hasher, token issuer and store. AuthService translates them
into the taxonomy above; they never reach the transport layer.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure AuthService surfaces to its callers."""

    code = "auth_error"
    public_message = "Authentication request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.public_message
        super().__init__(self.message)


class DuplicateAccountError(AuthError):
    code = "duplicate_account"
    public_message = "An account with that email already exists."


class HashingError(AuthError):
    code = "hashing_error"
    public_message = "Password could not be processed."


class PersistenceError(AuthError):
    code = "persistence_error"
    public_message = "User data could not be stored or retrieved."


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    public_message = "Invalid email or password."

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class TokenIssuanceError(AuthError):
    code = "token_issuance_error"
    public_message = "Token could not be issued."


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class MismatchError(Exception):
    """Raised by PasswordHasher.compare when the password does not match."""


class SigningError(Exception):
    """Raised by TokenIssuer when a token cannot be signed."""


class UserNotFoundError(LookupError):
    """Raised by UserStore.find_by_email when no user has that email."""
