"""
auth/tokens.py -- Signed access and refresh token issuance.

Security design decisions:
  JWT: python-jose with HS256. Both token kinds are signed with the single
       process-wide secret handed to JWTTokenIssuer at startup (sourced from
       core.config.get_settings().jwt_secret by the API lifespan). Tokens carry
       user_id, full_name, iat, exp and a type claim ("access" / "refresh").

  Lifetimes are policy constants, not runtime configuration:
       access  = 24 hours
       refresh = 7 days

  Stateless: nothing is recorded server-side, so there is no revocation.
       Validity is signature + exp at verification time, which is the
       consumer's job, not this module's.

  An empty secret is refused with SigningError rather than producing tokens
  anyone could forge.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import SigningError
from auth.models import TokenClaims
from core.tracing import traced

ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(hours=24)
REFRESH_TOKEN_TTL = timedelta(hours=24 * 7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _claims_attributes(args) -> dict:
    claims: TokenClaims = args["claims"]
    return {"user_id": claims.user_id, "full_name": claims.full_name}


class TokenIssuer(ABC):
    """Contract for token issuance. One production variant: JWTTokenIssuer."""

    @abstractmethod
    def generate_access_token(self, claims: TokenClaims) -> tuple[str, int]:
        """Return (token, expiry unix time). Raises SigningError."""

    @abstractmethod
    def generate_refresh_token(self, claims: TokenClaims) -> tuple[str, int]:
        """Return (token, expiry unix time). Raises SigningError."""


class JWTTokenIssuer(TokenIssuer):
    """HS256 JWT issuer.

    Args:
        secret: Shared HMAC signing key.
        clock:  Returns the current aware UTC datetime. Injected by tests.
    """

    def __init__(self, secret: str, clock: Callable[[], datetime] = _utcnow) -> None:
        self._secret = secret
        self._clock = clock

    @traced("token.GenerateAccessToken", attributes=_claims_attributes, success="Access token generated")
    def generate_access_token(self, claims: TokenClaims) -> tuple[str, int]:
        return self._sign(claims, "access", ACCESS_TOKEN_TTL)

    @traced("token.GenerateRefreshToken", attributes=_claims_attributes, success="Refresh token generated")
    def generate_refresh_token(self, claims: TokenClaims) -> tuple[str, int]:
        return self._sign(claims, "refresh", REFRESH_TOKEN_TTL)

    def _sign(self, claims: TokenClaims, token_type: str, ttl: timedelta) -> tuple[str, int]:
        if not self._secret:
            raise SigningError("signing secret is empty")
        issued_at = self._clock()
        expires_at = int((issued_at + ttl).timestamp())
        payload = {
            "user_id": claims.user_id,
            "full_name": claims.full_name,
            "type": token_type,
            "iat": int(issued_at.timestamp()),
            "exp": expires_at,
        }
        try:
            token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        except (JWTError, TypeError, ValueError) as exc:
            raise SigningError(f"failed to sign {token_type} token: {exc}") from exc
        return token, expires_at
