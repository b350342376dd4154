"""
auth/tokens.py -- JWT signing/verification and refresh-token hashing.

Security design decisions:
  JWT: python-jose with HS256 (configurable). Tokens are signed, not
       encrypted -- never put anything in claims a client must not read.
       sign() adds the registered claims exp, iat and a random jti; the jti
       guarantees two tokens issued for the same user in the same second are
       distinct (session rows are keyed by the refresh token's hash).

  Verification failures are reported as three distinct exceptions so the
       service can log which check failed. Callers must still collapse all of
       them into one external "invalid token" answer.

  Refresh-token storage: sessions store HMAC-SHA256(SECRET_KEY, raw_token),
       never the raw token. Refresh tokens carry 256+ bits of signature
       entropy, so a fast keyed hash is sufficient and keeps lookup O(1) via
       the unique index; bcrypt's slowness would buy nothing here.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
USER_ID_CLAIM = "userId"


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenMalformed(TokenError):
    """The value is not a structurally valid JWT."""


class TokenExpired(TokenError):
    """The signature is valid but the embedded exp is in the past."""


class TokenInvalidSignature(TokenError):
    """The token was tampered with or signed with another key."""


class TokenSigner:
    """Issues and verifies signed, expiring tokens.

    The signer treats claims as opaque: it neither sets nor checks "type" or
    "userId". Usage:

        signer = TokenSigner(settings.secret_key)
        token = signer.sign({"userId": uid, "type": "refresh"}, timedelta(days=7))
        claims = signer.verify(token)
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256") -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.algorithm = algorithm

    def sign(self, claims: dict[str, Any], ttl: timedelta) -> str:
        """Return a token carrying claims that expires ttl from now."""
        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload.update(
            {
                "iat": now,
                "exp": now + ttl,
                "jti": secrets.token_hex(16),
            }
        )
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Return the token's claims or raise a TokenError subclass."""
        if not token or not isinstance(token, str):
            raise TokenMalformed("empty token")
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenMalformed(str(exc)) from exc
        try:
            return jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired(str(exc)) from exc
        except JWTError as exc:
            raise TokenInvalidSignature(str(exc)) from exc


def hash_refresh_token(secret_key: str, raw_token: str) -> str:
    """Return HMAC-SHA256(secret_key, raw_token) as a hex string."""
    return hmac.new(
        secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()
