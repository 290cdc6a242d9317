"""
auth/tokens.py -- Session token issue and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the deployment's
       SECRET_KEY and carry userId, roleId, email, iat and exp (Unix-time
       integers). The wire format is the standard compact JWS:
       base64url(header).base64url(payload).base64url(signature).

  Stateless: verify() performs no database lookup. Everything it needs is in
       the token and the secret. The flip side is that a token keeps the
       roleId it was issued with until it expires -- see TokenIdentity.

  Failure collapse: verify() returns None for every failure (malformed token,
       bad signature, expired, missing or mistyped claims). The caller cannot
       tell which check failed, and neither can an attacker probing the API.

  Algorithm pinning: decode() is called with algorithms=["HS256"], so tokens
       declaring "none" or an asymmetric algorithm are rejected.

  Secret handling: the secret is passed into the constructor (from
       Settings.secret_key in api/main.py lifespan). Rotating SECRET_KEY
       invalidates every outstanding token, which is the only revocation
       mechanism this service offers.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from auth.models import TokenIdentity

logger = logging.getLogger("gridgate.auth.tokens")

_ALGORITHM = "HS256"
_DEFAULT_EXPIRE_SECONDS = 7 * 24 * 3600

_IDENTITY_CLAIMS = ("userId", "roleId", "email")
_TIME_CLAIMS = ("iat", "exp")


class TokenService:
    """Issue and verify signed session tokens.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        token = tokens.issue(TokenIdentity(user_id="u1", role_id="r1", email="a@b.com"))
        tokens.verify(token)   # TokenIdentity(user_id="u1", ...)
        tokens.verify("junk")  # None
    """

    algorithm = _ALGORITHM

    def __init__(self, secret_key: str, expire_seconds: int = _DEFAULT_EXPIRE_SECONDS) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key.")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(
        self,
        identity: TokenIdentity,
        expire_seconds: int = 0,
        issued_at: Optional[datetime] = None,
    ) -> str:
        """Encode a signed token for identity.

        Args:
            identity:       The (user_id, role_id, email) triple to embed.
            expire_seconds: Lifetime override. 0 (default) uses the service's
                            configured lifetime.
            issued_at:      Issue time override, UTC. Defaults to now. Lets
                            callers and tests mint tokens that are already
                            expired without sleeping.
        """
        duration = expire_seconds if expire_seconds > 0 else self.expire_seconds
        iat = issued_at or datetime.now(timezone.utc)
        exp = iat + timedelta(seconds=duration)
        payload = {
            "userId": identity.user_id,
            "roleId": identity.role_id,
            "email": identity.email,
            "iat": int(iat.timestamp()),
            "exp": int(exp.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> Optional[TokenIdentity]:
        """Decode and verify a token. Returns the identity or None on any failure.

        Returning None (rather than raising) keeps the caller simple: any
        invalid token is treated as unauthenticated, and the access guard
        turns None into a 401.
        """
        if not isinstance(token, str) or not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"require_iat": True, "require_exp": True},
            )
        except JWTError as exc:
            logger.debug("Token rejected: %s", type(exc).__name__)
            return None

        for claim in _IDENTITY_CLAIMS:
            if not isinstance(payload.get(claim), str) or not payload[claim]:
                return None
        for claim in _TIME_CLAIMS:
            # bool is an int subclass; a token claiming exp=true is malformed.
            value = payload.get(claim)
            if not isinstance(value, int) or isinstance(value, bool):
                return None

        return TokenIdentity(
            user_id=payload["userId"],
            role_id=payload["roleId"],
            email=payload["email"],
        )
