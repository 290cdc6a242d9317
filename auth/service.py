"""
auth/service.py -- Email/password login and token re-issue.

Outcome classification (the route layer maps these to status codes):
  unknown email          -> AuthenticationError  (401, generic message)
  wrong password         -> AuthenticationError  (401, same generic message)
  deactivated account    -> AccountDisabledError (403, specific message)
  success                -> LoginResult(token, user, role)

Security:
  [C1] Timing equalization. bcrypt runs whether or not the email exists:
       unknown emails are checked against the hasher's dummy hash, so the
       response time does not reveal which emails are registered.

  The password is verified BEFORE the active flag is consulted. A caller who
  does not know the password cannot learn that an account is deactivated;
  only a correct password earns the specific 403 message.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.models import LoginResult, TokenIdentity
from auth.passwords import PasswordHasher
from auth.tokens import TokenService
from core.errors import AccountDisabledError, AuthenticationError, NotFoundError
from rbac.models import Role, User
from rbac.store import RbacStore

logger = logging.getLogger("gridgate.auth")

_BAD_CREDENTIALS = "Invalid email or password."


class AuthService:
    """Turns credentials into session tokens."""

    def __init__(self, store: RbacStore, hasher: PasswordHasher, tokens: TokenService) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens

    def login(self, email: str, password: str) -> LoginResult:
        """Authenticate a local email/password login with timing equalization.

        Raises AuthenticationError or AccountDisabledError; never returns a
        partial result.
        """
        user = self.store.get_user_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt [C1]
            self.hasher.verify_dummy(password)
            logger.info("Login failed: bad credentials")
            raise AuthenticationError(_BAD_CREDENTIALS)
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login failed: bad credentials")
            raise AuthenticationError(_BAD_CREDENTIALS)
        if not user.is_active:
            logger.info("Login refused for deactivated user %s", user.id)
            raise AccountDisabledError("User account is deactivated.")

        self.store.update_last_login(user.id)
        logger.info("Login succeeded for user %s", user.id)
        return self._result_for(user)

    def refresh(self, identity: TokenIdentity) -> LoginResult:
        """Issue a fresh token from the live user record.

        Unlike the incoming token, the new one carries the user's CURRENT
        role id, so this is how a role reassignment reaches an existing
        session. A user deleted or deactivated since the original login gets
        a 401 rather than a new token.
        """
        user = self.store.get_user(identity.user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("Not authenticated.")
        return self._result_for(user)

    def current_user(self, identity: TokenIdentity) -> tuple[User, Optional[Role]]:
        """Return (user, role-with-permissions) for the caller, from the live store.

        Raises NotFoundError when the token outlived its user record.
        """
        user = self.store.get_user(identity.user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user, self.store.get_role(user.role_id)

    def _result_for(self, user: User) -> LoginResult:
        token = self.tokens.issue(TokenIdentity(user_id=user.id, role_id=user.role_id, email=user.email))
        return LoginResult(
            token=token,
            expires_in=self.tokens.expire_seconds,
            user=user,
            role=self.store.get_role(user.role_id),
        )
