"""
tests/test_tokens.py -- Unit tests for TokenService issue/verify.

Covers:
  - issue -> verify returns the same (user_id, role_id, email) triple
  - expired tokens, foreign-secret tokens and garbage all verify to None
  - claim shape checks: missing identity claims, non-integer times
  - constructor rejects an empty secret and a non-positive lifetime
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import TokenIdentity
from auth.tokens import TokenService

SECRET = "unit-test-secret-key-with-enough-entropy-0001"
IDENTITY = TokenIdentity(user_id="u1", role_id="r1", email="a@b.com")


@pytest.fixture()
def service() -> TokenService:
    return TokenService(SECRET, expire_seconds=3600)


class TestIssueVerify:
    def test_round_trip_preserves_identity(self, service: TokenService) -> None:
        assert service.verify(service.issue(IDENTITY)) == IDENTITY

    def test_claims_use_camel_case_names(self, service: TokenService) -> None:
        claims = jwt.get_unverified_claims(service.issue(IDENTITY))
        assert claims["userId"] == "u1"
        assert claims["roleId"] == "r1"
        assert claims["email"] == "a@b.com"
        assert claims["exp"] - claims["iat"] == 3600

    def test_expire_override(self, service: TokenService) -> None:
        claims = jwt.get_unverified_claims(service.issue(IDENTITY, expire_seconds=60))
        assert claims["exp"] - claims["iat"] == 60

    def test_expired_token_rejected(self, service: TokenService) -> None:
        """A token issued two hours ago with a one-hour lifetime must not verify."""
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = service.issue(IDENTITY, issued_at=issued)
        assert service.verify(token) is None

    def test_other_secret_rejected(self, service: TokenService) -> None:
        other = TokenService("a-completely-different-secret-key-of-length", expire_seconds=3600)
        assert service.verify(other.issue(IDENTITY)) is None

    def test_tampered_token_rejected(self, service: TokenService) -> None:
        token = service.issue(IDENTITY)
        head, payload, sig = token.split(".")
        tampered = ".".join([head, payload, sig[:-2] + ("AA" if sig[-2:] != "AA" else "BB")])
        assert service.verify(tampered) is None

    @pytest.mark.parametrize("junk", ["", "not-a-jwt", "a.b.c", "Bearer x"])
    def test_garbage_rejected(self, service: TokenService, junk: str) -> None:
        assert service.verify(junk) is None


class TestClaimShape:
    def _encode(self, payload: dict) -> str:
        return jwt.encode(payload, SECRET, algorithm="HS256")

    def _times(self) -> dict:
        now = int(datetime.now(timezone.utc).timestamp())
        return {"iat": now, "exp": now + 600}

    def test_missing_role_claim_rejected(self, service: TokenService) -> None:
        token = self._encode({"userId": "u1", "email": "a@b.com", **self._times()})
        assert service.verify(token) is None

    def test_non_string_identity_claim_rejected(self, service: TokenService) -> None:
        token = self._encode({"userId": 42, "roleId": "r1", "email": "a@b.com", **self._times()})
        assert service.verify(token) is None

    def test_missing_exp_rejected(self, service: TokenService) -> None:
        now = int(datetime.now(timezone.utc).timestamp())
        token = self._encode({"userId": "u1", "roleId": "r1", "email": "a@b.com", "iat": now})
        assert service.verify(token) is None

    def test_other_algorithm_rejected(self, service: TokenService) -> None:
        token = jwt.encode(
            {"userId": "u1", "roleId": "r1", "email": "a@b.com", **self._times()},
            SECRET,
            algorithm="HS512",
        )
        assert service.verify(token) is None


class TestConstruction:
    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenService("")

    def test_non_positive_lifetime_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenService(SECRET, expire_seconds=0)
