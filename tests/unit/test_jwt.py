# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for access token validation."""

import time
from uuid import uuid4

import pytest
from jose import jwt
from pydantic import SecretStr

from src.core.config.settings import JWTSettings
from src.domains.auth.jwt import (
    InvalidTokenError,
    JWTManager,
    TokenExpiredError,
    TokenPayload,
)

SECRET = "test-secret-key-for-jwt-testing"


def make_manager(**overrides) -> JWTManager:
    values = {"secret_key": SecretStr(SECRET), "access_token_expire_minutes": 30}
    values.update(overrides)
    return JWTManager(JWTSettings(**values))


@pytest.fixture
def jwt_manager() -> JWTManager:
    return make_manager()


def forge(claims: dict) -> str:
    """Sign arbitrary claims with the test secret."""
    now = int(time.time())
    base = {"sub": str(uuid4()), "type": "access", "iat": now, "exp": now + 600, "jti": "j1"}
    base.update(claims)
    return jwt.encode({k: v for k, v in base.items() if v is not None}, SECRET, algorithm="HS256")


class TestDecodeToken:
    """Tests for JWTManager.decode_token."""

    def test_returns_encoded_claims(self, jwt_manager: JWTManager) -> None:
        user_id = str(uuid4())
        school_id = str(uuid4())

        token = jwt_manager.create_access_token(
            user_id=user_id,
            user_type="student",
            roles=["student"],
            school_ids=[school_id],
        )
        payload = jwt_manager.decode_token(token, expected_type="access")

        assert isinstance(payload, TokenPayload)
        assert payload.sub == user_id
        assert payload.type == "access"
        assert payload.user_type == "student"
        assert payload.roles == ["student"]
        assert payload.school_ids == [school_id]

    def test_wrong_type_is_rejected(self, jwt_manager: JWTManager) -> None:
        token = jwt_manager.create_access_token(user_id=str(uuid4()))

        with pytest.raises(InvalidTokenError, match="Expected refresh token"):
            jwt_manager.decode_token(token, expected_type="refresh")

    def test_expired_token(self) -> None:
        manager = make_manager(access_token_expire_minutes=-1)
        token = manager.create_access_token(user_id=str(uuid4()))

        with pytest.raises(TokenExpiredError, match="Token has expired"):
            manager.decode_token(token)

    def test_leeway_accepts_recently_expired_token(self) -> None:
        manager = make_manager(access_token_expire_minutes=-1, leeway_seconds=300)
        token = manager.create_access_token(user_id=str(uuid4()))

        assert manager.decode_token(token).type == "access"

    def test_garbage_token(self, jwt_manager: JWTManager) -> None:
        with pytest.raises(InvalidTokenError):
            jwt_manager.decode_token("invalid.token.here")

    def test_other_secret_is_rejected(self, jwt_manager: JWTManager) -> None:
        token = jwt_manager.create_access_token(user_id=str(uuid4()))
        other = make_manager(secret_key=SecretStr("different-secret-key"))

        with pytest.raises(InvalidTokenError):
            other.decode_token(token)

    def test_unknown_user_type_is_rejected(self, jwt_manager: JWTManager) -> None:
        with pytest.raises(InvalidTokenError, match="Invalid token claims"):
            jwt_manager.decode_token(forge({"user_type": "ringmaster"}))

    def test_missing_jti_is_rejected(self, jwt_manager: JWTManager) -> None:
        with pytest.raises(InvalidTokenError, match="Invalid token claims"):
            jwt_manager.decode_token(forge({"jti": None}))


class TestIssuer:
    """Tests for the optional issuer check."""

    def test_minted_tokens_carry_configured_issuer(self) -> None:
        manager = make_manager(issuer="auth.circus.test")
        token = manager.create_access_token(user_id=str(uuid4()))

        assert jwt.get_unverified_claims(token)["iss"] == "auth.circus.test"
        assert manager.verify_token(token) is True

    def test_token_from_other_issuer_is_rejected(self) -> None:
        manager = make_manager(issuer="auth.circus.test")

        with pytest.raises(InvalidTokenError):
            manager.decode_token(forge({"iss": "someone-else"}))

    def test_token_without_issuer_is_rejected_when_required(self) -> None:
        manager = make_manager(issuer="auth.circus.test")

        with pytest.raises(InvalidTokenError):
            manager.decode_token(forge({}))

    def test_issuer_ignored_when_not_configured(self, jwt_manager: JWTManager) -> None:
        payload = jwt_manager.decode_token(forge({"iss": "anyone"}))

        assert payload.type == "access"


class TestCreateAccessToken:
    """Tests for locally minted tokens."""

    def test_verify_token(self, jwt_manager: JWTManager) -> None:
        token = jwt_manager.create_access_token(user_id=str(uuid4()))

        assert jwt_manager.verify_token(token, expected_type="access") is True
        assert jwt_manager.verify_token(token, expected_type="refresh") is False
        assert jwt_manager.verify_token("invalid.token.here") is False

    def test_each_token_has_its_own_jti(self, jwt_manager: JWTManager) -> None:
        user_id = str(uuid4())

        first = jwt_manager.decode_token(jwt_manager.create_access_token(user_id=user_id))
        second = jwt_manager.decode_token(jwt_manager.create_access_token(user_id=user_id))

        assert first.jti != second.jti

    def test_lifetime_follows_settings(self, jwt_manager: JWTManager) -> None:
        before = int(time.time())
        token = jwt_manager.create_access_token(user_id=str(uuid4()))
        after = int(time.time())

        payload = jwt_manager.decode_token(token)

        assert before <= payload.iat <= after
        assert abs(payload.exp - (payload.iat + 30 * 60)) <= 1

    def test_uuids_become_strings(self, jwt_manager: JWTManager) -> None:
        user_id = uuid4()
        school_id = uuid4()

        token = jwt_manager.create_access_token(user_id=user_id, school_ids=[school_id])
        payload = jwt_manager.decode_token(token)

        assert payload.sub == str(user_id)
        assert payload.school_ids == [str(school_id)]

    def test_optional_claims_default_empty(self, jwt_manager: JWTManager) -> None:
        payload = jwt_manager.decode_token(jwt_manager.create_access_token(user_id=str(uuid4())))

        assert payload.user_type is None
        assert payload.roles == []
        assert payload.school_ids == []
