# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access token validation with python-jose.

Tokens are issued by the platform's authentication service. This service
validates the signature, expiry, type and (when configured) issuer, and
reads the user's identity, type and school scope from the claims.
create_access_token() mints tokens with the same claim layout for local
tooling and tests.

Example:
    >>> from src.core.config import get_settings
    >>> jwt_manager = JWTManager(get_settings().jwt)
    >>> token = jwt_manager.create_access_token("user-123", user_type="student")
    >>> jwt_manager.decode_token(token, expected_type="access").user_type
    'student'
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
from uuid import UUID

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel, ValidationError

from src.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)

TokenType = Literal["access", "refresh"]
UserType = Literal["student", "teacher", "school_admin", "tenant_admin"]


class TokenPayload(BaseModel):
    """Claims this service relies on.

    Attributes:
        sub: User ID.
        type: Token type; only access tokens authenticate requests.
        user_type: Kind of user. Students are suggestion subjects; teachers
            and admins act for groups and curate the graph.
        roles: Role codes, informational.
        school_ids: Schools the user belongs to. The first one is the
            user's own school scope.
        exp: Expiration timestamp.
        iat: Issued-at timestamp.
        jti: Token ID.
    """

    sub: str
    type: TokenType
    user_type: UserType | None = None
    roles: list[str] = []
    school_ids: list[str] = []
    exp: int
    iat: int
    jti: str


class JWTError(Exception):
    """Base exception for token validation."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised for bad signatures, malformed claims or the wrong token type."""

    pass


class JWTManager:
    """Validates (and for tooling, mints) access tokens.

    Attributes:
        _settings: JWT configuration settings.
    """

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    @property
    def _key(self) -> str:
        return self._settings.secret_key.get_secret_value()

    def create_access_token(
        self,
        user_id: str | UUID,
        user_type: str | None = None,
        roles: list[str] | None = None,
        school_ids: list[str | UUID] | None = None,
    ) -> str:
        """Mint an access token with the claim layout decode_token expects.

        Args:
            user_id: User identifier.
            user_type: Kind of user.
            roles: Role codes.
            school_ids: Schools the user belongs to, own school first.

        Returns:
            Encoded JWT.
        """
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self._settings.access_token_expire_minutes)

        claims: dict[str, Any] = {
            "sub": str(user_id),
            "type": "access",
            "user_type": user_type,
            "roles": list(roles or []),
            "school_ids": [str(school_id) for school_id in school_ids or []],
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": secrets.token_urlsafe(16),
        }
        if self._settings.issuer:
            claims["iss"] = self._settings.issuer

        return jwt.encode(claims, self._key, algorithm=self._settings.algorithm)

    def decode_token(
        self,
        token: str,
        expected_type: TokenType | None = None,
    ) -> TokenPayload:
        """Validate a token and return its claims.

        Args:
            token: Encoded JWT.
            expected_type: Reject tokens of any other type.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid or of the wrong type.
        """
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self._settings.algorithm],
                issuer=self._settings.issuer,
                options={"leeway": self._settings.leeway_seconds},
            )
        except ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except JoseJWTError as e:
            logger.warning("Rejected token: %s", e)
            raise InvalidTokenError(f"Invalid token: {e}")

        if expected_type is not None and claims.get("type") != expected_type:
            raise InvalidTokenError(f"Expected {expected_type} token, got {claims.get('type')}")

        try:
            return TokenPayload.model_validate(claims)
        except ValidationError as e:
            raise InvalidTokenError(f"Invalid token claims: {e}")

    def verify_token(self, token: str, expected_type: TokenType | None = None) -> bool:
        """Whether decode_token would accept the token."""
        try:
            self.decode_token(token, expected_type)
        except JWTError:
            return False
        return True
