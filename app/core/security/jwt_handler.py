"""
JWT token management utilities.

Handles JWT token creation and validation for faculty sessions.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union
from uuid import UUID

import jwt

from app.core.exceptions import InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)


class JWTManager:
    """
    JWT token manager for authentication.

    Supports access and refresh tokens with different expiration times.
    Tokens carry issuer and audience claims that are enforced on verify.
    """

    DEFAULT_ALGORITHM = "HS256"
    DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES = 60
    DEFAULT_REFRESH_TOKEN_EXPIRE_DAYS = 7

    def __init__(
        self,
        secret_key: str,
        algorithm: str = DEFAULT_ALGORITHM,
        access_token_expire_minutes: int = DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES,
        refresh_token_expire_days: int = DEFAULT_REFRESH_TOKEN_EXPIRE_DAYS,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes
        self.refresh_token_expire_days = refresh_token_expire_days
        self.issuer = issuer
        self.audience = audience

    @classmethod
    def from_settings(cls, settings) -> "JWTManager":
        return cls(
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            access_token_expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
            refresh_token_expire_days=settings.REFRESH_TOKEN_EXPIRE_DAYS,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
        )

    def create_access_token(
        self,
        user_id: Union[UUID, str],
        additional_claims: Optional[Dict[str, Any]] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create JWT access token.

        Args:
            user_id: Faculty identifier
            additional_claims: Additional claims to include
            expires_delta: Custom expiration time

        Returns:
            Encoded JWT token
        """
        expires_delta = expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        return self._encode(user_id, "access", expires_delta, additional_claims)

    def create_refresh_token(
        self,
        user_id: Union[UUID, str],
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        expires_delta = expires_delta or timedelta(days=self.refresh_token_expire_days)
        return self._encode(user_id, "refresh", expires_delta)

    def create_token_pair(
        self,
        user_id: Union[UUID, str],
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, str]:
        return {
            "access_token": self.create_access_token(user_id, additional_claims),
            "refresh_token": self.create_refresh_token(user_id),
            "token_type": "bearer",
        }

    def verify_token(self, token: str, expected_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token.

        Raises:
            TokenExpiredError: If token is expired
            InvalidTokenError: If token is malformed, forged or of the wrong type
        """
        options = {"require": ["exp", "iat", "user_id"]}
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token verification failed: token expired")
            raise TokenExpiredError(token_type=expected_type)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Token verification failed: {e}")
            raise InvalidTokenError(token_type=expected_type, reason=type(e).__name__)

        if payload.get("token_type") != expected_type:
            raise InvalidTokenError(token_type=expected_type, reason="unexpected token type")
        return payload

    def _encode(
        self,
        user_id: Union[UUID, str],
        token_type: str,
        expires_delta: timedelta,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "user_id": str(user_id),
            "token_type": token_type,
            "iat": now,
            "exp": now + expires_delta,
            "jti": secrets.token_hex(16),  # Token ID for revocation
        }
        if self.issuer:
            payload["iss"] = self.issuer
        if self.audience:
            payload["aud"] = self.audience
        if additional_claims:
            payload.update(additional_claims)

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"{token_type.capitalize()} token created for user {user_id}")
        return token
