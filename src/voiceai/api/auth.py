"""JWT Authentication for API endpoints.

Dashboard routes (reports, notifications) require a bearer JWT whose
``sub`` claim is the user id. The cron routes use a shared API key
instead, see ``voiceai.api.cron``.
"""

from __future__ import annotations

import warnings
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from voiceai.config import DEFAULT_JWT_SECRET, get_settings
from voiceai.core.exceptions import ConfigurationError


# HTTP Bearer security scheme
security_required = HTTPBearer(auto_error=True)


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # User ID
    exp: datetime
    iat: datetime
    type: str = "access"
    email: str | None = None


class AuthenticatedUser(BaseModel):
    """Authenticated dashboard user."""

    id: str
    email: str | None = None
    token_type: str = "access"


def get_secret_key() -> str:
    """Get JWT secret key from settings.

    Raises:
        ConfigurationError: If no secret key is configured in production environment.
    """
    settings = get_settings()
    secret = settings.jwt_secret_key

    if not secret:
        if settings.environment in ("production", "staging", "prod"):
            raise ConfigurationError(
                "JWT secret key must be configured in production! "
                "Set VOICEAI_JWT_SECRET_KEY environment variable."
            )
        warnings.warn(
            "Using insecure default JWT secret. "
            "Set VOICEAI_JWT_SECRET_KEY for production!",
            RuntimeWarning,
            stacklevel=2,
        )
        secret = DEFAULT_JWT_SECRET

    return secret


def get_algorithm() -> str:
    """Get JWT algorithm."""
    return get_settings().jwt_algorithm


def create_access_token(
    subject: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a new JWT access token.

    Args:
        subject: The user ID for the token
        email: Optional account email carried in the token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    settings = get_settings()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expiry_minutes)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "exp": now + expires_delta,
        "iat": now,
        "type": "access",
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, get_secret_key(), algorithm=get_algorithm())


def decode_token(token: str) -> TokenPayload:
    """Decode and validate a JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            get_secret_key(),
            algorithms=[get_algorithm()],
        )
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security_required),
) -> AuthenticatedUser:
    """Dependency to get the current authenticated user.

    Usage:
        @router.get("/reports")
        async def list_reports(
            user: AuthenticatedUser = Depends(get_current_user)
        ):
            return {"user_id": user.id}
    """
    payload = decode_token(credentials.credentials)

    try:
        UUID(payload.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthenticatedUser(
        id=payload.sub,
        email=payload.email,
        token_type=payload.type,
    )
