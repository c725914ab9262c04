"""Bearer token extraction and JWT validation."""

import logging
from datetime import datetime, timedelta
from typing import Mapping
from uuid import UUID

from jose import JWTError, jwt

from ...core.media.errors import InternalError, UnauthorizedError

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "tubely-access"


def get_bearer_token(headers: Mapping[str, str]) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    auth_header = headers.get("authorization") or headers.get("Authorization")
    if not auth_header:
        raise UnauthorizedError("Missing Authorization header")

    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Malformed Authorization header")

    return token.strip()


def create_access_token(
    user_id: UUID,
    secret: str,
    expires_in: timedelta = timedelta(hours=1),
    algorithm: str = "HS256",
) -> str:
    """Create a signed access token for user_id.

    Args:
        user_id: User UUID, stored as the subject
        secret: Signing secret
        expires_in: Lifetime of the token

    Returns:
        str: The encoded token
    """
    now = datetime.utcnow()
    payload = {
        "iss": TOKEN_ISSUER,
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def validate_jwt(token: str, secret: str, algorithm: str = "HS256") -> UUID:
    """Validate a token and return the user ID it was issued to.

    Raises:
        UnauthorizedError: Bad signature, expired, wrong issuer or subject
        InternalError: No secret configured; an empty HMAC key would
            accept tokens signed by anyone
    """
    if not secret:
        logger.error("JWT secret is not configured, refusing all tokens")
        raise InternalError("JWT secret is not configured")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            issuer=TOKEN_ISSUER,
        )
    except JWTError as e:
        logger.warning("Rejected access token", extra={"error": str(e)})
        raise UnauthorizedError("Invalid or expired token") from e

    try:
        return UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise UnauthorizedError("Token subject is not a user ID") from e
