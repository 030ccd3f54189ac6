"""
Security utilities for JWT authentication.
"""

from datetime import timedelta
from typing import Any, Dict

from jose import jwt

import os

from nestify.utils.datetime_helper import utc_now

# Security configuration
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY:
    if os.getenv("ENVIRONMENT") == "production":
        raise RuntimeError("JWT_SECRET_KEY must be set in production")
    JWT_SECRET_KEY = "dev-secret-key-never-use-in-production"

# JWT settings
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7


def create_access_token(data: Dict[str, Any], expires_delta: timedelta = None) -> str:
    """
    Create a JWT access token with a specified expiration time.

    Args:
        data: Payload data to include in the token, ``sub`` is the user id
        expires_delta: Optional override of the default lifetime

    Returns:
        Encoded JWT access token
    """
    to_encode = data.copy()

    expire = utc_now() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """
    Decode and verify a JWT token.

    Args:
        token: JWT token to verify
        token_type: Expected value of the ``type`` claim

    Returns:
        Token payload if valid

    Raises:
        ValueError: If token is invalid or has wrong type
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.JWTError:
        raise ValueError("Invalid token")

    if payload.get("type") != token_type:
        raise ValueError(f"Token is not a {token_type} token")

    return payload
