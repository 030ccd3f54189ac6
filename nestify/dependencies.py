"""
Dependency injection functions for the API.
"""

import uuid

from fastapi import Depends, HTTPException, Cookie, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Optional

from nestify.db.session import get_db
from nestify.db.models import User
from nestify.core.locks import ContainerLocks, get_container_locks
from nestify.core.security import verify_token


# Database dependency
db_dependency = get_db

# OAuth2 scheme for token extraction from Authorization header
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="api/auth/token",
    auto_error=False,  # Don't auto-raise errors to allow cookie fallback
)


async def get_token(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(None),
) -> str:
    """
    Extract token from either Authorization header or cookie.

    Prioritizes the Authorization header token if available.
    """
    if token:
        return token
    if access_token:
        return access_token

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: str = Depends(get_token), db: Session = Depends(db_dependency)
) -> User:
    """
    Get the current authenticated user from a JWT token.

    Verifies the token and fetches the corresponding user from the database.
    """
    try:
        payload = verify_token(token)
        user_id = payload.get("sub")
        if not user_id:
            raise ValueError("User ID not found in token")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == _parse_user_id(user_id)).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )

    return user


def get_locks() -> ContainerLocks:
    """Container lock backend used by mutating routes."""
    return get_container_locks()


def _parse_user_id(user_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
