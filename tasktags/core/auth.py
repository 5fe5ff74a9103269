"""
Authentication module for Task & Tag Service.
Resolves the bearer token on each request into the calling user.
"""
import logging
from typing import Optional, Dict, Any

from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError

from .security import decode_token

# Configure logging
logger = logging.getLogger(__name__)

# Security scheme; missing credentials are reported by get_current_user
security = HTTPBearer(
    scheme_name="Bearer Token",
    description="JWT Bearer token issued by /auth/login",
    auto_error=False,
)


class CurrentUser:
    """Represents the current authenticated user."""

    def __init__(self, user_id: int, username: str, **kwargs):
        self.user_id = user_id
        self.username = username
        self.extra_data = kwargs

    def __str__(self):
        return f"User(id={self.user_id}, username={self.username})"

    def __repr__(self):
        return self.__str__()

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CurrentUser":
        """Create CurrentUser from a decoded token payload."""
        return cls(
            user_id=int(payload["sub"]),
            username=payload.get("username"),
            **{k: v for k, v in payload.items() if k not in ["sub", "username"]}
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """
    Dependency to get current authenticated user.

    Raises:
        HTTPException: 401 if no token or an expired token is supplied,
            403 if the token cannot be verified
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_token(credentials.credentials)
    except ExpiredSignatureError:
        logger.warning("Token verification failed: token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Invalid token",
        )

    try:
        current_user = CurrentUser.from_payload(payload)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Token payload rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Token verification failed",
        )

    logger.debug(f"Authenticated user: {current_user}")
    return current_user
