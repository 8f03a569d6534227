"""
Authentication Service
Bearer token handling. Accounts and login live in the identity provider;
this service only issues and validates the signed access tokens.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from bikewear.config import settings
from bikewear.models.user import User

logger = logging.getLogger(__name__)


# ============================================================================
# JWT TOKEN MANAGEMENT
# ============================================================================


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User ID to encode in token
        expires_delta: Custom expiration time (default: ACCESS_TOKEN_EXPIRE_MINUTES)

    Returns:
        JWT token string

    Example:
        token = create_access_token(user_id=1)
        # Returns: eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...
    """
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    to_encode = {
        "sub": str(user_id),  # standard subject claim
        "exp": expire,
    }

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )

    logger.debug(f"Created token for user {user_id}, expires at {expire}")
    return encoded_jwt


def decode_access_token(token: str) -> Optional[int]:
    """
    Decode and validate a JWT token.

    Returns:
        User ID if valid, None if invalid/expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
        subject = payload.get("sub")
        if subject is None:
            return None
        return int(subject)

    except (JWTError, ValueError) as e:
        logger.warning(f"Invalid token: {str(e)}")
        return None


# ============================================================================
# GET USER FROM TOKEN
# ============================================================================


def get_user_from_token(db: Session, token: str) -> Optional[User]:
    """
    Get user object from JWT token.

    Example:
        user = get_user_from_token(db=db, token="eyJhbGci...")
        if user:
            print(f"Token belongs to {user.email}")
    """
    user_id = decode_access_token(token)

    if user_id is None:
        return None

    return db.query(User).filter(User.id == user_id).first()
