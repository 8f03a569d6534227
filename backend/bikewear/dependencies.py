"""
Dependency Injection
Reusable dependencies for routes
"""

import logging
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import Session

from bikewear.db.database import get_db
from bikewear.models.user import User
from bikewear.services.auth_service import get_user_from_token

logger = logging.getLogger(__name__)

# ============================================================================
# GET CURRENT USER (For protected routes)
# ============================================================================


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from JWT token.

    Use this dependency in any route that requires authentication.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired

    Example Usage in Routes:
        @router.get("/api/bikes")
        async def list_bikes(current_user: User = Depends(get_current_user)):
            ...

    Flow:
        1. Client sends: Authorization: Bearer <token>
        2. get_user_from_token() validates and decodes JWT
        3. Return user object (or raise 401)
    """
    auth_header = request.headers.get("Authorization")

    if not auth_header or not auth_header.startswith("Bearer "):
        logger.warning("Missing or invalid Authorization header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header[len("Bearer "):]

    user = get_user_from_token(db=db, token=token)

    if user is None:
        logger.warning("Invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"Token validated for user: {user.email}")

    return user
