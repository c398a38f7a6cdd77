# app/core/auth.py
import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.database import get_db
from app.models.user import User
from app.core.roles import RoleDirectory, get_role_directory
from app.core.security import decode_token

logger = logging.getLogger(__name__)

reusable_oauth2 = HTTPBearer()

async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: HTTPAuthorizationCredentials = Depends(reusable_oauth2)
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token.credentials)
        user_id: str = payload.get("sub")
        if user_id is None or payload.get("type") == "refresh":
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise credentials_exception
    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory),
):
    if not roles.is_admin(current_user.id):
        logger.warning("User %s denied admin access", current_user.id)
        raise HTTPException(403, "Admin access required")
    return current_user


async def get_current_manager(
    current_user: User = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory),
):
    """Admins and supervisors."""
    if not (roles.is_admin(current_user.id) or roles.is_supervisor(current_user.id)):
        logger.warning("User %s denied manager access", current_user.id)
        raise HTTPException(403, "Admin or supervisor access required")
    return current_user
