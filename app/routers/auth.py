# app/routers/auth.py
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.schemas.user import UserResponse, Token, LoginRequest, RefreshRequest, ChangePasswordRequest, MyRoleResponse
from app.database import get_db
from app.utils.password import hash_password, verify_password
from jose import JWTError
from app.core.security import create_access_token, create_refresh_token, decode_token
from app.core.auth import get_current_user
from app.core.errors import BadRequest
from app.core.roles import RoleDirectory, get_role_directory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
async def login(user_in: LoginRequest, db: AsyncSession = Depends(get_db)):
    # Fetch user
    result = await db.execute(select(User).where(User.email == user_in.email))
    user = result.scalar_one_or_none()

    # Verify credentials
    if not user or not user.is_active or not verify_password(user_in.password, user.hashed_password):
        logger.warning("Failed login for %s", user_in.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token({"sub": str(user.id)})
    refresh_token = create_refresh_token({"sub": str(user.id)})

    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        user=user
    )


@router.get("/me", response_model=UserResponse)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/me/role", response_model=MyRoleResponse)
async def read_my_role(
    current_user: User = Depends(get_current_user),
    roles: RoleDirectory = Depends(get_role_directory),
):
    return MyRoleResponse(user_id=current_user.id, role=roles.role_of(current_user.id))


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Replace the password an admin issued when creating the account."""
    if not verify_password(request.current_password, current_user.hashed_password):
        logger.warning("User %s failed the current-password check", current_user.id)
        raise BadRequest("Current password is incorrect")
    if request.new_password == request.current_password:
        raise BadRequest("New password must be different")

    try:
        current_user.hashed_password = hash_password(request.new_password)
    except ValueError as e:
        raise BadRequest(str(e))
    await db.commit()

    logger.info("User %s changed their password", current_user.id)
    return {"success": True}


@router.post("/refresh", response_model=Token)
async def refresh(request: RefreshRequest, db: AsyncSession = Depends(get_db)):
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid refresh token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(request.refresh_token)
    except JWTError:
        raise invalid
    if payload.get("type") != "refresh" or payload.get("sub") is None:
        raise invalid

    user = await db.get(User, int(payload["sub"]))
    if user is None or not user.is_active:
        raise invalid

    return Token(
        access_token=create_access_token({"sub": str(user.id)}),
        refresh_token=create_refresh_token({"sub": str(user.id)}),
        token_type="bearer",
        user=user
    )
