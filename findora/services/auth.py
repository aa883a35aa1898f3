# file: findora/services/auth.py

import logging
from typing import Optional

import jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from findora.database.connection import get_db
from findora.database.models import User
from findora.models.user import UserCreate, UserLogin
from findora.utils.security import hash_password, verify_password, create_access_token, decode_access_token

logger = logging.getLogger(__name__)

# auto_error=False so a missing header can be told apart (401) from a bad token (403).
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def register_user(user: UserCreate, db: AsyncSession) -> User:
    stmt = select(User).where(User.email == user.email)
    result = await db.execute(stmt)
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    new_user = User(
        email=user.email,
        password=hash_password(user.password),
        name=user.name,
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email.
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )
    await db.refresh(new_user)
    logger.info(f"Registered user id={new_user.id}")
    return new_user


async def authenticate_user(credentials: UserLogin, db: AsyncSession) -> tuple[User, str]:
    stmt = select(User).where(User.email == credentials.email)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    # Same response whether the email is unknown or the password is wrong.
    if not user or not verify_password(credentials.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    access_token = create_access_token(user.id)
    return user, access_token


async def get_current_user(
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db)
) -> User:
    """
    Reads the bearer token from the 'Authorization' header, validates it
    and returns the User row it was issued for.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    invalid_token = HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")
    try:
        user_id = decode_access_token(token)
    except jwt.InvalidTokenError:
        raise invalid_token

    user = await db.get(User, user_id)
    if user is None:
        raise invalid_token
    return user
