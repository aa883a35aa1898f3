from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from findora.database.connection import get_db
from findora.database.models import User
from findora.models.user import UserCreate, UserLogin, UserResponse, UserEnvelope, LoginResponse
from findora.services.auth import register_user, authenticate_user, get_current_user

router = APIRouter()


@router.post("/register", response_model=UserEnvelope)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    user = await register_user(user_data, db)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post("/login", response_model=LoginResponse)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    user, token = await authenticate_user(credentials, db)
    return LoginResponse(user=UserResponse.model_validate(user), token=token)


@router.get("/me", response_model=UserEnvelope)
async def get_me(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResponse.model_validate(current_user))
