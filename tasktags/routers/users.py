from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import get_current_user, CurrentUser
from ..core.database import get_db
from ..schemas.user import (
    Message, PasswordChange, ProfileUpdate, RegisterResponse, Token, UserCreate, UserLogin, UserOut
)
from ..services.user_service import UserService

auth_router = APIRouter()
router = APIRouter()


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


@auth_router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, service: UserService = Depends(get_user_service)):
    user = await service.register(user_in.username, user_in.password, user_in.email)
    return RegisterResponse(user=UserOut.model_validate(user))


@auth_router.post("/login", response_model=Token)
async def login(credentials: UserLogin, service: UserService = Depends(get_user_service)):
    return Token(**await service.login(credentials.username, credentials.password))


@router.get("/me", response_model=UserOut)
async def get_my_profile(
    current_user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return UserOut.model_validate(await service.get_by_id(current_user.user_id))


@router.put("/me", response_model=UserOut)
async def update_my_profile(
    update: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return UserOut.model_validate(await service.update_profile(current_user.user_id, update.email))


@router.post("/me/change-password", response_model=Message)
async def change_my_password(
    change: PasswordChange,
    current_user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return await service.change_password(current_user.user_id, change.old_password, change.new_password)
