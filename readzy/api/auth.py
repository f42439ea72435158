from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from readzy.core.dependencies import get_auth_service, get_current_user, get_user_service
from readzy.core.exceptions import BadInputError
from readzy.core.rate_limiting import rate_limit_dependency
from readzy.models.db import User
from readzy.services.auth_service import AuthService
from readzy.services.user_service import UserAlreadyExistsError, UserService

router = APIRouter()


def _build_user_payload(user: User) -> dict:
    last_login_at = getattr(user, "last_login_at", None)
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "is_active": user.is_active,
        "last_login_at": last_login_at.isoformat() if last_login_at else None,
    }


class LoginRequest(BaseModel):
    email: str
    password: str


class SignupRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    is_active: bool
    last_login_at: Optional[str] = None


@router.post(
    "/auth/signup",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_dependency(scope="auth"))],
)
async def signup(
    request: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service),
    user_service: UserService = Depends(get_user_service),
):
    if not request.name.strip() or not request.email.strip() or not request.password:
        raise BadInputError("All fields required")

    try:
        user = await user_service.create_user(request.name, request.email, request.password)
    except UserAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )

    access_token = auth_service.issue_token(user)
    return LoginResponse(access_token=access_token, user=_build_user_payload(user))


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit_dependency(scope="auth"))],
)
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    user = await auth_service.authenticate_user(request.email, request.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    access_token = auth_service.issue_token(user)
    return LoginResponse(access_token=access_token, user=_build_user_payload(user))


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return UserResponse(**_build_user_payload(current_user))
