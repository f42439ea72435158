from fastapi import Depends, Header, HTTPException, Request, status

from .logging_config import user_id_var
from readzy.models.db import User
from readzy.services.auth_service import AuthService
from readzy.services.book_service import BookService
from readzy.services.user_service import UserService


def get_user_service(request: Request) -> UserService:
    service = getattr(request.app.state, "user_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="User service unavailable")
    return service


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Auth service unavailable")
    return service


def get_book_service(request: Request) -> BookService:
    service = getattr(request.app.state, "book_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Book service unavailable")
    return service


async def get_current_user(
    authorization: str = Header(None, alias="Authorization"),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization header")

    try:
        user = await auth_service.resolve_user(token.strip())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive or not found")

    user_id_var.set(str(user.id))
    return user
