from __future__ import annotations

import uuid
from typing import Optional

from readzy.core.security import create_access_token, decode_access_token
from readzy.models.db import User
from readzy.services.user_service import UserService


class AuthService:
    def __init__(
        self,
        user_service: UserService,
        *,
        jwt_secret: str,
        jwt_algorithm: str,
        jwt_expires_minutes: int,
    ):
        self._user_service = user_service
        self._jwt_secret = jwt_secret
        self._jwt_algorithm = jwt_algorithm
        self._jwt_expires_minutes = jwt_expires_minutes

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        return await self._user_service.authenticate(email, password)

    def issue_token(self, user: User) -> str:
        return create_access_token(
            str(user.id),
            secret=self._jwt_secret,
            algorithm=self._jwt_algorithm,
            expires_minutes=self._jwt_expires_minutes,
            claims={"email": user.email},
        )

    async def resolve_user(self, token: str) -> Optional[User]:
        """
        Map a bearer token to its user.

        Raises ``ValueError`` when the token is malformed, expired or signed
        with another key. Returns ``None`` when the subject is not a user id or
        no longer exists.
        """
        data = decode_access_token(token, self._jwt_secret, self._jwt_algorithm)
        try:
            uid = uuid.UUID(data["sub"])
        except (KeyError, TypeError, AttributeError, ValueError):
            return None
        return await self._user_service.get_user_by_id(uid)
