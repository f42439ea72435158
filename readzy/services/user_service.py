from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readzy.core.security import hash_password, password_needs_rehash, verify_password
from readzy.models.db import User

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    return value.strip().lower()


class UserAlreadyExistsError(Exception):
    pass


class UserNotFoundError(Exception):
    pass


class UserService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        is_active: bool = True,
    ) -> User:
        normalized_email = normalize_email(email)

        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.scalars(
                    select(User).where(User.email == normalized_email)
                )
                if existing.first():
                    raise UserAlreadyExistsError(normalized_email)

                user = User(
                    name=name.strip(),
                    email=normalized_email,
                    password_hash=hash_password(password),
                    is_active=is_active,
                )
                session.add(user)
                try:
                    await session.flush()
                except IntegrityError as exc:
                    # Lost a race against a concurrent signup with the same email.
                    raise UserAlreadyExistsError(normalized_email) from exc
                await session.refresh(user)
                logger.info("User created", extra={"user_id": str(user.id)})
                return user

    async def update_user(
        self,
        email: str,
        *,
        name: Optional[str] = None,
        password: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.scalars(
                    select(User).where(User.email == normalize_email(email))
                )
                user = result.first()
                if not user:
                    raise UserNotFoundError(email)

                if name is not None:
                    user.name = name.strip()
                if password is not None:
                    user.password_hash = hash_password(password)
                if is_active is not None:
                    user.is_active = is_active
                await session.flush()
                await session.refresh(user)
                return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(User).where(User.email == normalize_email(email))
            )
            return result.first()

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match an active account."""
        user = await self.get_user_by_email(email)

        reason = None
        if not user:
            reason = "user_not_found"
        elif not user.is_active:
            reason = "user_inactive"
        elif not verify_password(password, user.password_hash):
            reason = "invalid_password"

        if reason:
            logger.info("Login rejected", extra={"reason": reason})
            return None

        await self._record_login(user.id, password if password_needs_rehash(user.password_hash) else None)
        return user

    async def _record_login(self, user_id: uuid.UUID, rehash_password: Optional[str] = None) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                user = await session.get(User, user_id)
                if not user:
                    return
                user.last_login_at = datetime.now(timezone.utc)
                if rehash_password is not None:
                    user.password_hash = hash_password(rehash_password)
