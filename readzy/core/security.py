"""Password hashing and access-token helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

# Plain bcrypt stays verifiable so older hashes keep working; they are
# upgraded to bcrypt_sha256 on the next successful login.
pwd_context = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password, scheme="bcrypt_sha256")


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def password_needs_rehash(password_hash: str) -> bool:
    return pwd_context.needs_update(password_hash)


def create_access_token(
    subject: str,
    *,
    secret: str,
    algorithm: str,
    expires_minutes: int,
    claims: Optional[Dict[str, Any]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = dict(claims or {})
    to_encode.update(
        {
            "sub": subject,
            "iat": now,
            "exp": now + timedelta(minutes=expires_minutes),
        }
    )
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str) -> Dict[str, Any]:
    """Validate signature and expiry; raise ``ValueError`` for anything unusable."""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if not payload.get("sub"):
        raise ValueError("Token has no subject")
    return payload
