from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import jwt, JWTError
from passlib.context import CryptContext

from clinic_scheduler.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# Hash a raw password
def get_hash_pwd(pwd: str):

    return pwd_context.hash(pwd)


# Check a password at login
def verify_pwd(plain_pwd: str, hashed_pwd: str):

    return pwd_context.verify(plain_pwd, hashed_pwd)


# Issue the bearer token after login
def create_access_token(data: dict, expires_delta: timedelta = None):

    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.TOKEN_EXPIRE_TIME))

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.TOKEN_ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[dict]:
    """Return the token payload, or None when the signature or expiry check fails."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.TOKEN_ALGORITHM])
    except JWTError:
        return None


def token_expires_in_seconds() -> int:
    return settings.TOKEN_EXPIRE_TIME * 60


def get_user_id_from_request(request: Request) -> int | None:
    """
    Extract the user id from the bearer token without raising.
    - missing or invalid token returns None
    """
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    payload = decode_access_token(parts[1].strip())
    if not payload or payload.get("sub") is None:
        return None
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        return None
