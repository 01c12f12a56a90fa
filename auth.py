from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from errors import UnauthenticatedError, UnauthorizedError
from schemas import PublicUser, User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise UnauthenticatedError("Invalid or expired token")


def public_user(user: User) -> PublicUser:
    # Never send password hash
    return PublicUser(id=user.id, name=user.name, email=user.email, role=user.role, addresses=user.addresses)


# Dependency to get current user

def get_current_user(request: Request, authorization: Optional[str] = Header(default=None)) -> PublicUser:
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthenticatedError()
    token = authorization.split(" ", 1)[1]
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthenticatedError("Invalid token")
    user = request.app.state.storage.get_user(user_id)
    if not user:
        raise UnauthenticatedError("User not found")
    return public_user(user)


def get_current_admin(current_user: PublicUser = Depends(get_current_user)) -> PublicUser:
    if current_user.role != "admin":
        raise UnauthorizedError("Admins only")
    return current_user
