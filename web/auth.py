"""Authentication for the panel API: bcrypt password hashes, JWT bearer tokens, role checks.

Roles are ordered: admin > moderator > user. A route that needs a role also
accepts every role above it.
"""
from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

import config
from panel.models import User
from panel.models.user import ROLES
from panel.storage import storage

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(_prepare_password(plain), hashed)


def create_access_token(user: User) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": user.username,
        "uid": user.id,
        "role": user.role,
        "iat": issued,
        "exp": issued + timedelta(days=config.JWT_EXPIRE_DAYS),
    }
    return jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Claims of a valid token, or None if it is malformed, tampered with or expired."""
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def _role_rank(role: str) -> int:
    # Unknown roles rank below every known one
    return len(ROLES) - ROLES.index(role) if role in ROLES else 0


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
) -> Optional[User]:
    """Resolve the caller from Authorization: Bearer, falling back to X-Auth-Token (some proxies strip Authorization).

    The role is always read from the stored user, so a role change applies to tokens already issued.
    """
    token = credentials.credentials if credentials and credentials.credentials else x_auth_token
    claims = decode_token(token) if token else None
    if not claims or not claims.get("sub"):
        return None
    return await storage.get_user_by_username(claims["sub"])


async def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    """Require authenticated user. Raises 401 if not logged in."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(user: User, role: str) -> User:
    """Raise 403 unless ``user`` holds ``role`` or a higher one."""
    if _role_rank(user.role) < _role_rank(role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"{role.capitalize()} access required",
        )
    return user


async def require_admin_user(user: User = Depends(require_user)) -> User:
    """Dependency: require logged-in admin."""
    return require_role(user, "admin")
