"""Authentication for web API: JWT sessions and role decisions."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
from registry.enums import UserRole
from registry.models import User
from registry.models.base import async_session_factory

http_bearer = HTTPBearer(auto_error=False)


def create_access_token(user_id: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRE_DAYS)
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


async def get_user_by_id(user_id: int) -> Optional[User]:
    async with async_session_factory() as session:
        return await session.get(User, user_id)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
) -> Optional[User]:
    """Return current user from JWT, or None if not authenticated. Accepts Authorization: Bearer or X-Auth-Token."""
    token = None
    if credentials and credentials.credentials:
        token = credentials.credentials
    elif x_auth_token:
        token = x_auth_token
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    try:
        user_id = int(payload.get("sub", ""))
    except ValueError:
        return None
    return await get_user_by_id(user_id)


def has_role(user: User, role: UserRole, game_name: Optional[str] = None) -> bool:
    """Whether user may act with role, optionally scoped to a game.

    Banned users never pass. Sitewide admins pass everything. Otherwise the
    role must be held sitewide or for game_name.
    """
    sitewide = user.sitewide_roles
    if UserRole.BANNED.value in sitewide:
        return False
    if game_name and UserRole.BANNED.value in user.game_roles(game_name):
        return False
    if UserRole.ADMIN.value in sitewide:
        return True
    if role.value in sitewide:
        return True
    return bool(game_name) and role.value in user.game_roles(game_name)


def is_banned(user: User) -> bool:
    return UserRole.BANNED.value in user.sitewide_roles


async def require_user(
    user: Optional[User] = Depends(get_current_user),
) -> User:
    """Require authenticated, non-banned user. Raises 401/403."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if is_banned(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")
    return user


def ensure_role(user: User, role: UserRole, game_name: Optional[str] = None) -> User:
    """Raise 403 unless user holds role (sitewide or for game_name)."""
    if not has_role(user, role, game_name):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"{role.value.capitalize()} access required")
    return user


async def require_admin_user(
    user: User = Depends(require_user),
) -> User:
    """Dependency: require logged-in sitewide admin."""
    return ensure_role(user, UserRole.ADMIN)
