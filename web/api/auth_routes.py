"""Auth API routes: current user and role management."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from registry.enums import SupportedGame, UserRole
from registry.models import User
from registry.models.base import async_session_factory
from registry.models.user import empty_roles
from registry.services.maintenance import SERVER_ACCOUNT_ID
from web.api.utils import serialize_user
from web.auth import get_current_user, require_admin_user, require_user

router = APIRouter(prefix="/api", tags=["auth"])


class RoleRequest(BaseModel):
    role: UserRole
    game_name: Optional[SupportedGame] = None  # None = sitewide


@router.get("/auth/me")
async def get_me(user: User = Depends(require_user)):
    """Get current authenticated user."""
    return {"user": serialize_user(user)}


@router.get("/auth/me/optional")
async def get_me_optional(user: Optional[User] = Depends(get_current_user)):
    """Get current user if logged in, else null. For frontend auth check."""
    if not user:
        return None
    return {"user": serialize_user(user)}


async def _change_role(user_id: int, body: RoleRequest, grant: bool) -> User:
    if user_id == SERVER_ACCOUNT_ID:
        raise HTTPException(400, "The server account's roles cannot be changed")
    async with async_session_factory() as session:
        target = await session.get(User, user_id)
        if not target:
            raise HTTPException(404, "User not found")
        roles = dict(target.roles or empty_roles())
        if body.game_name is None:
            current = list(roles.get("sitewide", []))
        else:
            current = list(roles.get("per_game", {}).get(body.game_name.value, []))
        if grant and body.role.value not in current:
            current.append(body.role.value)
        elif not grant and body.role.value in current:
            current.remove(body.role.value)
        # Reassign so the JSON column is marked dirty
        if body.game_name is None:
            roles["sitewide"] = current
        else:
            per_game = dict(roles.get("per_game", {}))
            per_game[body.game_name.value] = current
            roles["per_game"] = per_game
        target.roles = roles
        await session.commit()
        await session.refresh(target)
        return target


@router.post("/admin/users/{user_id}/roles")
async def grant_role(user_id: int, body: RoleRequest, admin: User = Depends(require_admin_user)):
    """Grant a sitewide or per-game role (admin only)."""
    target = await _change_role(user_id, body, grant=True)
    return {"user": serialize_user(target)}


@router.delete("/admin/users/{user_id}/roles")
async def revoke_role(
    user_id: int,
    role: UserRole,
    game_name: Optional[SupportedGame] = None,
    admin: User = Depends(require_admin_user),
):
    """Revoke a sitewide or per-game role (admin only)."""
    target = await _change_role(user_id, RoleRequest(role=role, game_name=game_name), grant=False)
    return {"user": serialize_user(target)}
