"""API routes for the approval queue: moderate new mods, versions and queued edits."""
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select

from registry.cache import ReadCache
from registry.enums import SupportedGame, UserRole, Visibility
from registry.models import EditApprovalQueue, Mod, ModVersion, User
from registry.models.base import async_session_factory
from registry.services import approvals
from registry.services import mods as mod_service
from registry.services import versions as version_service
from web.api.utils import (
    get_cache,
    serialize_edit,
    serialize_mod,
    serialize_mod_version,
)
from web.auth import ensure_role, has_role, require_user

router = APIRouter(prefix="/api/approval", tags=["approval"])


class ModerationRequest(BaseModel):
    status: Literal["verified", "removed"]


async def _refresh_after_moderation(cache: ReadCache) -> None:
    await cache.refresh("mods", "mod_versions", "edit_approval_queue")


@router.get("/mods")
async def list_unverified_mods(
    game_name: SupportedGame = SupportedGame.BEAT_SABER,
    user: User = Depends(require_user),
):
    ensure_role(user, UserRole.APPROVER, game_name.value)
    async with async_session_factory() as session:
        result = await session.execute(
            select(Mod)
            .where(Mod.game_name == game_name.value, Mod.visibility == Visibility.UNVERIFIED.value)
            .order_by(Mod.id)
        )
        return {"mods": [serialize_mod(m) for m in result.scalars().all()]}


@router.get("/modversions")
async def list_unverified_mod_versions(
    game_name: SupportedGame = SupportedGame.BEAT_SABER,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    ensure_role(user, UserRole.APPROVER, game_name.value)
    async with async_session_factory() as session:
        result = await session.execute(
            select(ModVersion, Mod)
            .join(Mod, Mod.id == ModVersion.mod_id)
            .where(Mod.game_name == game_name.value, ModVersion.visibility == Visibility.UNVERIFIED.value)
            .order_by(ModVersion.id)
        )
        items = []
        for version, mod in result.all():
            items.append({
                "mod": serialize_mod(mod),
                "mod_version": await serialize_mod_version(version, cache, session),
            })
        return {"mod_versions": items}


@router.get("/edits")
async def list_pending_edits(
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Pending edits for the games the caller can approve."""
    async with async_session_factory() as session:
        edits = []
        for entry in await approvals.list_pending(session):
            game_name = await approvals.edit_target_game(cache, entry, session)
            if game_name and has_role(user, UserRole.APPROVER, game_name):
                edits.append(serialize_edit(entry))
        return {"edits": edits}


@router.post("/mod/{mod_id}")
async def moderate_mod(
    mod_id: int,
    body: ModerationRequest,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Verify or remove a mod."""
    async with async_session_factory() as session:
        mod = await session.get(Mod, mod_id)
        if not mod:
            raise HTTPException(404, "Mod not found")
        ensure_role(user, UserRole.APPROVER, mod.game_name)
        mod = await mod_service.set_visibility(session, mod, body.status, user.username)
    await _refresh_after_moderation(cache)
    return {"message": f"Mod {body.status}.", "mod": serialize_mod(mod)}


@router.post("/modversion/{version_id}")
async def moderate_mod_version(
    version_id: int,
    body: ModerationRequest,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Verify or remove a mod version. Verifying into an occupied slot is a conflict."""
    async with async_session_factory() as session:
        version = await session.get(ModVersion, version_id)
        if not version:
            raise HTTPException(404, "Mod version not found")
        mod = await session.get(Mod, version.mod_id)
        ensure_role(user, UserRole.APPROVER, mod.game_name if mod else None)
        version = await version_service.set_visibility(session, version, body.status, user.username)
        data = await serialize_mod_version(version, cache, session)
    await _refresh_after_moderation(cache)
    return {"message": f"Mod version {body.status}.", "mod_version": data}


async def _load_pending_edit(session, edit_id: int, user: User, cache: ReadCache) -> EditApprovalQueue:
    entry = await session.get(EditApprovalQueue, edit_id)
    if not entry:
        raise HTTPException(404, "Edit not found")
    game_name = await approvals.edit_target_game(cache, entry, session)
    ensure_role(user, UserRole.APPROVER, game_name)
    return entry


@router.post("/edit/{edit_id}/approve")
async def approve_edit(
    edit_id: int,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Apply a queued edit to its target and verify it."""
    async with async_session_factory() as session:
        entry = await _load_pending_edit(session, edit_id, user, cache)
        target = await approvals.approve(session, entry, user)
        if isinstance(target, ModVersion):
            data = {"mod_version": await serialize_mod_version(target, cache, session)}
        else:
            data = {"mod": serialize_mod(target)}
        data["edit"] = serialize_edit(entry)
    await _refresh_after_moderation(cache)
    return {"message": "Edit approved.", **data}


@router.post("/edit/{edit_id}/deny")
async def deny_edit(
    edit_id: int,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    async with async_session_factory() as session:
        entry = await _load_pending_edit(session, edit_id, user, cache)
        await approvals.deny(session, entry, user)
    await cache.refresh("edit_approval_queue")
    return {"message": "Edit denied."}
