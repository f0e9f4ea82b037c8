"""API routes for message-of-the-day banners."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from registry.cache import ReadCache
from registry.enums import Platform, SupportedGame, UserRole
from registry.models import MOTD, User
from registry.models.base import async_session_factory
from registry.services.motd import get_active_motds
from web.api.utils import as_naive_utc, get_cache, serialize_motd
from web.auth import ensure_role, require_user

router = APIRouter(prefix="/api/motd", tags=["motd"])


class CreateMOTDRequest(BaseModel):
    game_name: SupportedGame
    message: str = Field(min_length=1, max_length=1024)
    start_time: datetime
    end_time: datetime
    game_version_ids: Optional[list[int]] = None  # None = every version
    platforms: Optional[list[Platform]] = None  # None = every platform

    @model_validator(mode="after")
    def _check_window(self):
        if as_naive_utc(self.end_time) <= as_naive_utc(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


@router.get("")
async def list_motds(
    game_name: SupportedGame = SupportedGame.BEAT_SABER,
    game_version: Optional[str] = None,
    platform: Optional[Platform] = None,
    include_expired: bool = False,
    cache: ReadCache = Depends(get_cache),
):
    """Active banners for a game version (the game's default when omitted)."""
    if game_version:
        gv = cache.find_game_version(game_name.value, game_version)
    else:
        gv = await cache.get_default_version(game_name.value)
    if not gv:
        raise HTTPException(400, "Invalid game version")
    messages = get_active_motds(
        cache,
        game_name.value,
        [gv.id],
        platform.value if platform else None,
        include_expired=include_expired,
    )
    return {"messages": [serialize_motd(m) for m in messages]}


@router.post("")
async def create_motd(
    body: CreateMOTDRequest,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    ensure_role(user, UserRole.MODERATOR, body.game_name.value)
    async with async_session_factory() as session:
        for gv_id in body.game_version_ids or []:
            gv = await cache.get_game_version(gv_id, session)
            if not gv or gv.game_name != body.game_name.value:
                raise HTTPException(400, f"Invalid game version id {gv_id}")
        motd = MOTD(
            game_name=body.game_name.value,
            game_version_ids=body.game_version_ids,
            platforms=[p.value for p in body.platforms] if body.platforms else None,
            message=body.message,
            author_id=user.id,
            start_time=as_naive_utc(body.start_time),
            end_time=as_naive_utc(body.end_time),
        )
        session.add(motd)
        await session.commit()
        await session.refresh(motd)
    await cache.refresh("motds")
    return {"motd": serialize_motd(motd)}


@router.delete("/{motd_id}")
async def delete_motd(
    motd_id: int,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    async with async_session_factory() as session:
        motd = await session.get(MOTD, motd_id)
        if not motd:
            raise HTTPException(404, "MOTD not found")
        ensure_role(user, UserRole.MODERATOR, motd.game_name)
        await session.delete(motd)
        await session.commit()
    await cache.refresh("motds")
    return {"ok": True}
