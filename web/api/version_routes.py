"""API routes for supported games and game versions."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from registry.cache import ReadCache
from registry.enums import SupportedGame, UserRole
from registry.models import User
from registry.models.base import async_session_factory
from registry.services import game_versions as gv_service
from web.api.utils import get_cache, serialize_game_version
from web.auth import ensure_role, require_user

router = APIRouter(prefix="/api", tags=["versions"])


class CreateGameVersionRequest(BaseModel):
    game_name: SupportedGame
    version: str = Field(min_length=1, max_length=64)


class SetDefaultVersionRequest(BaseModel):
    game_version_id: int


@router.get("/games")
async def list_games(cache: ReadCache = Depends(get_cache)):
    """Supported games with their default version."""
    games = []
    for game in SupportedGame:
        default = await cache.get_default_version(game.value)
        games.append({
            "name": game.value,
            "default_version": serialize_game_version(default) if default else None,
        })
    return {"games": games}


@router.get("/versions")
async def list_versions(game_name: SupportedGame = SupportedGame.BEAT_SABER, cache: ReadCache = Depends(get_cache)):
    versions = [gv for gv in cache.game_versions if gv.game_name == game_name.value]
    versions.sort(key=lambda gv: gv.id, reverse=True)
    return {"versions": [serialize_game_version(gv) for gv in versions]}


@router.post("/versions")
async def create_version(
    body: CreateGameVersionRequest,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Add a game version (game admins only)."""
    ensure_role(user, UserRole.ADMIN, body.game_name.value)
    async with async_session_factory() as session:
        gv = await gv_service.create_game_version(session, body.game_name.value, body.version)
    await cache.refresh("game_versions")
    return {"version": serialize_game_version(gv)}


@router.get("/versions/default")
async def get_default_version(game_name: SupportedGame = SupportedGame.BEAT_SABER, cache: ReadCache = Depends(get_cache)):
    gv = await cache.get_default_version(game_name.value)
    if not gv:
        raise HTTPException(404, "No default version set")
    return {"version": serialize_game_version(gv)}


@router.post("/versions/default")
async def set_default_version(
    body: SetDefaultVersionRequest,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Switch the default version of a game (game admins only)."""
    async with async_session_factory() as session:
        gv = await cache.get_game_version(body.game_version_id, session)
        if not gv:
            raise HTTPException(404, "GameVersion not found")
        ensure_role(user, UserRole.ADMIN, gv.game_name)
        new_default, previous = await gv_service.set_default_version(session, body.game_version_id)
    await cache.refresh("game_versions")
    return {
        "message": f"Default version for {new_default.game_name} set to {new_default.version}.",
        "version": serialize_game_version(new_default),
        "previous": serialize_game_version(previous) if previous else None,
    }
