"""Shared API utilities: cache dependency and response serializers."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from registry.cache import ReadCache
from registry.models import MOTD, EditApprovalQueue, GameVersion, Mod, ModVersion, User


def get_cache(request: Request) -> ReadCache:
    """Dependency: the process-scoped read cache attached to the app."""
    return request.app.state.cache


def as_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def serialize_game_version(gv: GameVersion) -> dict[str, Any]:
    return {
        "id": gv.id,
        "game_name": gv.game_name,
        "version": gv.version,
        "default_version": gv.default_version,
    }


def serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "github_id": user.github_id,
        "discord_id": user.discord_id,
        "sponsor_url": user.sponsor_url,
        "bio": user.bio,
        "roles": user.roles,
    }


def serialize_mod(mod: Mod) -> dict[str, Any]:
    return {
        "id": mod.id,
        "name": mod.name,
        "description": mod.description,
        "game_name": mod.game_name,
        "category": mod.category,
        "author_ids": list(mod.author_ids or []),
        "icon_file_name": mod.icon_file_name,
        "git_url": mod.git_url,
        "visibility": mod.visibility,
        "created_at": mod.created_at,
        "updated_at": mod.updated_at,
    }


async def serialize_mod_version(
    version: ModVersion, cache: ReadCache, session: Optional[AsyncSession] = None
) -> dict[str, Any]:
    """Mod version with its supported game versions expanded."""
    game_versions = []
    for gv_id in version.supported_game_version_ids or []:
        gv = await cache.get_game_version(gv_id, session)
        if gv:
            game_versions.append(serialize_game_version(gv))
    return {
        "id": version.id,
        "mod_id": version.mod_id,
        "author_id": version.author_id,
        "mod_version": version.mod_version,
        "platform": version.platform,
        "zip_hash": version.zip_hash,
        "content_hashes": list(version.content_hashes or []),
        "dependencies": list(version.dependencies or []),
        "supported_game_versions": game_versions,
        "visibility": version.visibility,
        "download_count": version.download_count,
        "created_at": version.created_at,
        "updated_at": version.updated_at,
    }


def serialize_edit(entry: EditApprovalQueue) -> dict[str, Any]:
    return {
        "id": entry.id,
        "submitter_id": entry.submitter_id,
        "obj_id": entry.obj_id,
        "obj_table_name": entry.obj_table_name,
        "obj": entry.obj,
        "approver_id": entry.approver_id,
        "approved": entry.approved,
    }


def serialize_motd(motd: MOTD) -> dict[str, Any]:
    return {
        "id": motd.id,
        "game_name": motd.game_name,
        "game_version_ids": motd.game_version_ids,
        "platforms": motd.platforms,
        "message": motd.message,
        "author_id": motd.author_id,
        "start_time": motd.start_time,
        "end_time": motd.end_time,
    }
