"""API routes for mods and mod versions: create, upload, edit, browse."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from registry.cache import ReadCache
from registry.enums import (
    ACTIVE_VISIBILITIES,
    Category,
    Platform,
    SupportedGame,
    UserRole,
    Visibility,
)
from registry.models import Mod, ModVersion, User
from registry.models.base import async_session_factory
from registry.services import approvals, mods as mod_service, versions as version_service
from web.api.utils import get_cache, serialize_edit, serialize_mod, serialize_mod_version
from web.auth import get_current_user, has_role, require_user

router = APIRouter(prefix="/api", tags=["mods"])


# --- Pydantic schemas ---


class CreateModRequest(BaseModel):
    name: str = Field(min_length=3, max_length=128)
    description: str = Field(min_length=3)
    git_url: str = Field(min_length=3, max_length=256)
    category: Category
    game_name: SupportedGame
    icon_file_name: str = "default.png"  # stored by the upload service


class ContentHash(BaseModel):
    path: str
    hash: str


class UploadVersionRequest(BaseModel):
    mod_version: str = Field(min_length=3, max_length=64)
    platform: Platform
    supported_game_version_ids: list[int] = Field(min_length=1)
    dependencies: list[int] = []
    zip_hash: str = ""
    content_hashes: list[ContentHash] = []


class EditModRequest(BaseModel):
    """Fields to change. Omitted or null fields keep their current value."""

    name: Optional[str] = Field(default=None, min_length=3, max_length=128)
    description: Optional[str] = None
    category: Optional[Category] = None
    git_url: Optional[str] = None
    author_ids: Optional[list[int]] = Field(default=None, min_length=1)


class EditModVersionRequest(BaseModel):
    mod_version: Optional[str] = None
    platform: Optional[Platform] = None
    supported_game_version_ids: Optional[list[int]] = Field(default=None, min_length=1)
    dependencies: Optional[list[int]] = None


def _can_see(user: Optional[User], record_visibility: str, author_ids: list[int], game_name: str) -> bool:
    """Private and removed records are only visible to their authors and approvers."""
    if record_visibility in ACTIVE_VISIBILITIES:
        return True
    if user is None:
        return False
    return user.id in author_ids or has_role(user, UserRole.APPROVER, game_name)


# --- Mods ---


@router.get("/mods")
async def list_mods(
    game_name: SupportedGame = SupportedGame.BEAT_SABER,
    game_version: Optional[str] = None,
    platform: Optional[Platform] = None,
    status: Visibility = Visibility.VERIFIED,
    cache: ReadCache = Depends(get_cache),
):
    """List mods for a game version with their latest version. Served from the read cache.

    status=verified lists verified only; status=unverified also includes unverified.
    """
    if status not in (Visibility.VERIFIED, Visibility.UNVERIFIED):
        raise HTTPException(400, "status must be 'verified' or 'unverified'")
    if game_version:
        gv = cache.find_game_version(game_name.value, game_version)
    else:
        gv = await cache.get_default_version(game_name.value)
    if not gv:
        raise HTTPException(404, "Game version not found")
    allowed = (Visibility.VERIFIED.value,) if status == Visibility.VERIFIED else ACTIVE_VISIBILITIES
    results = []
    for mod in cache.mods:
        if mod.game_name != game_name.value or mod.visibility not in allowed:
            continue
        latest = await version_service.get_latest_version(
            cache, mod.id, gv.id, platform.value if platform else None, visibilities=allowed
        )
        if latest is None:
            continue
        results.append({"mod": serialize_mod(mod), "latest": await serialize_mod_version(latest, cache)})
    return {"game_version": gv.version, "mods": results}


@router.get("/mods/{mod_id}")
async def get_mod(
    mod_id: int,
    user: Optional[User] = Depends(get_current_user),
    cache: ReadCache = Depends(get_cache),
):
    """Get a mod with its versions."""
    async with async_session_factory() as session:
        mod = await cache.get_mod(mod_id, session)
        if not mod or not _can_see(user, mod.visibility, mod.author_ids, mod.game_name):
            raise HTTPException(404, "Mod not found")
        versions = []
        for v in await cache.get_versions_for_mod(mod_id, session):
            if _can_see(user, v.visibility, mod.author_ids, mod.game_name):
                versions.append(await serialize_mod_version(v, cache, session))
        return {"mod": serialize_mod(mod), "versions": versions}


@router.post("/mods/create")
async def create_mod(body: CreateModRequest, user: User = Depends(require_user)):
    """Create a mod. The creator becomes its first author; it starts unverified."""
    async with async_session_factory() as session:
        mod = await mod_service.create_mod(
            session,
            creator_id=user.id,
            name=body.name,
            description=body.description,
            game_name=body.game_name.value,
            category=body.category.value,
            git_url=body.git_url,
            icon_file_name=body.icon_file_name,
        )
        return {"mod": serialize_mod(mod)}


@router.post("/mods/{mod_id}/upload")
async def upload_mod_version(
    mod_id: int,
    body: UploadVersionRequest,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Register an uploaded release. Hashes come from the upload service."""
    async with async_session_factory() as session:
        mod = await session.get(Mod, mod_id)
        if not mod:
            raise HTTPException(404, "Mod not found")
        if user.id not in (mod.author_ids or []):
            raise HTTPException(403, "You cannot upload to this mod.")
        version = await version_service.create_mod_version(
            session,
            mod,
            author_id=user.id,
            mod_version=body.mod_version,
            platform=body.platform.value,
            supported_game_version_ids=body.supported_game_version_ids,
            dependencies=body.dependencies,
            zip_hash=body.zip_hash,
            content_hashes=[h.model_dump() for h in body.content_hashes],
        )
        return {"mod_version": await serialize_mod_version(version, cache, session)}


@router.patch("/mods/{mod_id}")
async def edit_mod(mod_id: int, body: EditModRequest, user: User = Depends(require_user)):
    """Edit a mod. Authors' edits to a verified mod are queued for approval."""
    changes = body.model_dump(mode="json", exclude_none=True)
    if not changes:
        raise HTTPException(400, "No changes given")
    async with async_session_factory() as session:
        mod = await session.get(Mod, mod_id)
        if not mod:
            raise HTTPException(404, "Mod not found")
        is_approver = has_role(user, UserRole.APPROVER, mod.game_name)
        if not is_approver and user.id not in (mod.author_ids or []):
            raise HTTPException(403, "You cannot edit this mod.")
        if not is_approver and mod.visibility == Visibility.VERIFIED.value:
            entry = await approvals.submit_edit(session, user, mod.id, approvals.ModEdit(**changes))
            return {"message": "Edit submitted for approval.", "edit": serialize_edit(entry)}
        mod = await mod_service.update_mod(session, mod, **changes)
        return {"message": "Mod updated.", "mod": serialize_mod(mod)}


# --- Mod versions ---


@router.get("/modversions/{version_id}")
async def get_mod_version(
    version_id: int,
    user: Optional[User] = Depends(get_current_user),
    cache: ReadCache = Depends(get_cache),
):
    async with async_session_factory() as session:
        version = await cache.get_mod_version(version_id, session)
        mod = await cache.get_mod(version.mod_id, session) if version else None
        if not version or not mod or not _can_see(user, version.visibility, mod.author_ids, mod.game_name):
            raise HTTPException(404, "Mod version not found")
        return {"mod_version": await serialize_mod_version(version, cache, session)}


@router.patch("/modversions/{version_id}")
async def edit_mod_version(
    version_id: int,
    body: EditModVersionRequest,
    user: User = Depends(require_user),
    cache: ReadCache = Depends(get_cache),
):
    """Edit a mod version. Authors' edits to a verified version are queued for approval."""
    changes = body.model_dump(mode="json", exclude_none=True)
    if not changes:
        raise HTTPException(400, "No changes given")
    async with async_session_factory() as session:
        version = await session.get(ModVersion, version_id)
        if not version:
            raise HTTPException(404, "Mod version not found")
        mod = await session.get(Mod, version.mod_id)
        game_name = mod.game_name if mod else SupportedGame.BEAT_SABER.value
        is_approver = has_role(user, UserRole.APPROVER, game_name)
        is_author = version.author_id == user.id or (mod is not None and user.id in (mod.author_ids or []))
        if not is_approver and not is_author:
            raise HTTPException(403, "You cannot edit this mod version.")
        if not is_approver and version.visibility == Visibility.VERIFIED.value:
            entry = await approvals.submit_edit(session, user, version.id, approvals.ModVersionEdit(**changes))
            return {"message": "Edit submitted for approval.", "edit": serialize_edit(entry)}
        version = await version_service.update_mod_version(session, version, **changes)
        return {"message": "Mod version updated.", "mod_version": await serialize_mod_version(version, cache, session)}


@router.get("/modversions/{version_id}/download")
async def download_mod_version(version_id: int):
    """Count a download and return the archive hash to fetch from storage."""
    async with async_session_factory() as session:
        version = await session.get(ModVersion, version_id)
        if not version or version.visibility not in ACTIVE_VISIBILITIES:
            raise HTTPException(404, "Mod version not found")
        version.download_count = (version.download_count or 0) + 1
        await session.commit()
        return {"zip_hash": version.zip_hash, "download_count": version.download_count}


@router.get("/modversions/{version_id}/successor")
async def get_dependency_successor(
    version_id: int,
    game_version_id: int,
    cache: ReadCache = Depends(get_cache),
):
    """Newest verified version that can replace this one as a dependency on game_version_id."""
    async with async_session_factory() as session:
        original = await cache.get_mod_version(version_id, session)
        if not original:
            raise HTTPException(404, "Mod version not found")
        if game_version_id in (original.supported_game_version_ids or []):
            return {"successor": None, "supported": True}
        successor = await version_service.find_dependency_successor(cache, original, game_version_id, session)
        return {
            "successor": await serialize_mod_version(successor, cache, session) if successor else None,
            "supported": False,
        }
