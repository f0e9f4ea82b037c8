"""Mod service: name uniqueness and mod create/update."""
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from registry.enums import Visibility, is_valid_category, is_valid_game_name, is_valid_visibility
from registry.errors import ConflictError, ValidationError
from registry.models import Mod
from registry.services.store import commit_or_conflict

logger = logging.getLogger("modvault.mods")

EDITABLE_FIELDS = ("name", "description", "category", "git_url", "author_ids", "icon_file_name", "visibility")


async def check_for_existing_mod(session: AsyncSession, name: str, exclude_id: Optional[int] = None) -> Optional[Mod]:
    """Return a live (not removed) mod already using this name."""
    stmt = select(Mod).where(Mod.name == name, Mod.visibility != Visibility.REMOVED.value)
    if exclude_id is not None:
        stmt = stmt.where(Mod.id != exclude_id)
    result = await session.execute(stmt.limit(1))
    return result.scalars().first()


async def create_mod(
    session: AsyncSession,
    creator_id: int,
    name: str,
    description: str,
    game_name: str,
    category: str,
    git_url: str = "",
    icon_file_name: str = "default.png",
    visibility: str = Visibility.UNVERIFIED.value,
) -> Mod:
    """Insert a mod with the creator as first author."""
    if not is_valid_game_name(game_name):
        raise ValidationError("Invalid game name.", field_name="game_name")
    if not is_valid_category(category):
        raise ValidationError("Invalid category.", field_name="category")
    if not is_valid_visibility(visibility):
        raise ValidationError("Invalid visibility.", field_name="visibility")
    if await check_for_existing_mod(session, name):
        raise ConflictError("Mod already exists.")
    mod = Mod(
        name=name,
        description=description,
        game_name=game_name,
        category=category,
        author_ids=[creator_id],
        git_url=git_url,
        icon_file_name=icon_file_name,
        visibility=visibility,
    )
    session.add(mod)
    await commit_or_conflict(session, "Mod already exists.")
    await session.refresh(mod)
    logger.info("Mod %s (%s) created by user %s", mod.id, mod.name, creator_id)
    return mod


async def apply_mod_changes(session: AsyncSession, mod: Mod, changes: dict[str, Any]) -> Mod:
    """Apply field changes without committing. Name must stay unique among live mods."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
    if "category" in changes and not is_valid_category(changes["category"]):
        raise ValidationError("Invalid category.", field_name="category")
    if "visibility" in changes and not is_valid_visibility(changes["visibility"]):
        raise ValidationError("Invalid visibility.", field_name="visibility")
    if "author_ids" in changes and not changes["author_ids"]:
        raise ValidationError("A mod needs at least one author.", field_name="author_ids")

    new_name = changes.get("name", mod.name)
    new_visibility = changes.get("visibility", mod.visibility)
    if new_visibility != Visibility.REMOVED.value and await check_for_existing_mod(session, new_name, exclude_id=mod.id):
        raise ConflictError("Mod already exists.")

    for field, value in changes.items():
        setattr(mod, field, list(value) if isinstance(value, list) else value)
    return mod


async def update_mod(session: AsyncSession, mod: Mod, **changes: Any) -> Mod:
    await apply_mod_changes(session, mod, changes)
    await commit_or_conflict(session, "Mod already exists.")
    await session.refresh(mod)
    return mod


async def set_visibility(session: AsyncSession, mod: Mod, visibility: str, acting_username: str) -> Mod:
    await update_mod(session, mod, visibility=visibility)
    logger.info("Mod %s set to %s by %s", mod.id, visibility, acting_username)
    return mod
