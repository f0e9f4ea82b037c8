"""Game version service. Keeps exactly one default version per game."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from registry.enums import is_valid_game_name
from registry.errors import ConflictError, NotFoundError, ValidationError
from registry.models import GameVersion
from registry.services.store import commit_or_conflict

logger = logging.getLogger("modvault.game_versions")


async def find_game_version_id(session: AsyncSession, game_name: str, version: str) -> Optional[int]:
    """Id of (game_name, version), or None if the game or version is unknown."""
    if not game_name or not version or not is_valid_game_name(game_name):
        return None
    result = await session.execute(
        select(GameVersion.id).where(GameVersion.game_name == game_name, GameVersion.version == version)
    )
    return result.scalar_one_or_none()


async def create_game_version(session: AsyncSession, game_name: str, version: str) -> GameVersion:
    """Add a game version. The first version of a game becomes its default."""
    if not is_valid_game_name(game_name):
        raise ValidationError("Invalid game name.", field_name="game_name")
    if await find_game_version_id(session, game_name, version) is not None:
        raise ConflictError("Version already exists.")
    existing_default = await session.execute(
        select(GameVersion.id).where(GameVersion.game_name == game_name, GameVersion.default_version.is_(True)).limit(1)
    )
    game_version = GameVersion(
        game_name=game_name,
        version=version,
        default_version=existing_default.scalar_one_or_none() is None,
    )
    session.add(game_version)
    await commit_or_conflict(session, "Version already exists.")
    await session.refresh(game_version)
    return game_version


async def set_default_version(session: AsyncSession, game_version_id: int) -> tuple[GameVersion, Optional[GameVersion]]:
    """Make game_version_id the default for its game. Returns (new_default, previous_default).

    The old default is cleared before the new one is set, in one transaction.
    """
    game_version = await session.get(GameVersion, game_version_id)
    if not game_version:
        raise NotFoundError("GameVersion not found")
    result = await session.execute(
        select(GameVersion).where(
            GameVersion.game_name == game_version.game_name,
            GameVersion.default_version.is_(True),
        )
    )
    previous = result.scalars().first()
    await session.execute(
        update(GameVersion)
        .where(GameVersion.game_name == game_version.game_name, GameVersion.id != game_version.id)
        .values(default_version=False)
    )
    game_version.default_version = True
    await session.commit()
    await session.refresh(game_version)
    if previous is not None and previous.id != game_version.id:
        await session.refresh(previous)
    else:
        previous = None
    logger.info("Default version for %s set to %s", game_version.game_name, game_version.version)
    return game_version, previous
