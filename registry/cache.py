"""In-memory read cache: a periodically refreshed snapshot of every table.

The snapshot holds detached ORM objects. They are read-only copies: writes must
go through a session (``session.get``), never through a cached object. Lookups
fall back to the store when an item is missing from the snapshot, so a stale
cache only delays visibility of new rows, it never hides them.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import config
from registry.models import MOTD, EditApprovalQueue, GameVersion, Mod, ModVersion, User

logger = logging.getLogger("modvault.cache")

TABLES = {
    "game_versions": GameVersion,
    "mod_versions": ModVersion,
    "mods": Mod,
    "users": User,
    "edit_approval_queue": EditApprovalQueue,
    "motds": MOTD,
}


class ReadCache:
    """Process-scoped table snapshot with explicit start/refresh/stop lifecycle."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval: float = config.CACHE_REFRESH_INTERVAL,
    ):
        self._session_factory = session_factory
        self.interval = interval
        self._tables: dict[str, list] = {name: [] for name in TABLES}
        self._task: Optional[asyncio.Task] = None

    # --- lifecycle ---

    async def start(self) -> None:
        """Load every table, then keep refreshing in the background."""
        await self.refresh()
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="read-cache-refresh")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.refresh()
            except Exception:
                # Keep serving the previous snapshot
                logger.exception("Cache refresh failed")

    async def refresh(self, *tables: str) -> None:
        """Reload the named tables (all of them when none are given)."""
        names = tables or tuple(TABLES)
        unknown = [n for n in names if n not in TABLES]
        if unknown:
            raise KeyError(f"Unknown cache table(s): {', '.join(unknown)}")
        loaded: dict[str, list] = {}
        async with self._session_factory() as session:
            for name in names:
                result = await session.execute(select(TABLES[name]))
                loaded[name] = list(result.scalars().all())
        self._tables.update(loaded)
        logger.debug("Cache refreshed: %s", ", ".join(f"{n}={len(loaded[n])}" for n in names))

    # --- snapshots ---

    @property
    def game_versions(self) -> list[GameVersion]:
        return self._tables["game_versions"]

    @property
    def mod_versions(self) -> list[ModVersion]:
        return self._tables["mod_versions"]

    @property
    def mods(self) -> list[Mod]:
        return self._tables["mods"]

    @property
    def users(self) -> list[User]:
        return self._tables["users"]

    @property
    def edit_approval_queue(self) -> list[EditApprovalQueue]:
        return self._tables["edit_approval_queue"]

    @property
    def motds(self) -> list[MOTD]:
        return self._tables["motds"]

    # --- lookups with store fallback ---

    async def _get(self, name: str, obj_id: int, session: Optional[AsyncSession]):
        for row in self._tables[name]:
            if row.id == obj_id:
                return row
        model = TABLES[name]
        if session is not None:
            return await session.get(model, obj_id)
        async with self._session_factory() as own_session:
            return await own_session.get(model, obj_id)

    async def get_mod(self, mod_id: int, session: Optional[AsyncSession] = None) -> Optional[Mod]:
        return await self._get("mods", mod_id, session)

    async def get_mod_version(self, version_id: int, session: Optional[AsyncSession] = None) -> Optional[ModVersion]:
        return await self._get("mod_versions", version_id, session)

    async def get_game_version(self, version_id: int, session: Optional[AsyncSession] = None) -> Optional[GameVersion]:
        return await self._get("game_versions", version_id, session)

    async def get_user(self, user_id: int, session: Optional[AsyncSession] = None) -> Optional[User]:
        return await self._get("users", user_id, session)

    async def get_versions_for_mod(self, mod_id: int, session: Optional[AsyncSession] = None) -> list[ModVersion]:
        versions = [v for v in self.mod_versions if v.mod_id == mod_id]
        if versions:
            return versions
        stmt = select(ModVersion).where(ModVersion.mod_id == mod_id)
        if session is not None:
            return list((await session.execute(stmt)).scalars().all())
        async with self._session_factory() as own_session:
            return list((await own_session.execute(stmt)).scalars().all())

    async def get_default_version(self, game_name: str, session: Optional[AsyncSession] = None) -> Optional[GameVersion]:
        for gv in self.game_versions:
            if gv.game_name == game_name and gv.default_version:
                return gv
        stmt = select(GameVersion).where(GameVersion.game_name == game_name, GameVersion.default_version.is_(True))
        if session is not None:
            return (await session.execute(stmt)).scalars().first()
        async with self._session_factory() as own_session:
            return (await own_session.execute(stmt)).scalars().first()

    def find_game_version(self, game_name: str, version: str) -> Optional[GameVersion]:
        return next(
            (gv for gv in self.game_versions if gv.game_name == game_name and gv.version == version),
            None,
        )

    def game_name_for_mod(self, mod_id: int) -> Optional[str]:
        mod = next((m for m in self.mods if m.id == mod_id), None)
        return mod.game_name if mod else None

    def game_name_for_mod_version(self, version_id: int) -> Optional[str]:
        version = next((v for v in self.mod_versions if v.id == version_id), None)
        if not version:
            return None
        return self.game_name_for_mod(version.mod_id)
