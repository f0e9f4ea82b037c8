"""Startup self-checks: built-in server account and store health."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

import config
from registry.enums import UserRole
from registry.errors import IntegrityError
from registry.models import User
from registry.models.user import empty_roles

logger = logging.getLogger("modvault.maintenance")

SERVER_ACCOUNT_ID = 1


async def ensure_server_admin(session: AsyncSession) -> User:
    """Make sure user 1 exists and is an admin.

    A stripped admin role is restored only while the username is still the
    reserved one; otherwise the account is reported as tampered with and left alone.
    """
    user = await session.get(User, SERVER_ACCOUNT_ID)
    if user is None:
        roles = empty_roles()
        roles["sitewide"] = [UserRole.ADMIN.value]
        user = User(
            id=SERVER_ACCOUNT_ID,
            username=config.SERVER_ADMIN_USERNAME,
            discord_id="1",
            roles=roles,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        logger.info("Created built in server account.")
        return user

    if UserRole.ADMIN.value in user.sitewide_roles:
        return user
    if user.username != config.SERVER_ADMIN_USERNAME:
        logger.warning("Server account has been tampered with!")
        return user
    roles = dict(user.roles or empty_roles())
    roles["sitewide"] = [UserRole.ADMIN.value]
    user.roles = roles
    await session.commit()
    await session.refresh(user)
    logger.info("Added admin role to server account.")
    return user


async def run_integrity_check(engine: AsyncEngine) -> str:
    """Run the store's integrity check and return its result string.

    Raises IntegrityError if the check ran and reported a problem, or could not run.
    """
    try:
        async with engine.connect() as conn:
            if engine.dialect.name == "sqlite":
                result = await conn.execute(text("PRAGMA integrity_check"))
                rows = [row[0] for row in result.fetchall()]
                outcome = "; ".join(rows) if rows else "no result"
            else:
                await conn.execute(text("SELECT 1"))
                outcome = "ok"
    except Exception as e:
        raise IntegrityError(f"Database health check could not run: {e}") from e
    if outcome != "ok":
        raise IntegrityError("Database health check failed.", result=outcome)
    return outcome


async def log_integrity_check(engine: AsyncEngine) -> bool:
    """Run the check and log the outcome. Never raises."""
    try:
        outcome = await run_integrity_check(engine)
    except IntegrityError as e:
        logger.error("Database health check: %s %s", e.message, e.result or "")
        return False
    logger.info("Database health check: %s", outcome)
    return True


class HealthMonitor:
    """Runs the integrity check on a fixed interval in the background."""

    def __init__(self, engine: AsyncEngine, interval: float = config.HEALTH_CHECK_INTERVAL):
        self._engine = engine
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        await log_integrity_check(self._engine)
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="db-health-check")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await log_integrity_check(self._engine)
