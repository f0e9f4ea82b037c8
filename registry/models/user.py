"""User model: site accounts linked to GitHub/Discord."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from registry.models.base import Base


def empty_roles() -> dict[str, Any]:
    return {"sitewide": [], "per_game": {}}


class User(Base):
    """Site user. Roles are {"sitewide": [role, ...], "per_game": {game_name: [role, ...]}}."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    # NULLs never collide under UNIQUE, so unlinked accounts are fine
    github_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)
    discord_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    bio: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    sponsor_url: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    roles: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=empty_roles)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def sitewide_roles(self) -> list[str]:
        return list((self.roles or {}).get("sitewide", []))

    def game_roles(self, game_name: str) -> list[str]:
        return list((self.roles or {}).get("per_game", {}).get(game_name, []))
