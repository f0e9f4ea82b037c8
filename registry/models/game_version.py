"""Game version model - released versions of a supported game."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from registry.models.base import Base


class GameVersion(Base):
    """A released game version (e.g. BeatSaber 1.29.1). One per game is the default."""

    __tablename__ = "game_versions"
    __table_args__ = (UniqueConstraint("game_name", "version", name="uq_game_versions_game_version"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_name: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(32), nullable=False)  # semver-ish, e.g. 1.29.1
    default_version: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
