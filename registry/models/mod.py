"""Mod model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from registry.enums import Category, SupportedGame, Visibility
from registry.models.base import Base

_NOT_REMOVED = text("visibility != 'removed'")


class Mod(Base):
    """Mod metadata. Name is unique among mods that have not been removed."""

    __tablename__ = "mods"
    __table_args__ = (
        Index(
            "uq_mods_live_name",
            "name",
            unique=True,
            sqlite_where=_NOT_REMOVED,
            postgresql_where=_NOT_REMOVED,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    game_name: Mapped[str] = mapped_column(String(32), nullable=False, default=SupportedGame.BEAT_SABER.value)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default=Category.OTHER.value)
    author_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)  # creator first
    icon_file_name: Mapped[str] = mapped_column(String(128), nullable=False, default="default.png")
    git_url: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default=Visibility.PRIVATE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
