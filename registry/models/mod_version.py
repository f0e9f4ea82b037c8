"""Mod version model - one uploaded release of a mod."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from registry.enums import Platform, Visibility
from registry.models.base import Base

_VERIFIED = text("visibility = 'verified'")


class ModVersion(Base):
    """Release of a mod for one platform and a set of game versions.

    content_hashes is an ordered list of {"path": ..., "hash": ...}.
    dependencies holds ModVersion ids.
    """

    __tablename__ = "mod_versions"
    __table_args__ = (
        # Two racing promotions to verified cannot both commit
        Index(
            "uq_mod_versions_active_slot",
            "mod_id",
            "platform",
            "mod_version",
            unique=True,
            sqlite_where=_VERIFIED,
            postgresql_where=_VERIFIED,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mod_id: Mapped[int] = mapped_column(ForeignKey("mods.id"), nullable=False, index=True)
    author_id: Mapped[int] = mapped_column(Integer, nullable=False)
    mod_version: Mapped[str] = mapped_column(String(64), nullable=False)
    supported_game_version_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    platform: Mapped[str] = mapped_column(String(16), nullable=False, default=Platform.STEAM.value)
    dependencies: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    zip_hash: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    content_hashes: Mapped[list[dict[str, str]]] = mapped_column(JSON, nullable=False, default=list)
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default=Visibility.PRIVATE.value)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
