"""Edit approval queue - proposed changes to a mod or mod version awaiting approval."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from registry.models.base import Base

MODS_TABLE = "mods"
MOD_VERSIONS_TABLE = "modVersions"


class EditApprovalQueue(Base):
    """Pending diff against a Mod (obj_table_name="mods") or ModVersion ("modVersions")."""

    __tablename__ = "edit_approval_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submitter_id: Mapped[int] = mapped_column(Integer, nullable=False)
    obj_id: Mapped[int] = mapped_column(Integer, nullable=False)
    obj_table_name: Mapped[str] = mapped_column(String(16), nullable=False)  # mods | modVersions
    obj: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    approver_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
