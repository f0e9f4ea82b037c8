"""Edit approval queue.

Edits to verified mods and mod versions are not written directly. They are
stored as a pending diff (``obj``) tagged with the target table
(``obj_table_name``), and merged into the live record when an approver
approves them. Approval also promotes the target to verified.

Pending (approved=False, approver_id=None) -> Approved (terminal).
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from registry.enums import Category, Platform, Visibility
from registry.errors import ConflictError, NotFoundError, ValidationError
from registry.models import EditApprovalQueue, Mod, ModVersion, User
from registry.models.edit_approval import MOD_VERSIONS_TABLE, MODS_TABLE
from registry.services.mods import apply_mod_changes
from registry.services.store import commit_or_conflict
from registry.services.versions import apply_mod_version_changes

if TYPE_CHECKING:
    from registry.cache import ReadCache

logger = logging.getLogger("modvault.approvals")


class ModVersionEdit(BaseModel):
    """Proposed changes to a mod version. Tagged by obj_table_name="modVersions"."""

    model_config = ConfigDict(extra="forbid")

    mod_version: Optional[str] = None
    platform: Optional[Platform] = None
    supported_game_version_ids: Optional[list[int]] = None
    dependencies: Optional[list[int]] = None

    def to_obj(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_unset=True)
        data.setdefault("mod_version", None)
        return data


class ModEdit(BaseModel):
    """Proposed changes to a mod. Tagged by obj_table_name="mods"."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    git_url: Optional[str] = None
    author_ids: Optional[list[int]] = None

    def to_obj(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_unset=True)
        data.setdefault("name", None)
        return data


Edit = Union[ModEdit, ModVersionEdit]

# obj_table_name -> (payload model, field that must be present in the payload)
EDIT_VARIANTS: dict[str, tuple[type[BaseModel], str]] = {
    MODS_TABLE: (ModEdit, "name"),
    MOD_VERSIONS_TABLE: (ModVersionEdit, "mod_version"),
}


def table_for(edit: Edit) -> str:
    return MODS_TABLE if isinstance(edit, ModEdit) else MOD_VERSIONS_TABLE


def parse_edit_payload(obj_table_name: str, obj: Any) -> Edit:
    """Validate that the tag and payload agree and build the typed edit.

    Raises ValidationError for an unknown tag, a payload without the tag's
    marker field, unknown fields or invalid enum values.
    """
    variant = EDIT_VARIANTS.get(obj_table_name)
    if variant is None:
        raise ValidationError(f"Unknown edit target table: {obj_table_name!r}", field_name="obj_table_name")
    model, marker = variant
    if not isinstance(obj, dict) or marker not in obj:
        raise ValidationError(
            f"Edit payload does not match {obj_table_name!r} (missing {marker!r}).",
            field_name="obj",
        )
    try:
        return model.model_validate(obj)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid edit payload: {e.errors()[0]['msg']}", field_name="obj") from e


def is_mod_version(entry: EditApprovalQueue) -> bool:
    return entry.obj_table_name == MOD_VERSIONS_TABLE and "mod_version" in (entry.obj or {})


def is_mod(entry: EditApprovalQueue) -> bool:
    return entry.obj_table_name == MODS_TABLE and "name" in (entry.obj or {})


def _proposed_changes(edit: Edit) -> dict[str, Any]:
    """Proposed fields; None or "" keeps the live value. An empty list is applied."""
    return {k: v for k, v in edit.model_dump(mode="json").items() if v is not None and v != ""}


async def _load_target(session: AsyncSession, obj_table_name: str, obj_id: int) -> Union[Mod, ModVersion]:
    model = Mod if obj_table_name == MODS_TABLE else ModVersion
    target = await session.get(model, obj_id)
    if target is None:
        raise NotFoundError(f"{'Mod' if model is Mod else 'Mod version'} ({obj_id}) not found.")
    return target


async def submit_edit(session: AsyncSession, submitter: User, obj_id: int, edit: Edit) -> EditApprovalQueue:
    """Queue an edit against an existing mod or mod version."""
    obj_table_name = table_for(edit)
    await _load_target(session, obj_table_name, obj_id)
    entry = EditApprovalQueue(
        submitter_id=submitter.id,
        obj_id=obj_id,
        obj_table_name=obj_table_name,
        obj=edit.to_obj(),
        approved=False,
    )
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    logger.info("Edit %s queued for %s %s by %s", entry.id, obj_table_name, obj_id, submitter.username)
    return entry


async def approve(session: AsyncSession, entry: EditApprovalQueue, acting_user: User) -> Union[Mod, ModVersion]:
    """Merge the pending edit into its target, verify the target, mark the entry approved.

    Target and queue entry are committed together. A missing target raises
    NotFoundError and leaves the entry pending.
    """
    if entry.approved:
        raise ConflictError("Edit already approved.")
    edit = parse_edit_payload(entry.obj_table_name, entry.obj)
    target = await _load_target(session, entry.obj_table_name, entry.obj_id)

    changes = _proposed_changes(edit)
    changes["visibility"] = Visibility.VERIFIED.value
    if is_mod_version(entry):
        await apply_mod_version_changes(session, target, changes)
        conflict_message = "Edit would cause a duplicate version."
    else:
        await apply_mod_changes(session, target, changes)
        conflict_message = "Mod already exists."

    entry.approved = True
    entry.approver_id = acting_user.id
    await commit_or_conflict(session, conflict_message)
    await session.refresh(entry)
    await session.refresh(target)
    logger.info("Edit %s (%s %s) approved by %s", entry.id, entry.obj_table_name, entry.obj_id, acting_user.username)
    return target


async def deny(session: AsyncSession, entry: EditApprovalQueue, acting_user: User) -> None:
    """Drop a pending edit."""
    if entry.approved:
        raise ConflictError("Edit already approved.")
    await session.delete(entry)
    await session.commit()
    logger.info("Edit %s (%s %s) denied by %s", entry.id, entry.obj_table_name, entry.obj_id, acting_user.username)


async def list_pending(session: AsyncSession) -> list[EditApprovalQueue]:
    result = await session.execute(
        select(EditApprovalQueue).where(EditApprovalQueue.approved.is_(False)).order_by(EditApprovalQueue.id)
    )
    return list(result.scalars().all())


async def edit_target_game(cache: ReadCache, entry: EditApprovalQueue, session: Optional[AsyncSession] = None) -> Optional[str]:
    """Game the edited record belongs to, used to scope approver roles."""
    if is_mod(entry):
        game_name = cache.game_name_for_mod(entry.obj_id)
        if game_name:
            return game_name
        mod = await cache.get_mod(entry.obj_id, session)
        return mod.game_name if mod else None
    if not is_mod_version(entry):
        return None
    game_name = cache.game_name_for_mod_version(entry.obj_id)
    if game_name:
        return game_name
    version = await cache.get_mod_version(entry.obj_id, session)
    if not version:
        return None
    mod = await cache.get_mod(version.mod_id, session)
    return mod.game_name if mod else None
