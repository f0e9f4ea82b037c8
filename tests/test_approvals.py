"""Tests for the edit approval queue."""
import pytest

from registry.enums import Visibility
from registry.errors import ConflictError, NotFoundError, ValidationError
from registry.models import EditApprovalQueue, Mod
from registry.services import approvals
from registry.services import mods as mod_service
from registry.services import versions as version_service
from web.api.main import cache


async def _make_mod(session, author_id, name="BeatSaverDownloader", visibility="verified"):
    return await mod_service.create_mod(
        session,
        creator_id=author_id,
        name=name,
        description="Download maps in game",
        game_name="BeatSaber",
        category="ui",
        git_url="https://github.com/example/downloader",
        visibility=visibility,
    )


def test_parse_edit_payload_mod():
    edit = approvals.parse_edit_payload("mods", {"name": "NewName"})
    assert isinstance(edit, approvals.ModEdit)
    assert edit.name == "NewName"


def test_parse_edit_payload_mod_version():
    edit = approvals.parse_edit_payload("modVersions", {"mod_version": "1.1.0", "platform": "oculuspc"})
    assert isinstance(edit, approvals.ModVersionEdit)
    assert edit.platform.value == "oculuspc"


@pytest.mark.parametrize(
    "table,obj",
    [
        ("mods", {"mod_version": "1.0.0"}),
        ("modVersions", {"name": "NewName"}),
        ("users", {"name": "NewName"}),
        ("modVersions", {"mod_version": "1.0.0", "platform": "switch"}),
        ("mods", {"name": "NewName", "visibility": "verified"}),
    ],
)
def test_parse_edit_payload_rejects_mismatch(table, obj):
    with pytest.raises(ValidationError):
        approvals.parse_edit_payload(table, obj)


@pytest.mark.asyncio
async def test_approve_mod_edit_merges_name(session, author, approver):
    mod = await _make_mod(session, author.id, visibility="unverified")
    entry = await approvals.submit_edit(session, author, mod.id, approvals.ModEdit(name="NewName"))
    assert entry.obj == {"name": "NewName"}
    assert entry.approved is False and entry.approver_id is None

    target = await approvals.approve(session, entry, approver)
    assert target.name == "NewName"
    assert target.visibility == Visibility.VERIFIED.value
    assert target.description == "Download maps in game"
    assert target.git_url == "https://github.com/example/downloader"
    assert entry.approved is True
    assert entry.approver_id == approver.id


@pytest.mark.asyncio
async def test_approve_mod_version_edit(session, author, approver, game_version):
    library = await _make_mod(session, author.id, name="SongCore")
    dependency = await version_service.create_mod_version(
        session, library, author.id, "2.0.0", "steampc", [game_version.id], visibility="verified"
    )
    mod = await _make_mod(session, author.id)
    version = await version_service.create_mod_version(
        session, mod, author.id, "1.0.0", "steampc", [game_version.id], dependencies=[dependency.id], visibility="verified"
    )
    edit = approvals.ModVersionEdit(mod_version="1.0.1", dependencies=[])
    entry = await approvals.submit_edit(session, author, version.id, edit)
    assert approvals.is_mod_version(entry)
    assert not approvals.is_mod(entry)

    target = await approvals.approve(session, entry, approver)
    assert target.mod_version == "1.0.1"
    assert target.platform == "steampc"
    assert target.supported_game_version_ids == [game_version.id]
    assert target.dependencies == []


@pytest.mark.asyncio
async def test_approve_twice_conflicts(session, author, approver):
    mod = await _make_mod(session, author.id)
    entry = await approvals.submit_edit(session, author, mod.id, approvals.ModEdit(name="Renamed"))
    await approvals.approve(session, entry, approver)
    with pytest.raises(ConflictError):
        await approvals.approve(session, entry, approver)


@pytest.mark.asyncio
async def test_approve_duplicate_version_leaves_entry_pending(session, author, approver, game_version):
    mod = await _make_mod(session, author.id)
    await version_service.create_mod_version(
        session, mod, author.id, "1.0.0", "steampc", [game_version.id], visibility="verified"
    )
    other = await version_service.create_mod_version(
        session, mod, author.id, "1.0.1", "steampc", [game_version.id], visibility="verified"
    )
    entry = await approvals.submit_edit(session, author, other.id, approvals.ModVersionEdit(mod_version="1.0.0"))
    with pytest.raises(ConflictError):
        await approvals.approve(session, entry, approver)
    await session.refresh(entry)
    assert entry.approved is False
    await session.refresh(other)
    assert other.mod_version == "1.0.1"


@pytest.mark.asyncio
async def test_approve_missing_target_raises_not_found(session, author, approver):
    mod = await _make_mod(session, author.id)
    entry = await approvals.submit_edit(session, author, mod.id, approvals.ModEdit(name="Gone"))
    await session.delete(await session.get(Mod, mod.id))
    await session.commit()

    with pytest.raises(NotFoundError):
        await approvals.approve(session, entry, approver)
    entry = await session.get(EditApprovalQueue, entry.id)
    assert entry.approved is False
    assert entry.approver_id is None


@pytest.mark.asyncio
async def test_approve_mod_name_taken_conflicts(session, author, approver):
    await _make_mod(session, author.id, name="Taken")
    mod = await _make_mod(session, author.id, name="Original")
    entry = await approvals.submit_edit(session, author, mod.id, approvals.ModEdit(name="Taken"))
    with pytest.raises(ConflictError):
        await approvals.approve(session, entry, approver)


@pytest.mark.asyncio
async def test_deny_deletes_pending_entry(session, author, approver):
    mod = await _make_mod(session, author.id)
    entry = await approvals.submit_edit(session, author, mod.id, approvals.ModEdit(name="Nope"))
    await approvals.deny(session, entry, approver)
    assert await approvals.list_pending(session) == []


@pytest.mark.asyncio
async def test_submit_edit_requires_target(session, author):
    with pytest.raises(NotFoundError):
        await approvals.submit_edit(session, author, 404, approvals.ModEdit(name="Ghost"))


@pytest.mark.asyncio
async def test_edit_target_game(session, author, game_version):
    mod = await _make_mod(session, author.id)
    version = await version_service.create_mod_version(session, mod, author.id, "1.0.0", "steampc", [game_version.id])
    mod_entry = await approvals.submit_edit(session, author, mod.id, approvals.ModEdit(name="Renamed"))
    version_entry = await approvals.submit_edit(session, author, version.id, approvals.ModVersionEdit(mod_version="1.0.1"))

    # Not yet in the snapshot: resolved through the store
    assert await approvals.edit_target_game(cache, mod_entry, session) == "BeatSaber"
    await cache.refresh()
    assert await approvals.edit_target_game(cache, mod_entry) == "BeatSaber"
    assert await approvals.edit_target_game(cache, version_entry) == "BeatSaber"

    malformed = EditApprovalQueue(submitter_id=author.id, obj_id=mod.id, obj_table_name="mods", obj={"description": "x"})
    assert await approvals.edit_target_game(cache, malformed) is None
