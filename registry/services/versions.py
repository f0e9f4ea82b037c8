"""Mod version service: duplicate-version prevention and dependency successors."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional

from semver import Version
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from registry.enums import ACTIVE_VISIBILITIES, Visibility, is_valid_platform, is_valid_visibility
from registry.errors import ConflictError, NotFoundError, ValidationError
from registry.models import GameVersion, Mod, ModVersion
from registry.services.store import commit_or_conflict

if TYPE_CHECKING:
    from registry.cache import ReadCache

logger = logging.getLogger("modvault.versions")

EDITABLE_FIELDS = ("mod_version", "platform", "supported_game_version_ids", "dependencies", "visibility")


def parse_version(raw: str) -> Version:
    """Parse a SemVer mod version string. Raises ValidationError if it is not SemVer."""
    try:
        return Version.parse(raw)
    except (ValueError, TypeError) as e:
        raise ValidationError("Invalid mod version.", field_name="mod_version") from e


def caret_range(raw: str) -> tuple[Version, Version]:
    """Bounds of ^raw as (inclusive lower, exclusive upper).

    Changes are allowed right of the left-most non-zero component.
    """
    base = parse_version(raw)
    if base.major > 0:
        upper = Version(base.major + 1, 0, 0)
    elif base.minor > 0:
        upper = Version(0, base.minor + 1, 0)
    else:
        upper = Version(0, 0, base.patch + 1)
    return base, upper


def satisfies_caret(candidate: str, original: str) -> bool:
    """True if candidate is inside ^original. Unparsable input never matches.

    A pre-release candidate only matches when original is a pre-release of
    the same major.minor.patch.
    """
    try:
        lower, upper = caret_range(original)
        version = parse_version(candidate)
    except ValidationError:
        return False
    if version.prerelease:
        same_release = (version.major, version.minor, version.patch) == (lower.major, lower.minor, lower.patch)
        if not (lower.prerelease and same_release):
            return False
    return lower <= version < upper


def is_valid_dependency_successor(original: ModVersion, candidate: ModVersion, for_game_version_id: int) -> bool:
    """Whether candidate can stand in for original as a dependency on for_game_version_id.

    Only when original does not support that game version, candidate does,
    and candidate's version is caret-compatible with original's.
    """
    if for_game_version_id in (original.supported_game_version_ids or []):
        return False
    if for_game_version_id not in (candidate.supported_game_version_ids or []):
        return False
    return satisfies_caret(candidate.mod_version, original.mod_version)


async def find_dependency_successor(
    cache: ReadCache,
    original: ModVersion,
    for_game_version_id: int,
    session: Optional[AsyncSession] = None,
) -> Optional[ModVersion]:
    """Newest verified version of the same mod and platform that can replace original."""
    best: Optional[ModVersion] = None
    for candidate in await cache.get_versions_for_mod(original.mod_id, session):
        if candidate.id == original.id or candidate.platform != original.platform:
            continue
        if candidate.visibility != Visibility.VERIFIED.value:
            continue
        if not is_valid_dependency_successor(original, candidate, for_game_version_id):
            continue
        if best is None or parse_version(candidate.mod_version) > parse_version(best.mod_version):
            best = candidate
    return best


async def get_latest_version(
    cache: ReadCache,
    mod_id: int,
    game_version_id: int,
    platform: Optional[str] = None,
    visibilities: Iterable[str] = (Visibility.VERIFIED.value,),
    session: Optional[AsyncSession] = None,
) -> Optional[ModVersion]:
    """Highest semver version of a mod supporting game_version_id."""
    allowed = set(visibilities)
    latest: Optional[ModVersion] = None
    for version in await cache.get_versions_for_mod(mod_id, session):
        if version.visibility not in allowed:
            continue
        if game_version_id not in (version.supported_game_version_ids or []):
            continue
        if platform and version.platform != platform:
            continue
        try:
            if latest is None or parse_version(version.mod_version) > parse_version(latest.mod_version):
                latest = version
        except ValidationError:
            logger.warning("Skipping mod version %s with unparsable version %r", version.id, version.mod_version)
    return latest


# --- Conflict resolver ---


async def check_for_existing_version(
    session: AsyncSession,
    mod_id: int,
    version: str,
    platform: str,
    exclude_id: Optional[int] = None,
) -> Optional[ModVersion]:
    """Return an unverified/verified version occupying (mod_id, version, platform), if any.

    Private and removed versions never block reuse of a version string.
    """
    stmt = select(ModVersion).where(
        ModVersion.mod_id == mod_id,
        ModVersion.mod_version == version,
        ModVersion.platform == platform,
        ModVersion.visibility.in_(ACTIVE_VISIBILITIES),
    )
    if exclude_id is not None:
        stmt = stmt.where(ModVersion.id != exclude_id)
    result = await session.execute(stmt.limit(1))
    return result.scalars().first()


async def _check_references(session: AsyncSession, game_version_ids: list[int], dependencies: list[int]) -> None:
    for gv_id in game_version_ids:
        if not await session.get(GameVersion, gv_id):
            raise NotFoundError(f"Game version ({gv_id}) not found.")
    for dep_id in dependencies:
        if not await session.get(ModVersion, dep_id):
            raise NotFoundError(f"Dependency ({dep_id}) not found.")


async def create_mod_version(
    session: AsyncSession,
    mod: Mod,
    author_id: int,
    mod_version: str,
    platform: str,
    supported_game_version_ids: list[int],
    dependencies: Optional[list[int]] = None,
    zip_hash: str = "",
    content_hashes: Optional[list[dict[str, str]]] = None,
    visibility: str = Visibility.UNVERIFIED.value,
) -> ModVersion:
    """Insert a new version. Raises ConflictError if the slot is already taken."""
    parse_version(mod_version)
    if not is_valid_platform(platform):
        raise ValidationError("Invalid platform.", field_name="platform")
    if not is_valid_visibility(visibility):
        raise ValidationError("Invalid visibility.", field_name="visibility")
    dependencies = list(dependencies or [])
    await _check_references(session, list(supported_game_version_ids), dependencies)

    existing = await check_for_existing_version(session, mod.id, mod_version, platform)
    if existing:
        raise ConflictError("Version already exists.", details={"existing_id": existing.id})

    version = ModVersion(
        mod_id=mod.id,
        author_id=author_id,
        mod_version=mod_version,
        platform=platform,
        supported_game_version_ids=list(supported_game_version_ids),
        dependencies=dependencies,
        zip_hash=zip_hash,
        content_hashes=[{"path": h["path"], "hash": h["hash"]} for h in (content_hashes or [])],
        visibility=visibility,
    )
    session.add(version)
    await commit_or_conflict(session, "Version already exists.")
    await session.refresh(version)
    logger.info("Mod version %s (%s %s) created for mod %s", version.id, mod_version, platform, mod.id)
    return version


async def apply_mod_version_changes(session: AsyncSession, version: ModVersion, changes: dict[str, Any]) -> ModVersion:
    """Apply field changes without committing. Runs the update conflict check.

    An existing active version with the same slot only blocks the change when
    this version ends up verified; unverified duplicates are tolerated.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
    if "mod_version" in changes:
        parse_version(changes["mod_version"])
    if "platform" in changes and not is_valid_platform(changes["platform"]):
        raise ValidationError("Invalid platform.", field_name="platform")
    if "visibility" in changes and not is_valid_visibility(changes["visibility"]):
        raise ValidationError("Invalid visibility.", field_name="visibility")
    await _check_references(
        session,
        list(changes.get("supported_game_version_ids") or []),
        list(changes.get("dependencies") or []),
    )

    new_version = changes.get("mod_version", version.mod_version)
    new_platform = changes.get("platform", version.platform)
    new_visibility = changes.get("visibility", version.visibility)
    existing = await check_for_existing_version(
        session, version.mod_id, new_version, new_platform, exclude_id=version.id
    )
    if existing and new_visibility == Visibility.VERIFIED.value:
        raise ConflictError("Edit would cause a duplicate version.", details={"existing_id": existing.id})

    for field, value in changes.items():
        setattr(version, field, list(value) if isinstance(value, list) else value)
    return version


async def update_mod_version(session: AsyncSession, version: ModVersion, **changes: Any) -> ModVersion:
    """Update and commit a mod version through the conflict check."""
    await apply_mod_version_changes(session, version, changes)
    await commit_or_conflict(session, "Edit would cause a duplicate version.")
    await session.refresh(version)
    return version


async def set_visibility(session: AsyncSession, version: ModVersion, visibility: str, acting_username: str) -> ModVersion:
    await update_mod_version(session, version, visibility=visibility)
    logger.info("ModVersion %s set to %s by %s", version.id, visibility, acting_username)
    return version
