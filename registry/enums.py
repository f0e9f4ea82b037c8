"""Enumerated values stored in the database as plain strings."""
from __future__ import annotations

from enum import Enum


class SupportedGame(str, Enum):
    BEAT_SABER = "BeatSaber"
    CHROMAPPER = "Chromapper"


class UserRole(str, Enum):
    ADMIN = "admin"
    APPROVER = "approver"
    MODERATOR = "moderator"
    BANNED = "banned"


class Visibility(str, Enum):
    """Moderation state of a mod or mod version."""

    PRIVATE = "private"
    REMOVED = "removed"
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


# Versions in these states occupy their (mod, version, platform) slot.
ACTIVE_VISIBILITIES = (Visibility.UNVERIFIED.value, Visibility.VERIFIED.value)


class Platform(str, Enum):
    STEAM = "steampc"
    OCULUS = "oculuspc"
    UNIVERSAL = "universalpc"


class Category(str, Enum):
    CORE = "core"  # BSIPA, SongCore, etc
    ESSENTIAL = "essential"
    LIBRARY = "library"
    COSMETIC = "cosmetic"
    PRACTICE = "practice"
    GAMEPLAY = "gameplay"
    STREAM_TOOLS = "streamtools"
    UI = "ui"
    LIGHTING = "lighting"
    TWEAKS = "tweaks"
    MULTIPLAYER = "multiplayer"
    TEXT = "text"
    EDITOR = "editor"
    OTHER = "other"


def _is_member(value: str | None, enum_type: type[Enum]) -> bool:
    if not value:
        return False
    return value in {m.value for m in enum_type}


def is_valid_platform(value: str | None) -> bool:
    return _is_member(value, Platform)


def is_valid_visibility(value: str | None) -> bool:
    return _is_member(value, Visibility)


def is_valid_category(value: str | None) -> bool:
    return _is_member(value, Category)


def is_valid_game_name(value: str | None) -> bool:
    return _is_member(value, SupportedGame)
