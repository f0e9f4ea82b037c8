"""Database models."""
from registry.models.base import Base, init_db
from registry.models.user import User
from registry.models.game_version import GameVersion
from registry.models.mod import Mod
from registry.models.mod_version import ModVersion
from registry.models.edit_approval import EditApprovalQueue
from registry.models.motd import MOTD  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "User",
    "GameVersion",
    "Mod",
    "ModVersion",
    "EditApprovalQueue",
    "MOTD",
    "init_db",
]
