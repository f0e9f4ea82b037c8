"""Message of the day lookup."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from registry.cache import ReadCache
    from registry.models import MOTD


def get_active_motds(
    cache: ReadCache,
    game_name: str,
    game_version_ids: list[int],
    platform: Optional[str] = None,
    include_expired: bool = False,
    now: Optional[datetime] = None,
) -> list[MOTD]:
    """MOTDs for a game that apply to any of game_version_ids and the platform.

    Expired (or not yet started) messages are skipped unless include_expired.
    """
    now = now or datetime.utcnow()
    messages = []
    for motd in cache.motds:
        if motd.game_name != game_name:
            continue
        if motd.game_version_ids and not set(motd.game_version_ids) & set(game_version_ids):
            continue
        if platform and motd.platforms and platform not in motd.platforms:
            continue
        if not include_expired and not (motd.start_time <= now <= motd.end_time):
            continue
        messages.append(motd)
    messages.sort(key=lambda m: m.start_time, reverse=True)
    return messages
