"""Weekly study-hour leaderboard, cached per university."""

from __future__ import annotations

from flask import current_app

from cache_backend import get_cache
from db_stores import LeaderboardStoreDB


def weekly_leaderboard(university_id: int, limit: int | None = None) -> list[dict]:
    """Opted-in students of a university ranked by hours tracked since Monday."""
    if not current_app.config.get("FEATURE_FLAGS", {}).get("leaderboard", True):
        return []

    limit = limit or current_app.config.get("LEADERBOARD_SIZE", 20)
    key = f"leaderboard:weekly:{university_id}:{limit}"
    cache = get_cache()

    entries = cache.get(key)
    if entries is None:
        entries = LeaderboardStoreDB.weekly(university_id, limit=limit)
        cache.set(key, entries, ttl=current_app.config.get("LEADERBOARD_CACHE_TTL", 300))
    return entries
