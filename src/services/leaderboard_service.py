"""
Leaderboard Service

Streak and claims leaderboards built from the append-only engagement logs.
"""

from typing import Any, Callable, Dict, Hashable, Iterable, List, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import list_checkins_latest_first, list_claims_latest_first

T = TypeVar("T")


def latest_by_key(rows: Iterable[T], key: Callable[[T], Hashable]) -> Dict[Hashable, T]:
    """
    Keep the first row seen per key

    Rows must be ordered most recent first; the result is then the latest row
    per key. Insertion order of the dict follows the input order.
    """
    latest: Dict[Hashable, T] = {}
    for row in rows:
        latest.setdefault(key(row), row)
    return latest


class LeaderboardService:
    """Read-only leaderboards over check-ins and claims"""

    async def get_streak_leaderboard(
        self, session: AsyncSession, limit: int = 10
    ) -> Dict[str, Any]:
        """
        Top current streaks

        The current streak of a user is the streak stored on their most
        recent check-in; users whose current streak is 0 are left out.
        """
        checkins = await list_checkins_latest_first(session)
        latest = latest_by_key(checkins, key=lambda checkin: checkin.fid)

        entries = [
            {"fid": checkin.fid, "streak": checkin.streak or 0}
            for checkin in latest.values()
            if (checkin.streak or 0) > 0
        ]
        entries.sort(key=lambda entry: entry["streak"], reverse=True)

        logger.debug(f"Streak leaderboard: {len(latest)} users, top {limit}")
        return {
            "type": "streak",
            "leaderboard": entries[:limit],
            "total_users": len(latest),
        }

    async def get_claims_leaderboard(
        self, session: AsyncSession, limit: int = 10
    ) -> Dict[str, Any]:
        """Top claimers by total claimed amount"""
        claims = await list_claims_latest_first(session)

        totals: Dict[int, Dict[str, Any]] = {}
        for claim in claims:
            entry = totals.setdefault(
                claim.fid, {"fid": claim.fid, "total_claims": 0, "total_amount": 0.0}
            )
            entry["total_claims"] += 1
            entry["total_amount"] += float(claim.amount or 0)

        ranked: List[Dict[str, Any]] = sorted(
            totals.values(), key=lambda entry: entry["total_amount"], reverse=True
        )
        return {
            "type": "claims",
            "leaderboard": ranked[:limit],
            "total_users": len(totals),
        }


# Global instance
leaderboard_service = LeaderboardService()
