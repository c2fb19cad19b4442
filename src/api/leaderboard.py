"""
Leaderboard API
"""

from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.engine import get_session
from src.services.leaderboard_service import leaderboard_service


router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("")
async def get_leaderboard(
    type: Literal["streak", "claims"] = Query("streak"),
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Streak or claims leaderboard

    - streak: latest streak per fid, highest first
    - claims: total claimed amount per fid, highest first
    """
    if type == "claims":
        return await leaderboard_service.get_claims_leaderboard(session, limit)
    return await leaderboard_service.get_streak_leaderboard(session, limit)
