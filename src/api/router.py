"""
FastAPI Router for the NFT cache API
"""

from typing import Dict

from fastapi import APIRouter

# Import sub-routers
from src.api.admin_sync import router as admin_sync_router
from src.api.nft import router as nft_router
from src.api.leaderboard import router as leaderboard_router


# Main router
router = APIRouter()

# Include sub-routers (they already carry their prefixes)
router.include_router(admin_sync_router)  # Reconciliation triggers (X-Admin-Key)
router.include_router(nft_router)  # Cache reads, generation and mint reports
router.include_router(leaderboard_router)


@router.get("/health")
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint (no auth required)
    """
    return {
        "status": "ok",
        "service": "NFT Cache Reconciler API"
    }
