"""
Reconciliation Admin API

Manual triggers for the reconciliation jobs. Every endpoint returns the
job summary, including partial failures.

Endpoints:
- GET  /admin/check-missing-tokens   - gap report over token ids
- GET  /admin/sync-nfts/checkpoint   - current chain sync cursor
- POST /admin/sync-nfts              - chain -> cache import batch(es)
- POST /admin/verify-ownership       - ownerOf check batch(es)
- POST /admin/verify-blockchain      - orphan sweep (dryRun supported)
- POST /admin/populate-traits        - trait backfill
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.config import NFT_MAX_SUPPLY
from src.api.api_key_auth import verify_admin_key
from src.api.dependencies import get_service
from src.core.errors import ChainUnavailableError
from src.database.engine import get_session
from src.services.reconciliation.schemas import GapReport
from src.services.reconciliation.service import ReconciliationService


router = APIRouter(
    prefix="/admin",
    tags=["admin-reconciliation"],
    dependencies=[Depends(verify_admin_key)],
)


# ===========================
# REQUEST MODELS
# ===========================


class SyncRequest(BaseModel):
    """Request model for a chain sync run"""
    batch_size: Optional[int] = Field(None, ge=1)
    start_token_id: Optional[int] = Field(None, ge=1, description="Restart from this token id")
    max_batches: Optional[int] = Field(None, ge=1, le=50)


class VerifyRequest(BaseModel):
    """Request model for an ownership verification run"""
    batch_size: Optional[int] = Field(None, ge=1)
    max_batches: Optional[int] = Field(None, ge=1, le=50)


# ===========================
# API ENDPOINTS
# ===========================


@router.get("/check-missing-tokens", response_model=GapReport)
async def check_missing_tokens(
    max_token_id: Optional[int] = Query(None, alias="maxTokenId", ge=0, le=10 * NFT_MAX_SUPPLY),
    session: AsyncSession = Depends(get_session),
    service: ReconciliationService = Depends(get_service),
):
    """
    Report token ids missing from the cache in [1, maxTokenId]

    maxTokenId defaults to the collection max supply.
    """
    return await service.check_missing_tokens(session, max_token_id)


@router.get("/sync-nfts/checkpoint")
async def get_sync_checkpoint(
    session: AsyncSession = Depends(get_session),
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    """Current chain sync cursor"""
    return await service.get_sync_checkpoint(session)


@router.post("/sync-nfts")
async def sync_nfts(
    request: SyncRequest,
    session: AsyncSession = Depends(get_session),
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    """
    Import on-chain tokens into the cache

    Resumes from the checkpoint unless start_token_id is given.

    Errors:
        503: totalSupply could not be read
    """
    try:
        summary = await service.sync_from_chain(
            session,
            batch_size=request.batch_size,
            start_token_id=request.start_token_id,
            max_batches=request.max_batches,
        )
    except ChainUnavailableError as e:
        logger.error(f"Chain sync aborted: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Chain sync aborted, store failure: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return {"success": True, **summary.to_response()}


@router.post("/verify-ownership")
async def verify_ownership(
    request: VerifyRequest,
    session: AsyncSession = Depends(get_session),
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    """Re-check cached tokens against ownerOf, resuming from the checkpoint"""
    try:
        summary = await service.verify_ownership(
            session, batch_size=request.batch_size, max_batches=request.max_batches
        )
    except SQLAlchemyError as e:
        logger.error(f"Ownership verification aborted, store failure: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return {"success": True, **summary.to_response()}


@router.post("/verify-blockchain")
async def verify_blockchain(
    dry_run: bool = Query(False, alias="dryRun"),
    session: AsyncSession = Depends(get_session),
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    """
    Orphan sweep: delete cached tokens that do not exist on-chain

    Tokens whose existence could not be determined are kept and reported.
    """
    try:
        summary = await service.sweep_orphans(session, dry_run=dry_run)
    except SQLAlchemyError as e:
        logger.error(f"Orphan sweep aborted, store failure: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return {"success": True, **summary.to_response()}


@router.post("/populate-traits")
async def populate_traits(
    limit: Optional[int] = Query(None, ge=1),
    session: AsyncSession = Depends(get_session),
    service: ReconciliationService = Depends(get_service),
) -> Dict[str, Any]:
    """Backfill traits for minted tokens that have none"""
    try:
        summary = await service.backfill_traits(session, limit=limit)
    except SQLAlchemyError as e:
        logger.error(f"Trait backfill aborted, store failure: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return {"success": True, **summary.to_response()}
