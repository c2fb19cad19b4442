"""
NFT API

Cache reads and client-reported writes for generated NFTs.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config.config import NFT_MAX_SUPPLY
from src.api.dependencies import get_optional_chain_reader
from src.core.errors import ImmutableFieldError
from src.database.crud import get_nft_by_fid, record_mint, save_generated_nft
from src.database.engine import get_session
from src.database.models import NFT
from src.services.chain_reader import ChainReader
from src.services.collection_stats import get_collection_stats


router = APIRouter(prefix="/nft", tags=["nft"])


class SaveNFTRequest(BaseModel):
    """Request model for a freshly generated NFT"""
    fid: int = Field(..., ge=1)
    name: Optional[str] = None
    image_url: Optional[str] = None
    metadata_uri: Optional[str] = None


class UpdateMintRequest(BaseModel):
    """Request model for a client-reported mint"""
    fid: int = Field(..., ge=1)
    token_id: Optional[int] = Field(None, ge=1)
    contract_address: Optional[str] = None
    tx_hash: Optional[str] = None


def serialize_nft(nft: NFT) -> Dict[str, Any]:
    """NFT model -> JSON dict"""
    return {
        "fid": nft.fid,
        "token_id": nft.token_id,
        "minted": nft.minted,
        "owner_address": nft.owner_address,
        "contract_address": nft.contract_address,
        "tx_hash": nft.tx_hash,
        "traits": nft.traits,
        "name": nft.name,
        "image_url": nft.image_url,
        "metadata_uri": nft.metadata_uri,
        "minted_at": nft.minted_at.isoformat() if nft.minted_at else None,
        "created_at": nft.created_at.isoformat() if nft.created_at else None,
        "updated_at": nft.updated_at.isoformat() if nft.updated_at else None,
    }


@router.get("/stats")
async def nft_stats(
    session: AsyncSession = Depends(get_session),
    chain_reader: Optional[ChainReader] = Depends(get_optional_chain_reader),
) -> Dict[str, Any]:
    """Collection mint progress"""
    return await get_collection_stats(session, chain_reader, NFT_MAX_SUPPLY)


@router.get("/check")
async def check_nft(
    fid: int = Query(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """Whether a fid has generated an NFT"""
    nft = await get_nft_by_fid(session, fid)
    return {
        "exists": nft is not None,
        "nft": serialize_nft(nft) if nft else None,
    }


@router.post("/save")
async def save_nft(
    request: SaveNFTRequest,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Save a generated (not yet minted) NFT

    Errors:
        400: This fid already generated an NFT
    """
    nft = await save_generated_nft(
        session,
        request.fid,
        name=request.name,
        image_url=request.image_url,
        metadata_uri=request.metadata_uri,
    )
    if nft is None:
        raise HTTPException(status_code=400, detail="This FID has already generated an NFT")

    return {"success": True, "nft": serialize_nft(nft)}


@router.post("/update-mint")
async def update_mint(
    request: UpdateMintRequest,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Record a client-reported mint

    The chain sync later confirms or corrects it.

    Errors:
        404: No generated NFT for this fid
        409: token_id already set to a different value
    """
    try:
        nft = await record_mint(
            session,
            request.fid,
            token_id=request.token_id,
            contract_address=request.contract_address,
            tx_hash=request.tx_hash,
        )
    except ImmutableFieldError as e:
        logger.warning(f"Rejected mint update: {e}")
        raise HTTPException(status_code=409, detail=str(e))

    if nft is None:
        raise HTTPException(status_code=404, detail="NFT not found for this FID")

    return {"success": True, "nft": serialize_nft(nft)}
