"""
Collection Stats

Mint progress for the collection: generated records come from the cache,
the minted count from the contract's totalSupply (cache fallback).
"""

from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import count_nfts
from src.services.chain_reader import ChainReader


async def get_collection_stats(
    session: AsyncSession,
    chain_reader: Optional[ChainReader],
    max_supply: int,
) -> Dict[str, Any]:
    """
    Collection mint stats

    Args:
        session: Database session
        chain_reader: Chain reader (None = cache only)
        max_supply: Collection size

    Returns:
        Dict with total_generated, total_minted, max_supply, available_to_mint,
        percentage and the source of the minted count
    """
    total_generated = await count_nfts(session)

    minted: Optional[int] = None
    source = "chain"
    if chain_reader is not None:
        supply = await chain_reader.total_supply()
        if supply.found:
            minted = supply.value
        else:
            logger.warning(f"totalSupply unavailable, falling back to cache: {supply.error}")

    if minted is None:
        minted = await count_nfts(session, minted=True)
        source = "cache"

    available = max(max_supply - minted, 0)
    percentage = round(minted / max_supply * 100) if max_supply else 0

    return {
        "total_generated": total_generated,
        "total_minted": minted,
        "max_supply": max_supply,
        "available_to_mint": available,
        "percentage": percentage,
        "minted_source": source,
    }
