"""
CRUD operations for the NFT cache

Async database operations using SQLAlchemy 2.0. Every write commits on its
own so that each record update is individually durable.
"""

from datetime import datetime, UTC
from typing import Dict, List, Mapping, Optional, Tuple

from loguru import logger
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import ImmutableFieldError
from src.database.models import NFT, SyncCheckpoint, CheckIn, Claim


def normalize_traits(traits: Optional[Mapping[str, Optional[str]]]) -> Optional[Dict[str, str]]:
    """
    Drop empty trait values; an empty mapping becomes None (not backfilled)
    """
    if not traits:
        return None
    cleaned = {key: str(value) for key, value in traits.items() if value not in (None, "")}
    return cleaned or None


# ===========================
# NFT READS
# ===========================


async def get_nft_by_fid(session: AsyncSession, fid: int) -> Optional[NFT]:
    """
    Get cached NFT by its identity key

    Args:
        session: Database session
        fid: Farcaster ID

    Returns:
        NFT model or None
    """
    stmt = select(NFT).where(NFT.fid == fid).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_nft_by_token_id(session: AsyncSession, token_id: int) -> Optional[NFT]:
    """Get cached NFT by on-chain token ID"""
    stmt = (
        select(NFT)
        .where(NFT.token_id == token_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_token_ids(session: AsyncSession) -> List[int]:
    """
    All non-null token IDs in the cache, ascending
    """
    stmt = select(NFT.token_id).where(NFT.token_id.is_not(None)).order_by(NFT.token_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_nfts_by_token_range(
    session: AsyncSession, start: int, end: int
) -> List[NFT]:
    """
    Cached NFTs with start <= token_id <= end, ordered by token_id
    """
    stmt = (
        select(NFT)
        .where(NFT.token_id >= start, NFT.token_id <= end)
        .order_by(NFT.token_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_nfts_after_token_id(
    session: AsyncSession, after_token_id: Optional[int], limit: int
) -> List[NFT]:
    """
    Keyset page of cached NFTs with a token_id, ordered by token_id

    Args:
        session: Database session
        after_token_id: Exclusive lower bound (None = from the lowest token_id)
        limit: Page size

    Returns:
        List of NFT models
    """
    stmt = select(NFT).where(NFT.token_id.is_not(None))
    if after_token_id is not None:
        stmt = stmt.where(NFT.token_id > after_token_id)
    stmt = (
        stmt.order_by(NFT.token_id)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_minted_without_traits(
    session: AsyncSession, limit: Optional[int] = None
) -> List[NFT]:
    """
    Minted NFTs whose traits were never backfilled, ordered by fid
    """
    stmt = (
        select(NFT)
        .where(NFT.minted.is_(True), NFT.traits.is_(None))
        .order_by(NFT.fid)
        .execution_options(populate_existing=True)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_minted_without_traits(session: AsyncSession) -> int:
    """Number of backfill candidates"""
    stmt = select(func.count(NFT.id)).where(NFT.minted.is_(True), NFT.traits.is_(None))
    result = await session.execute(stmt)
    return result.scalar_one()


async def count_nfts(session: AsyncSession, minted: Optional[bool] = None) -> int:
    """
    Count cached NFTs

    Args:
        session: Database session
        minted: Filter by minted flag (None = all)
    """
    stmt = select(func.count(NFT.id))
    if minted is not None:
        stmt = stmt.where(NFT.minted.is_(minted))
    result = await session.execute(stmt)
    return result.scalar_one()


# ===========================
# NFT WRITES
# ===========================


async def save_generated_nft(
    session: AsyncSession,
    fid: int,
    name: Optional[str] = None,
    image_url: Optional[str] = None,
    metadata_uri: Optional[str] = None,
) -> Optional[NFT]:
    """
    Create the pre-mint record for a freshly generated NFT

    Returns:
        Created NFT, or None if this fid already generated one
    """
    if await get_nft_by_fid(session, fid) is not None:
        return None

    nft = NFT(
        fid=fid,
        minted=False,
        name=name,
        image_url=image_url,
        metadata_uri=metadata_uri,
    )
    session.add(nft)
    await session.commit()

    logger.info(f"NFT generated for FID {fid}")
    return nft


async def upsert_nft(
    session: AsyncSession,
    fid: int,
    *,
    token_id: Optional[int] = None,
    minted: Optional[bool] = None,
    owner_address: Optional[str] = None,
    contract_address: Optional[str] = None,
    tx_hash: Optional[str] = None,
    traits: Optional[Mapping[str, Optional[str]]] = None,
    minted_at: Optional[datetime] = None,
) -> Tuple[NFT, bool]:
    """
    Insert or update a cached NFT keyed by fid, honoring the write rules

    - token_id: set once, a different value or one held by another fid
      raises ImmutableFieldError
    - minted: only false -> true (minted=False is ignored)
    - contract_address, tx_hash, minted_at: first value wins
    - traits: only written while empty
    - owner_address: always refreshed

    Re-applying the same values is a no-op (no commit, updated_at untouched).

    Returns:
        Tuple of (NFT model, changed)
    """
    nft = await get_nft_by_fid(session, fid)

    if nft is not None and token_id is not None and nft.token_id not in (None, token_id):
        raise ImmutableFieldError(
            fid, f"token_id already set to {nft.token_id}, refusing {token_id}"
        )

    if token_id is not None and (nft is None or nft.token_id is None):
        holder = await get_nft_by_token_id(session, token_id)
        if holder is not None and holder.fid != fid:
            raise ImmutableFieldError(
                fid, f"token_id {token_id} already belongs to FID {holder.fid}"
            )

    changed = False
    if nft is None:
        nft = NFT(fid=fid, minted=False)
        session.add(nft)
        changed = True

    if token_id is not None and nft.token_id is None:
        nft.token_id = token_id
        changed = True

    if minted and not nft.minted:
        nft.minted = True
        changed = True

    if owner_address is not None and nft.owner_address != owner_address.lower():
        nft.owner_address = owner_address.lower()
        changed = True

    for field, value in (
        ("contract_address", contract_address),
        ("tx_hash", tx_hash),
        ("minted_at", minted_at),
    ):
        if value is None:
            continue
        current = getattr(nft, field)
        if current is None:
            setattr(nft, field, value)
            changed = True
        elif field != "minted_at" and current != value:
            logger.warning(f"FID {fid}: {field} is write-once, keeping {current}")

    normalized = normalize_traits(traits)
    if normalized and not nft.traits:
        nft.traits = normalized
        changed = True

    if changed:
        nft.updated_at = datetime.now(UTC)
        await session.commit()

    return nft, changed


async def record_mint(
    session: AsyncSession,
    fid: int,
    token_id: Optional[int] = None,
    contract_address: Optional[str] = None,
    tx_hash: Optional[str] = None,
) -> Optional[NFT]:
    """
    Record a client-reported mint on an existing generated NFT

    Returns:
        Updated NFT, or None if the fid has no cached record
    """
    if await get_nft_by_fid(session, fid) is None:
        return None

    nft, changed = await upsert_nft(
        session,
        fid,
        token_id=token_id,
        minted=True,
        contract_address=contract_address,
        tx_hash=tx_hash,
    )
    if changed:
        logger.info(f"Mint recorded for FID {fid} (token #{nft.token_id})")
    return nft


async def mark_minted(
    session: AsyncSession, fid: int, owner_address: Optional[str] = None
) -> bool:
    """
    Flip minted false -> true (conditional, idempotent)

    Returns:
        True if the row changed
    """
    values = {"minted": True, "updated_at": datetime.now(UTC)}
    if owner_address is not None:
        values["owner_address"] = owner_address.lower()

    stmt = (
        update(NFT)
        .where(NFT.fid == fid, NFT.minted.is_(False))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0


async def set_ownership(session: AsyncSession, fid: int, owner_address: str) -> bool:
    """
    Mark an existing row minted with the given owner, never inserts

    Returns:
        True if the row exists (False when it was deleted meanwhile)
    """
    stmt = (
        update(NFT)
        .where(NFT.fid == fid)
        .values(minted=True, owner_address=owner_address.lower(), updated_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0


async def set_traits_if_empty(
    session: AsyncSession, fid: int, traits: Mapping[str, Optional[str]]
) -> bool:
    """
    Populate traits only while they are still NULL

    Returns:
        True if traits were written
    """
    normalized = normalize_traits(traits)
    if not normalized:
        return False

    stmt = (
        update(NFT)
        .where(NFT.fid == fid, NFT.traits.is_(None))
        .values(traits=normalized, updated_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0


async def delete_nft(session: AsyncSession, fid: int) -> bool:
    """
    Delete a cached NFT by fid

    Returns:
        True if a row was deleted
    """
    stmt = (
        delete(NFT)
        .where(NFT.fid == fid)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0


# ===========================
# SYNC CHECKPOINTS
# ===========================


async def get_latest_checkpoint(
    session: AsyncSession, task_name: str
) -> Optional[SyncCheckpoint]:
    """
    Newest checkpoint row for a task

    Returns:
        SyncCheckpoint or None if the task never checkpointed
    """
    stmt = (
        select(SyncCheckpoint)
        .where(SyncCheckpoint.task_name == task_name)
        .order_by(SyncCheckpoint.created_at.desc(), SyncCheckpoint.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def insert_checkpoint(
    session: AsyncSession, task_name: str, cursor_value: int
) -> SyncCheckpoint:
    """Append a checkpoint row"""
    checkpoint = SyncCheckpoint(task_name=task_name, cursor_value=cursor_value)
    session.add(checkpoint)
    await session.commit()
    return checkpoint


# ===========================
# LEADERBOARD SOURCES
# ===========================


async def list_checkins_latest_first(session: AsyncSession) -> List[CheckIn]:
    """All check-ins, most recent first (check_in_date, then insertion order)"""
    stmt = select(CheckIn).order_by(CheckIn.check_in_date.desc(), CheckIn.id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_claims_latest_first(session: AsyncSession) -> List[Claim]:
    """All claims, most recent first"""
    stmt = select(Claim).order_by(Claim.created_at.desc(), Claim.id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())
