"""
Sync units of work.

Both are idempotent: applying them to an already-correct row writes nothing,
which is what makes re-processing after a crash harmless.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import SyncOutcome
from src.core.errors import ChainReadError, TokenNotOnChainError
from src.database.crud import set_ownership, upsert_nft
from src.services.chain_reader import ChainReader
from src.services.reconciliation.schemas import SyncItem


class OwnershipVerifier:
    """
    Confirms a cached token against ownerOf and refreshes minted/owner.

    A token missing on-chain is reported as a failure, never deleted here;
    deletion belongs to the orphan sweep.
    """

    def __init__(self, chain_reader: ChainReader):
        self.chain = chain_reader

    async def __call__(self, session: AsyncSession, item: SyncItem) -> SyncOutcome:
        record = item.record
        lookup = await self.chain.owner_of(record.token_id)

        if lookup.missing:
            raise TokenNotOnChainError(record.token_id, "not found on-chain, left for orphan sweep")
        if not lookup.found:
            raise ChainReadError(record.token_id, lookup.error or "ownerOf unavailable")

        owner = lookup.value
        if record.minted and record.owner_address == owner:
            return SyncOutcome.UNCHANGED

        if not await set_ownership(session, record.fid, owner):
            logger.debug(f"Token #{record.token_id}: FID {record.fid} no longer cached")
            return SyncOutcome.MISSING
        return SyncOutcome.UPDATED


class ChainTokenImporter:
    """
    Mirrors one on-chain token into the cache.

    Reads tokenIdToFid, ownerOf and getMetadata, then upserts the row keyed
    by fid. Write-once fields already cached are left untouched.
    """

    def __init__(self, chain_reader: ChainReader):
        self.chain = chain_reader

    async def __call__(self, session: AsyncSession, item: SyncItem) -> SyncOutcome:
        token_id = item.item_id

        fid_lookup = await self.chain.token_id_to_fid(token_id)
        if fid_lookup.missing:
            return SyncOutcome.NOT_MINTED
        if not fid_lookup.found:
            raise ChainReadError(token_id, fid_lookup.error or "tokenIdToFid unavailable")
        fid = fid_lookup.value

        owner_lookup = await self.chain.owner_of(token_id)
        if owner_lookup.missing:
            raise TokenNotOnChainError(token_id, "fid assigned but ownerOf reverted")
        if not owner_lookup.found:
            raise ChainReadError(token_id, owner_lookup.error or "ownerOf unavailable")

        metadata_lookup = await self.chain.read_token_metadata(token_id)
        if not metadata_lookup.found and not metadata_lookup.missing:
            raise ChainReadError(token_id, metadata_lookup.error or "getMetadata unavailable")
        metadata = metadata_lookup.value if metadata_lookup.found else None

        _, changed = await upsert_nft(
            session,
            fid,
            token_id=token_id,
            minted=True,
            owner_address=owner_lookup.value,
            contract_address=self.chain.contract_address,
            traits=metadata.traits if metadata else None,
            minted_at=metadata.minted_at if metadata else None,
        )
        if changed:
            logger.debug(f"Token #{token_id} synced for FID {fid}")
        return SyncOutcome.UPDATED if changed else SyncOutcome.UNCHANGED
