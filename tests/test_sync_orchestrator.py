"""
Tests for checkpointed sync batches
"""

import pytest
from sqlalchemy import func, select

from src.core.enums import SyncOutcome
from src.core.errors import ChainUnavailableError
from src.database.crud import delete_nft, get_nft_by_fid, get_nft_by_token_id
from src.database.models import NFT, SyncCheckpoint
from src.services.chain_reader import decode_metadata
from src.services.reconciliation.checkpoint import CheckpointManager
from src.services.reconciliation.config import CHAIN_SYNC_TASK, OWNERSHIP_VERIFY_TASK
from src.services.reconciliation.sync_orchestrator import (
    CachedTokenSource,
    ChainTokenSource,
    SyncOrchestrator,
)
from src.services.reconciliation.token_sync import ChainTokenImporter, OwnershipVerifier


def owner_for(token_id: int) -> str:
    return f"0x{token_id:040x}"


async def seed_minted_tokens(session, chain, count: int, minted: bool = False):
    """Cache rows for tokens 1..count, all present on-chain"""
    for token_id in range(1, count + 1):
        fid = 1000 + token_id
        chain.mint(token_id, fid, owner_for(token_id))
        session.add(NFT(fid=fid, token_id=token_id, minted=minted))
    await session.commit()


async def checkpoint_rows(session) -> int:
    result = await session.execute(select(func.count(SyncCheckpoint.id)))
    return result.scalar_one()


@pytest.fixture
def orchestrator(recon_config):
    return SyncOrchestrator(CheckpointManager(), recon_config.sync)


# ===========================
# OWNERSHIP VERIFICATION (cached source)
# ===========================


@pytest.mark.asyncio
async def test_resumes_from_checkpoint_in_batches(db_session, chain, orchestrator):
    """250 records, batch 100: first run 1-100, second run 101-200"""
    await seed_minted_tokens(db_session, chain, 250)
    verifier = OwnershipVerifier(chain)

    first = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), verifier, batch_size=100
    )
    assert first.start_cursor is None
    assert first.processed_ids == list(range(1, 101))
    assert first.end_cursor == 100
    assert first.has_more is True
    assert first.updated == 100

    second = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), verifier, batch_size=100
    )
    assert second.start_cursor == 100
    assert second.processed_ids == list(range(101, 201))
    assert second.end_cursor == 200

    nft = await get_nft_by_token_id(db_session, 150)
    assert nft.minted is True
    assert nft.owner_address == owner_for(150)


@pytest.mark.asyncio
async def test_rerun_without_new_data_mutates_nothing(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 5)
    verifier = OwnershipVerifier(chain)

    await orchestrator.run_batch(db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), verifier)
    rows_before = await checkpoint_rows(db_session)
    updated_before = (await get_nft_by_fid(db_session, 1003)).updated_at

    summary = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), verifier
    )

    assert summary.processed == 0
    assert summary.checkpoint_advanced is False
    assert await checkpoint_rows(db_session) == rows_before
    assert (await get_nft_by_fid(db_session, 1003)).updated_at == updated_before


@pytest.mark.asyncio
async def test_reprocessing_correct_records_is_noop(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 5)
    verifier = OwnershipVerifier(chain)
    await orchestrator.run_batch(db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), verifier)
    updated_before = (await get_nft_by_fid(db_session, 1002)).updated_at

    # Manual restart from the beginning, as after a crash before the advance
    summary = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), verifier, start_after=0
    )

    assert summary.processed == 5
    assert summary.updated == 0
    assert summary.unchanged == 5
    assert (await get_nft_by_fid(db_session, 1002)).updated_at == updated_before


@pytest.mark.asyncio
async def test_one_failed_record_does_not_stop_batch(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 5)
    chain.unknown_tokens.add(3)

    summary = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), OwnershipVerifier(chain)
    )

    assert summary.processed == 5
    assert summary.failed == 1
    assert summary.succeeded == 4
    assert summary.failed_ids == [3]
    assert summary.end_cursor == 5

    # Failed record untouched, others updated
    assert (await get_nft_by_token_id(db_session, 3)).minted is False
    assert (await get_nft_by_token_id(db_session, 4)).minted is True


@pytest.mark.asyncio
async def test_token_missing_on_chain_is_failure_not_delete(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 3)
    del chain.owners[2]

    summary = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), OwnershipVerifier(chain)
    )

    assert summary.failed_ids == [2]
    assert "not found on-chain" in summary.errors[0]
    assert await get_nft_by_token_id(db_session, 2) is not None


@pytest.mark.asyncio
async def test_verify_never_recreates_deleted_row(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 3)
    verify = OwnershipVerifier(chain)

    async def delete_then_verify(session, item):
        if item.item_id == 2:
            # Orphan sweep removed the row after the batch was read
            await delete_nft(session, item.record.fid)
        return await verify(session, item)

    summary = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), delete_then_verify
    )

    assert summary.updated == 2
    assert summary.skipped == 1
    assert summary.failed == 0
    assert await get_nft_by_fid(db_session, 1002) is None
    assert await get_nft_by_token_id(db_session, 2) is None


@pytest.mark.asyncio
async def test_empty_batch_does_not_touch_checkpoint(db_session, chain, orchestrator):
    summary = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), OwnershipVerifier(chain)
    )

    assert summary.processed == 0
    assert summary.end_cursor is None
    assert await checkpoint_rows(db_session) == 0


@pytest.mark.asyncio
async def test_unexpected_error_counted(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 3)

    async def flaky(session, item):
        if item.item_id == 2:
            raise RuntimeError("boom")
        return SyncOutcome.UNCHANGED

    summary = await orchestrator.run_batch(
        db_session, OWNERSHIP_VERIFY_TASK, CachedTokenSource(), flaky
    )

    assert summary.failed_ids == [2]
    assert summary.unchanged == 2
    assert summary.end_cursor == 3


@pytest.mark.asyncio
async def test_run_stops_at_max_batches(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 10)

    summary = await orchestrator.run(
        db_session,
        OWNERSHIP_VERIFY_TASK,
        CachedTokenSource(),
        OwnershipVerifier(chain),
        batch_size=3,
        max_batches=2,
    )

    assert summary.batches == 2
    assert summary.processed_ids == [1, 2, 3, 4, 5, 6]
    assert summary.end_cursor == 6
    assert summary.has_more is True


@pytest.mark.asyncio
async def test_run_until_caught_up(db_session, chain, orchestrator):
    await seed_minted_tokens(db_session, chain, 7)

    summary = await orchestrator.run(
        db_session,
        OWNERSHIP_VERIFY_TASK,
        CachedTokenSource(),
        OwnershipVerifier(chain),
        batch_size=3,
        max_batches=10,
    )

    assert summary.batches == 3
    assert summary.processed == 7
    assert summary.has_more is False
    assert summary.end_cursor == 7


# ===========================
# CHAIN IMPORT (chain source)
# ===========================


@pytest.mark.asyncio
async def test_chain_import_creates_records(db_session, chain, orchestrator):
    chain.mint(1, 501, owner_for(1))
    chain.metadata[501] = decode_metadata((
        501, "Mage", "Casts spells", "female", "Forest", "Dense trees",
        "Emerald", "Calm", "Robe", "Hood", "Staff", 1730419200,
    ))
    chain.mint(2, 502, owner_for(2))

    summary = await orchestrator.run_batch(
        db_session, CHAIN_SYNC_TASK, ChainTokenSource(chain), ChainTokenImporter(chain)
    )

    assert summary.updated == 2
    assert summary.end_cursor == 2
    assert summary.has_more is False

    nft = await get_nft_by_fid(db_session, 501)
    assert nft.token_id == 1
    assert nft.minted is True
    assert nft.contract_address == chain.contract_address
    assert nft.traits == {
        "character_class": "Mage",
        "class_description": "Casts spells",
        "gender": "female",
        "background": "Forest",
        "background_description": "Dense trees",
        "color_palette": "Emerald",
        "color_vibe": "Calm",
        "clothing": "Robe",
        "accessories": "Hood",
        "items": "Staff",
    }
    assert nft.minted_at is not None

    # Empty traits stay NULL so the backfill can pick them up
    assert (await get_nft_by_fid(db_session, 502)).traits is None


@pytest.mark.asyncio
async def test_chain_import_fills_generated_record(db_session, chain, orchestrator, make_nft):
    await make_nft(fid=777, minted=False)
    chain.mint(1, 777, owner_for(1))

    summary = await orchestrator.run_batch(
        db_session, CHAIN_SYNC_TASK, ChainTokenSource(chain), ChainTokenImporter(chain)
    )

    assert summary.updated == 1
    nft = await get_nft_by_fid(db_session, 777)
    assert nft.token_id == 1
    assert nft.minted is True


@pytest.mark.asyncio
async def test_chain_import_skips_unminted_ids(db_session, chain, orchestrator):
    chain.mint(1, 501, owner_for(1))
    chain.supply = 2  # token 2 counted but not bound to a fid yet

    summary = await orchestrator.run_batch(
        db_session, CHAIN_SYNC_TASK, ChainTokenSource(chain), ChainTokenImporter(chain)
    )

    assert summary.updated == 1
    assert summary.skipped == 1
    assert summary.end_cursor == 2


@pytest.mark.asyncio
async def test_chain_import_rejects_token_id_change(db_session, chain, orchestrator, make_nft):
    await make_nft(fid=501, token_id=9, minted=True)
    chain.mint(1, 501, owner_for(1))

    summary = await orchestrator.run_batch(
        db_session, CHAIN_SYNC_TASK, ChainTokenSource(chain), ChainTokenImporter(chain)
    )

    assert summary.failed_ids == [1]
    assert (await get_nft_by_fid(db_session, 501)).token_id == 9


@pytest.mark.asyncio
async def test_chain_import_rerun_is_noop(db_session, chain, orchestrator):
    chain.mint(1, 501, owner_for(1))
    await orchestrator.run_batch(
        db_session, CHAIN_SYNC_TASK, ChainTokenSource(chain), ChainTokenImporter(chain)
    )

    summary = await orchestrator.run_batch(
        db_session, CHAIN_SYNC_TASK, ChainTokenSource(chain), ChainTokenImporter(chain),
        start_after=0,
    )

    assert summary.updated == 0
    assert summary.unchanged == 1


@pytest.mark.asyncio
async def test_unreadable_supply_is_fatal(db_session, chain, orchestrator):
    chain.supply = None

    with pytest.raises(ChainUnavailableError):
        await orchestrator.run_batch(
            db_session, CHAIN_SYNC_TASK, ChainTokenSource(chain), ChainTokenImporter(chain)
        )

    assert await checkpoint_rows(db_session) == 0
