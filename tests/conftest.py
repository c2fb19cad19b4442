"""
Pytest configuration and fixtures for the NFT cache reconciler tests
"""

from datetime import datetime, UTC
from typing import AsyncGenerator, Dict, Optional, Set

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.database.models import Base, NFT
from src.services.chain_reader import ChainLookup, TokenMetadata
from src.services.reconciliation.config import ReconciliationConfig, SyncConfig


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CONTRACT_ADDRESS = "0x00000000000000000000000000000000000000aa"


class FakeChainReader:
    """
    In-memory stand-in for ChainReader

    Tokens not registered are reverted (DOES_NOT_EXIST); ids listed in
    unknown_tokens / unknown_fids answer UNKNOWN.
    """

    contract_address = CONTRACT_ADDRESS

    def __init__(self):
        self.owners: Dict[int, str] = {}
        self.token_fids: Dict[int, int] = {}
        self.metadata: Dict[int, TokenMetadata] = {}
        self.unknown_tokens: Set[int] = set()
        self.unknown_fids: Set[int] = set()
        self.supply: Optional[int] = 0
        self.calls = []

    def mint(self, token_id: int, fid: int, owner: str, traits: Optional[dict] = None):
        self.owners[token_id] = owner
        self.token_fids[token_id] = fid
        self.metadata[fid] = TokenMetadata(
            fid=fid,
            traits=traits or {},
            minted_at=datetime(2025, 11, 1, tzinfo=UTC),
        )
        self.supply = max(self.supply or 0, token_id)

    async def owner_of(self, token_id: int) -> ChainLookup:
        self.calls.append(("ownerOf", token_id))
        if token_id in self.unknown_tokens:
            return ChainLookup.unknown("ownerOf failed: timeout")
        owner = self.owners.get(token_id)
        if owner is None:
            return ChainLookup.does_not_exist("ownerOf reverted")
        return ChainLookup.exists(owner.lower())

    async def token_id_to_fid(self, token_id: int) -> ChainLookup:
        self.calls.append(("tokenIdToFid", token_id))
        if token_id in self.unknown_tokens:
            return ChainLookup.unknown("tokenIdToFid failed: timeout")
        fid = self.token_fids.get(token_id)
        if fid is None:
            return ChainLookup.does_not_exist("token not minted")
        return ChainLookup.exists(fid)

    async def read_token_metadata(self, token_id: int) -> ChainLookup:
        self.calls.append(("getMetadata", token_id))
        fid = self.token_fids.get(token_id)
        if fid is None or fid not in self.metadata:
            return ChainLookup.does_not_exist("empty metadata")
        return ChainLookup.exists(self.metadata[fid])

    async def read_metadata(self, fid: int) -> ChainLookup:
        self.calls.append(("getMetadataByFid", fid))
        if fid in self.unknown_fids:
            return ChainLookup.unknown("getMetadataByFid failed: 429 rate limit")
        if fid not in self.metadata:
            return ChainLookup.does_not_exist("empty metadata")
        return ChainLookup.exists(self.metadata[fid])

    async def total_supply(self) -> ChainLookup:
        self.calls.append(("totalSupply",))
        if self.supply is None:
            return ChainLookup.unknown("totalSupply failed: connection refused")
        return ChainLookup.exists(self.supply)


@pytest.fixture(scope="function")
async def test_db_engine():
    """
    Create test database engine
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(test_db_engine) -> async_sessionmaker[AsyncSession]:
    """
    Session maker bound to the test engine
    """
    return async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session
    """
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def chain() -> FakeChainReader:
    return FakeChainReader()


@pytest.fixture
def recon_config() -> ReconciliationConfig:
    """Reconciliation config without inter-batch sleeps"""
    return ReconciliationConfig(
        sync=SyncConfig(batch_size=100, max_batch_size=500, batch_delay_sec=0),
        orphan_page_size=50,
        max_supply=3000,
    )


@pytest.fixture
def make_nft(db_session):
    """
    Factory inserting cached NFT rows
    """

    async def _make_nft(
        fid: int,
        token_id: Optional[int] = None,
        minted: bool = False,
        owner_address: Optional[str] = None,
        traits: Optional[dict] = None,
    ) -> NFT:
        nft = NFT(
            fid=fid,
            token_id=token_id,
            minted=minted,
            owner_address=owner_address,
            traits=traits,
        )
        db_session.add(nft)
        await db_session.commit()
        return nft

    return _make_nft
