"""
API endpoint tests (reconciliation admin, nft, leaderboard)
"""

from datetime import date

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

import src.api.api_key_auth as api_key_auth
from src.api.dependencies import get_optional_chain_reader, get_service
from src.api.router import router as api_router
from src.database.engine import get_session
from src.database.models import CheckIn
from src.services.reconciliation.service import ReconciliationService


ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture
def service(chain, recon_config) -> ReconciliationService:
    return ReconciliationService(chain, recon_config)


@pytest.fixture
async def client(monkeypatch, session_maker, chain, service):
    monkeypatch.setattr(api_key_auth, "ADMIN_API_KEY", "test-admin-key")

    app = FastAPI()
    app.include_router(api_router, prefix="/api")

    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_optional_chain_reader] = lambda: chain

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ===========================
# AUTH
# ===========================


@pytest.mark.asyncio
async def test_admin_requires_key(client):
    response = await client.get("/api/admin/check-missing-tokens")
    assert response.status_code == 401

    response = await client.get(
        "/api/admin/check-missing-tokens", headers={"X-Admin-Key": "wrong"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health_is_public(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# ===========================
# ADMIN RECONCILIATION
# ===========================


@pytest.mark.asyncio
async def test_check_missing_tokens(client, make_nft):
    for token_id in (1, 2, 4):
        await make_nft(fid=token_id, token_id=token_id, minted=True)

    response = await client.get(
        "/api/admin/check-missing-tokens", params={"maxTokenId": 6}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    data = response.json()
    assert data["missing_ids"] == [3, 5, 6]
    assert data["missing_ranges"] == ["#3", "5-6"]
    assert data["existing_count"] == 3
    assert data["percent_complete"] == 50.0


@pytest.mark.asyncio
async def test_check_missing_tokens_rejects_huge_range(client):
    response = await client.get(
        "/api/admin/check-missing-tokens",
        params={"maxTokenId": 10**12},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_sync_and_checkpoint(client, chain):
    for token_id in range(1, 4):
        chain.mint(token_id, 100 + token_id, f"0x{token_id:040x}")

    response = await client.get("/api/admin/sync-nfts/checkpoint", headers=ADMIN_HEADERS)
    assert response.json()["last_processed_id"] is None

    response = await client.post(
        "/api/admin/sync-nfts", json={"batch_size": 2}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["processed_ids"] == [1, 2]
    assert data["has_more"] is True

    response = await client.get("/api/admin/sync-nfts/checkpoint", headers=ADMIN_HEADERS)
    assert response.json()["last_processed_id"] == 2

    response = await client.post(
        "/api/admin/sync-nfts", json={"batch_size": 2}, headers=ADMIN_HEADERS
    )
    assert response.json()["processed_ids"] == [3]


@pytest.mark.asyncio
async def test_sync_chain_unavailable(client, chain):
    chain.supply = None

    response = await client.post("/api/admin/sync-nfts", json={}, headers=ADMIN_HEADERS)

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_verify_ownership(client, chain, make_nft):
    await make_nft(fid=1, token_id=1, minted=False)
    chain.owners[1] = "0x" + "11" * 20

    response = await client.post("/api/admin/verify-ownership", json={}, headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json()["updated"] == 1


@pytest.mark.asyncio
async def test_verify_blockchain_dry_run(client, chain, make_nft):
    await make_nft(fid=1, token_id=1, minted=True)
    await make_nft(fid=2, token_id=2, minted=True)
    chain.owners[1] = "0x" + "11" * 20

    response = await client.post(
        "/api/admin/verify-blockchain", params={"dryRun": "true"}, headers=ADMIN_HEADERS
    )
    data = response.json()
    assert data["orphaned_ids"] == [2]
    assert data["deleted"] == 0

    response = await client.post("/api/admin/verify-blockchain", headers=ADMIN_HEADERS)
    assert response.json()["deleted_ids"] == [2]


@pytest.mark.asyncio
async def test_populate_traits(client, chain, make_nft):
    await make_nft(fid=1, token_id=1, minted=True)
    chain.mint(1, 1, "0x" + "11" * 20, traits={"gender": "female"})

    response = await client.post("/api/admin/populate-traits", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json()["updated_fids"] == [1]


# ===========================
# NFT
# ===========================


@pytest.mark.asyncio
async def test_save_check_and_update_mint(client):
    response = await client.post("/api/nft/save", json={"fid": 10, "name": "Monster #10"})
    assert response.status_code == 200

    response = await client.post("/api/nft/save", json={"fid": 10})
    assert response.status_code == 400

    response = await client.get("/api/nft/check", params={"fid": 10})
    assert response.json()["exists"] is True
    assert response.json()["nft"]["minted"] is False

    response = await client.post(
        "/api/nft/update-mint", json={"fid": 10, "token_id": 4, "tx_hash": "0xbeef"}
    )
    assert response.status_code == 200
    assert response.json()["nft"]["token_id"] == 4

    response = await client.post("/api/nft/update-mint", json={"fid": 10, "token_id": 5})
    assert response.status_code == 409

    response = await client.post("/api/nft/update-mint", json={"fid": 11, "token_id": 6})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_check_unknown_fid(client):
    response = await client.get("/api/nft/check", params={"fid": 404})
    assert response.json() == {"exists": False, "nft": None}


@pytest.mark.asyncio
async def test_update_mint_with_token_of_another_fid_conflicts(client):
    for fid in (20, 21):
        await client.post("/api/nft/save", json={"fid": fid, "name": f"Monster #{fid}"})
    response = await client.post("/api/nft/update-mint", json={"fid": 20, "token_id": 7})
    assert response.status_code == 200

    response = await client.post("/api/nft/update-mint", json={"fid": 21, "token_id": 7})

    assert response.status_code == 409
    response = await client.get("/api/nft/check", params={"fid": 21})
    assert response.json()["nft"]["token_id"] is None
    assert response.json()["nft"]["minted"] is False


@pytest.mark.asyncio
async def test_nft_stats(client, chain, make_nft):
    await make_nft(fid=1)
    chain.supply = 12

    response = await client.get("/api/nft/stats")

    data = response.json()
    assert data["total_generated"] == 1
    assert data["total_minted"] == 12


# ===========================
# LEADERBOARD
# ===========================


@pytest.mark.asyncio
async def test_leaderboard(client, db_session):
    db_session.add(CheckIn(fid=1, streak=3, check_in_date=date(2025, 11, 1)))
    await db_session.commit()

    response = await client.get("/api/leaderboard", params={"type": "streak"})

    assert response.status_code == 200
    assert response.json()["leaderboard"] == [{"fid": 1, "streak": 3}]

    response = await client.get("/api/leaderboard", params={"type": "bogus"})
    assert response.status_code == 422
