"""POST /api/v1/exp/add."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

ALICE = "0x1111111111111111111111111111111111111111"


@pytest.mark.asyncio
async def test_add_video_exp(client: AsyncClient, make_user) -> None:
    await make_user()
    response = await client.post(
        "/api/v1/exp/add",
        json={"wallet_address": ALICE, "type": "video_complete", "source_id": 7},
    )
    assert response.status_code == 200
    assert response.json() == {
        "credited": True,
        "new_balance": 10,
        "total_earned": 10,
        "amount": 10,
        "message": "+10 EXP awarded",
    }


@pytest.mark.asyncio
async def test_duplicate_is_200_not_credited(client: AsyncClient, make_user) -> None:
    await make_user()
    body = {"wallet_address": ALICE, "type": "video_complete", "source_id": 7}
    await client.post("/api/v1/exp/add", json=body)
    response = await client.post("/api/v1/exp/add", json=body)

    assert response.status_code == 200
    data = response.json()
    assert data["credited"] is False
    assert data["amount"] == 0
    assert data["new_balance"] == 10
    assert data["message"] == "Already earned for this source"


@pytest.mark.asyncio
async def test_flashcard_session_amount(client: AsyncClient, make_user) -> None:
    await make_user()
    response = await client.post(
        "/api/v1/exp/add",
        json={"wallet_address": ALICE, "type": "flashcard_session", "source_id": 2},
    )
    assert response.json()["amount"] == 15


@pytest.mark.asyncio
async def test_unknown_user_404(client: AsyncClient, database) -> None:
    response = await client.post(
        "/api/v1/exp/add",
        json={"wallet_address": ALICE, "type": "video_complete", "source_id": 7},
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_invalid_type_422(client: AsyncClient, make_user) -> None:
    await make_user()
    response = await client.post(
        "/api/v1/exp/add",
        json={"wallet_address": ALICE, "type": "quiz", "source_id": 7},
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "Validation error"


@pytest.mark.asyncio
async def test_invalid_wallet_422(client: AsyncClient, database) -> None:
    response = await client.post(
        "/api/v1/exp/add",
        json={"wallet_address": "not-a-wallet", "type": "video_complete", "source_id": 7},
    )
    assert response.status_code == 422
    assert response.json()["field"] == "wallet_address"
