import pytest
from sqlalchemy import update

from indigo_api.models import UserShop


def _layer(texture: str = "wave", depth: float = 0.6, **params) -> dict:
    return {"textureId": texture, "dyeDepth": depth, "params": params}


async def _score(client, cloth_id: str, layers: list[dict] | None = None):
    return await client.post(
        "/api/game/score",
        json={"cloth_id": cloth_id, "layers": layers or [_layer()], "cloth_name": f"作品 {cloth_id}"},
    )


# ============================================================
# Scoring
# ============================================================


@pytest.mark.asyncio
async def test_submit_score_rewards_player(client, login):
    login("alice")
    resp = await _score(client, "cloth-1")
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert result["total_score"] == 35
    assert result["grade"] == "C"
    assert result["exp_reward"] == 30
    assert result["currency_reward"] == 10
    assert result["leveled_up"] is False
    assert result["completed_tasks"] == []

    profile = (await client.get("/api/game/profile")).json()["data"]
    assert profile["currency"] == 110
    assert profile["exp"] == 30
    assert profile["total_score"] == 35
    assert profile["highest_score"] == 35
    assert profile["total_cloths_created"] == 1

    scores = (await client.get("/api/game/score", params={"cloth_id": "cloth-1"})).json()["data"]
    assert len(scores) == 1
    assert scores[0]["grade"] == "C"


@pytest.mark.asyncio
async def test_rescoring_someone_elses_cloth_is_forbidden(client, login):
    login("alice")
    await _score(client, "cloth-1")

    login("bob")
    resp = await _score(client, "cloth-1")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_submit_score_needs_layers(client, login):
    login("alice")
    resp = await client.post("/api/game/score", json={"cloth_id": "cloth-1", "layers": []})
    assert resp.status_code == 400
    assert resp.json()["error"]["detail"] == {"field": "layers"}


@pytest.mark.asyncio
async def test_scores_of_unknown_cloth(client, login):
    login("alice")
    resp = await client.get("/api/game/score", params={"cloth_id": "nope"})
    assert resp.status_code == 404


# ============================================================
# Inventory
# ============================================================


@pytest.mark.asyncio
async def test_recent_slots_evict_oldest(client, login):
    login("alice")
    for i in range(6):
        await _score(client, f"cloth-{i}")

    data = (await client.get("/api/inventory")).json()["data"]
    assert data["capacity"]["recentCount"] == 5
    assert data["capacity"]["maxRecent"] == 5
    recent_ids = {item["cloth_id"] for item in data["recent"]}
    assert "cloth-0" not in recent_ids
    assert "cloth-5" in recent_ids


@pytest.mark.asyncio
async def test_move_to_inventory_and_back(client, login):
    login("alice")
    await _score(client, "cloth-1")

    resp = await client.post("/api/inventory", json={"cloth_id": "cloth-1"})
    assert resp.json()["data"]["status"] == "in_inventory"

    data = (await client.get("/api/inventory", params={"slot_type": "inventory"})).json()["data"]
    assert [item["cloth_id"] for item in data["inventory"]] == ["cloth-1"]
    assert data["recent"] == []
    assert data["capacity"]["current"] == 1
    assert data["capacity"]["max"] == 20

    assert (await client.delete("/api/inventory", params={"cloth_id": "cloth-1"})).status_code == 200
    assert (await client.delete("/api/inventory", params={"cloth_id": "cloth-1"})).status_code == 404


@pytest.mark.asyncio
async def test_save_routes(client, login):
    login("alice")
    await _score(client, "cloth-1")

    resp = await client.post("/api/inventory/save", json={"cloth_id": "cloth-1"})
    assert resp.json()["data"]["status"] == "in_inventory"

    # Already kept: saving to recent leaves it in the inventory
    await client.post("/api/inventory/save-recent", json={"cloth_id": "cloth-1"})
    data = (await client.get("/api/inventory")).json()["data"]
    assert [item["cloth_id"] for item in data["inventory"]] == ["cloth-1"]
    assert data["recent"] == []

    await client.delete("/api/inventory", params={"cloth_id": "cloth-1"})
    resp = await client.post("/api/inventory/save-recent", json={"cloth_id": "cloth-1"})
    assert resp.status_code == 200
    data = (await client.get("/api/inventory")).json()["data"]
    assert [item["cloth_id"] for item in data["recent"]] == ["cloth-1"]

    login("bob")
    assert (await client.post("/api/inventory/save-recent", json={"cloth_id": "cloth-1"})).status_code == 403


@pytest.mark.asyncio
async def test_full_inventory_is_rejected(client, db, login):
    login("alice")
    await _score(client, "cloth-1")
    await client.get("/api/inventory")
    async with db() as session:
        await session.execute(update(UserShop).where(UserShop.user_id == "alice").values(max_inventory_size=0))
        await session.commit()

    resp = await client.post("/api/inventory", json={"cloth_id": "cloth-1"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVENTORY_FULL"
    assert resp.json()["error"]["detail"] == {"current": 0, "max": 0}


@pytest.mark.asyncio
async def test_expand_inventory_spends_currency(client, login):
    login("alice")
    resp = await client.post("/api/inventory/expand")
    assert resp.json()["data"] == {"newMaxSize": 25, "newCurrency": 0, "cost": 100}

    resp = await client.post("/api/inventory/expand")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INSUFFICIENT_CURRENCY"


@pytest.mark.asyncio
async def test_listed_cloth_cannot_leave_inventory(client, login):
    login("alice")
    await _score(client, "cloth-1")
    await client.post("/api/listings/create", json={"cloth_id": "cloth-1", "price": 50})

    resp = await client.delete("/api/inventory", params={"cloth_id": "cloth-1"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CLOTH_STATUS_ERROR"


# ============================================================
# Shop and listings
# ============================================================


@pytest.mark.asyncio
async def test_shop_defaults_and_update(client, login):
    login("alice")
    shop = (await client.get("/api/shop")).json()["data"]
    assert shop["shop"]["shop_name"] == "我的蓝染坊"
    assert shop["listingCount"] == 0

    resp = await client.post("/api/shop", json={"shop_name": " 青花坊 ", "theme": "zen"})
    assert resp.json()["data"]["shop_name"] == "青花坊"
    assert resp.json()["data"]["theme"] == "zen"

    resp = await client.post("/api/shop", json={"theme": "neon"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_listing_slot_expansion_needs_currency(client, login):
    login("alice")
    info = (await client.get("/api/shop/expand-listings")).json()["data"]
    assert info == {
        "currentSlots": 5,
        "maxSlots": 20,
        "canExpand": True,
        "nextExpansionCost": 300,
        "currency": 100,
    }
    resp = await client.post("/api/shop/expand-listings")
    assert resp.json()["error"]["code"] == "INSUFFICIENT_CURRENCY"


@pytest.mark.asyncio
@pytest.mark.parametrize("price", [0, -5, 100000])
async def test_listing_price_range(client, login, price):
    login("alice")
    await _score(client, "cloth-1")
    resp = await client.post("/api/listings/create", json={"cloth_id": "cloth-1", "price": price})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_listing(client, login):
    login("alice")
    await _score(client, "cloth-1")

    resp = await client.post("/api/listings/create", json={"cloth_id": "cloth-1", "price": 50})
    assert resp.status_code == 201
    listing = resp.json()["data"]
    assert listing["status"] == "listed"
    assert listing["base_price"] == 35
    assert listing["suggested_price"] == {"min": 28, "max": 53}
    assert listing["cloth"]["status"] == "listed"

    again = await client.post("/api/listings/create", json={"cloth_id": "cloth-1", "price": 50})
    assert again.json()["error"]["code"] == "DUPLICATE_ACTION"

    login("bob")
    resp = await client.post("/api/listings/create", json={"cloth_id": "cloth-1", "price": 50})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_only_one_featured_listing(client, login):
    login("alice")
    await _score(client, "cloth-1")
    await _score(client, "cloth-2")
    first = (await client.post("/api/listings/create", json={"cloth_id": "cloth-1", "price": 50, "is_featured": True})).json()["data"]
    second = (await client.post("/api/listings/create", json={"cloth_id": "cloth-2", "price": 60, "is_featured": True})).json()["data"]

    shop = (await client.get("/api/shop")).json()["data"]
    featured = {listing["id"]: listing["is_featured"] for listing in shop["listings"]}
    assert featured == {first["id"]: False, second["id"]: True}
    assert shop["listings"][0]["id"] == second["id"]

    resp = await client.put("/api/listings/featured", json={"listing_id": first["id"]})
    assert resp.json()["data"]["is_featured"] is True
    shop = (await client.get("/api/shop")).json()["data"]
    assert [listing["is_featured"] for listing in shop["listings"]].count(True) == 1


@pytest.mark.asyncio
async def test_reprice_and_withdraw(client, login):
    login("alice")
    await _score(client, "cloth-1")
    listing = (await client.post("/api/listings/create", json={"cloth_id": "cloth-1", "price": 50})).json()["data"]

    resp = await client.put("/api/listings/price", json={"listing_id": listing["id"], "new_price": 70})
    assert resp.json()["data"]["price"] == 70

    resp = await client.post("/api/listings/withdraw", json={"listing_id": listing["id"]})
    assert resp.json()["data"]["status"] == "withdrawn"
    assert resp.json()["data"]["cloth"]["status"] == "in_inventory"

    resp = await client.put("/api/listings/price", json={"listing_id": listing["id"], "new_price": 80})
    assert resp.status_code == 400
    resp = await client.post("/api/listings/withdraw", json={"listing_id": listing["id"]})
    assert resp.status_code == 400

    login("bob")
    resp = await client.put("/api/listings/price", json={"listing_id": listing["id"], "new_price": 80})
    assert resp.status_code == 403
