import pytest
from sqlalchemy.exc import SQLAlchemyError

from indigo_api.models import Article, Course, Product
from indigo_api.services import orders


async def _product(db, **fields) -> str:
    values = {"name": "靛蓝方巾", "category": "scarf", "price": 128.0, "stock": 5, **fields}
    async with db() as session:
        product = Product(**values)
        session.add(product)
        await session.commit()
        return product.id


# ============================================================
# Products
# ============================================================


@pytest.mark.asyncio
async def test_product_crud(client, login):
    login("staff")
    resp = await client.post(
        "/api/products",
        json={"name": "扎染T恤", "price": 128, "original_price": 168, "category": "clothing", "colors": ["蓝"]},
    )
    assert resp.status_code == 201
    product = resp.json()["data"]
    assert product["discountPercent"] == 24
    assert product["savings"] == 40.0
    assert product["colors"] == ["蓝"]

    resp = await client.put(f"/api/products/{product['id']}", json={"stock": 9})
    assert resp.json()["data"]["stock"] == 9
    assert resp.json()["data"]["name"] == "扎染T恤"

    resp = await client.get("/api/products", params={"category": "clothing"})
    assert resp.json()["data"]["total"] == 1

    assert (await client.delete(f"/api/products/{product['id']}")).status_code == 200
    resp = await client.get(f"/api/products/{product['id']}")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_negative_price_is_rejected(client, login):
    login("staff")
    resp = await client.post("/api/products", json={"name": "x", "price": -1, "category": "c"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_product_writes_require_login(client, db):
    product_id = await _product(db)

    resp = await client.post("/api/products", json={"name": "x", "price": 1, "category": "c"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_ERROR"
    assert (await client.put(f"/api/products/{product_id}", json={"stock": 1})).status_code == 401
    assert (await client.delete(f"/api/products/{product_id}")).status_code == 401

    resp = await client.get(f"/api/products/{product_id}")
    assert resp.json()["data"]["stock"] == 5


# ============================================================
# Cart
# ============================================================


@pytest.mark.asyncio
async def test_cart_merges_same_variant(client, db, login):
    product_id = await _product(db)
    login("buyer")

    body = {"product_id": product_id, "quantity": 2, "color": "蓝", "size": "M"}
    await client.post("/api/cart", json=body)
    resp = await client.post("/api/cart", json=body)
    cart = resp.json()["data"]
    assert len(cart["items"]) == 1
    assert cart["totalItems"] == 4
    assert cart["totalPrice"] == 512.0

    resp = await client.post("/api/cart", json={**body, "size": "L", "quantity": 1})
    assert len(resp.json()["data"]["items"]) == 2


@pytest.mark.asyncio
async def test_cart_respects_stock(client, db, login):
    product_id = await _product(db, stock=3)
    sold_out = await _product(db, stock=0)
    login("buyer")

    resp = await client.post("/api/cart", json={"product_id": sold_out})
    assert resp.status_code == 400

    await client.post("/api/cart", json={"product_id": product_id, "quantity": 2})
    resp = await client.post("/api/cart", json={"product_id": product_id, "quantity": 2})
    assert resp.status_code == 400
    assert resp.json()["error"]["detail"] == {"field": "quantity"}

    cart = (await client.get("/api/cart")).json()["data"]
    assert cart["totalItems"] == 2


@pytest.mark.asyncio
async def test_cart_lines_are_private(client, db, login):
    product_id = await _product(db)
    login("owner")
    line_id = (await client.post("/api/cart", json={"product_id": product_id})).json()["data"]["items"][0]["id"]

    login("intruder")
    assert (await client.put("/api/cart", json={"id": line_id, "quantity": 3})).status_code == 404
    assert (await client.delete("/api/cart", params={"id": line_id})).status_code == 404

    login("owner")
    resp = await client.put("/api/cart", json={"id": line_id, "quantity": 3})
    assert resp.json()["data"]["totalItems"] == 3
    resp = await client.delete("/api/cart", params={"id": line_id})
    assert resp.json()["data"]["items"] == []


# ============================================================
# Orders
# ============================================================


@pytest.mark.asyncio
async def test_create_order_clears_cart_lines(client, db, login):
    product_id = await _product(db)
    login("buyer")
    cart = (await client.post("/api/cart", json={"product_id": product_id, "quantity": 2})).json()["data"]

    resp = await client.post(
        "/api/user/orders/create",
        json={
            "items": [{"product_id": product_id, "quantity": 2, "price": 128}],
            "address": "  贵州省安顺市  ",
            "cartItemIds": [cart["items"][0]["id"]],
        },
    )
    assert resp.status_code == 201
    order_id = resp.json()["data"]["orderId"]

    data = (await client.get("/api/user/orders")).json()["data"]
    assert data["total"] == 1
    assert data["pending"] == 1
    assert data["list"][0]["id"] == order_id
    assert data["list"][0]["total_amount"] == 256.0
    assert data["list"][0]["shipping_address"] == "贵州省安顺市"
    assert len(data["list"][0]["items"]) == 1

    assert (await client.get("/api/cart")).json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_order_coupon_applies_to_total(client, login):
    login("buyer")
    resp = await client.post(
        "/api/user/orders/create",
        json={
            "items": [{"product_id": "p1", "quantity": 1, "price": 200}],
            "address": "addr",
            "coupon": {"kind": "percent", "value": 10},
        },
    )
    assert resp.status_code == 201
    data = (await client.get("/api/user/orders")).json()["data"]
    assert data["list"][0]["total_amount"] == 180.0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"items": [], "address": "addr"},
        {"items": [{"product_id": "p1", "quantity": 1, "price": 1}], "address": "   "},
        {"items": [{"product_id": "p1", "quantity": 1, "price": 1}]},
    ],
)
async def test_order_requires_items_and_address(client, login, body):
    login("buyer")
    resp = await client.post("/api/user/orders/create", json=body)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_failed_item_insert_removes_order(client, login, monkeypatch: pytest.MonkeyPatch):
    async def broken_insert(order_id, lines):
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(orders, "_insert_items", broken_insert)
    login("buyer")

    resp = await client.post(
        "/api/user/orders/create",
        json={"items": [{"product_id": "p1", "quantity": 1, "price": 10}], "address": "addr"},
    )
    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "DATABASE_ERROR"
    assert (await client.get("/api/user/orders")).json()["data"]["total"] == 0


# ============================================================
# Favorites
# ============================================================


@pytest.mark.asyncio
async def test_favorites_add_is_idempotent(client, db, login):
    product_id = await _product(db)
    login("fan")

    first = await client.post("/api/user/favorites", json={"productId": product_id})
    assert first.status_code == 201
    again = await client.post("/api/user/favorites", json={"productId": product_id})
    assert again.status_code == 200
    assert again.json()["message"] == "已在收藏夹中"

    favorites = (await client.get("/api/user/favorites")).json()["data"]
    assert len(favorites) == 1
    assert favorites[0]["type"] == "product"
    assert favorites[0]["product"]["name"] == "靛蓝方巾"

    resp = await client.delete("/api/user/favorites", params={"productId": product_id})
    assert resp.status_code == 200
    assert (await client.get("/api/user/favorites")).json()["data"] == []
    assert (await client.delete("/api/user/favorites", params={"productId": product_id})).status_code == 404


@pytest.mark.asyncio
async def test_favorite_course_accepts_legacy_id(client, db, login):
    async with db() as session:
        session.add(Course(id="00000000-0000-0000-0000-000000000003", title="扎染入门", status="published"))
        await session.commit()
    login("fan")

    resp = await client.post("/api/user/favorites", json={"courseId": "3"})
    assert resp.status_code == 201
    assert resp.json()["data"]["target_id"] == "00000000-0000-0000-0000-000000000003"


@pytest.mark.asyncio
async def test_favorite_course_by_slug(client, db, login):
    course_id = "00000000-0000-0000-0000-000000000004"
    async with db() as session:
        session.add(Course(id=course_id, slug="indigo-basics", title="蓝染基础", status="published"))
        await session.commit()
    login("fan")

    assert (await client.get("/api/courses/indigo-basics")).status_code == 200
    resp = await client.post("/api/user/favorites", json={"courseId": "indigo-basics"})
    assert resp.status_code == 201
    assert resp.json()["data"]["target_id"] == course_id

    again = await client.post("/api/user/favorites", json={"courseId": course_id})
    assert again.status_code == 200

    favorites = (await client.get("/api/user/favorites")).json()["data"]
    assert favorites[0]["course"]["title"] == "蓝染基础"

    resp = await client.delete("/api/user/favorites", params={"courseId": "indigo-basics"})
    assert resp.status_code == 200
    assert (await client.get("/api/user/favorites")).json()["data"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"productId": "a", "articleId": "b"}])
async def test_favorite_needs_exactly_one_selector(client, login, body):
    login("fan")
    resp = await client.post("/api/user/favorites", json=body)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_favorite_unknown_target(client, login):
    login("fan")
    resp = await client.post("/api/user/favorites", json={"articleId": "missing"})
    assert resp.status_code == 404


# ============================================================
# Search
# ============================================================


@pytest.mark.asyncio
async def test_search_across_types(client, db):
    await _product(db, name="蓝染围巾", description="手工")
    async with db() as session:
        session.add(Course(title="蓝染基础课", status="published"))
        session.add(Course(title="蓝染草稿", status="draft"))
        session.add(Article(title="布依族蓝染", summary="文化"))
        await session.commit()

    data = (await client.get("/api/search", params={"q": "蓝染"})).json()["data"]
    assert data["total"] == 3
    assert sorted(r["type"] for r in data["results"]) == ["article", "course", "product"]

    data = (await client.get("/api/search", params={"q": "蓝染", "types": "videos"})).json()["data"]
    assert data["types"] == ["course"]
    assert [r["title"] for r in data["results"]] == ["蓝染基础课"]


@pytest.mark.asyncio
async def test_search_requires_query(client):
    resp = await client.get("/api/search", params={"q": "  "})
    assert resp.status_code == 400
