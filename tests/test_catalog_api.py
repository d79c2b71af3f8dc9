from decimal import Decimal

from storefront.constants.product_status import DRAFT, OUT_OF_STOCK, PUBLISHED

from conftest import auth_headers


def _create_category(client, admin, name, **extra):
    return client.post("/admin/categories/", json={"name": name, **extra}, headers=auth_headers(admin))


def _create_product(client, admin, **fields):
    data = {"name": "Lamp", "description": "Desk lamp", "price": "24.50", "stock": 3, "status": PUBLISHED}
    data.update(fields)
    return client.post("/admin/products", json=data, headers=auth_headers(admin))


def test_category_slug_and_uniqueness(client, admin):
    response = _create_category(client, admin, "  Home & Garden ")

    assert response.status_code == 201
    assert response.json()["name"] == "Home & Garden"
    assert response.json()["slug"] == "home-garden"
    assert _create_category(client, admin, "Home & Garden").status_code == 400

    assert client.get("/categories/home-garden").status_code == 200
    assert client.get("/categories/nope").status_code == 404


def test_category_tree_rules(client, admin):
    parent_id = _create_category(client, admin, "Furniture").json()["id"]
    child = _create_category(client, admin, "Chairs", parent_id=parent_id)
    assert child.status_code == 201

    assert _create_category(client, admin, "Orphans", parent_id=999).status_code == 404
    response = client.put(
        f"/admin/categories/{parent_id}", json={"parent_id": parent_id}, headers=auth_headers(admin)
    )
    assert response.status_code == 400
    # still has a sub-category
    assert client.delete(f"/admin/categories/{parent_id}", headers=auth_headers(admin)).status_code == 400


def test_category_with_products_cannot_be_deleted(client, admin):
    category_id = _create_category(client, admin, "Lighting").json()["id"]
    _create_product(client, admin, category_id=category_id)

    assert client.delete(f"/admin/categories/{category_id}", headers=auth_headers(admin)).status_code == 400


def test_inactive_categories_are_hidden(client, admin):
    _create_category(client, admin, "Visible", sort_order=2)
    _create_category(client, admin, "Hidden", is_active=False)
    _create_category(client, admin, "First", sort_order=1)

    names = [category["name"] for category in client.get("/categories").json()]

    assert names == ["First", "Visible"]


def test_product_status_follows_stock(client, admin):
    response = _create_product(client, admin, stock=0)
    assert response.status_code == 201
    product = response.json()
    assert product["status"] == OUT_OF_STOCK
    assert product["in_stock"] is False

    response = client.patch(
        f"/admin/products/{product['id']}/stock", json={"stock": 4}, headers=auth_headers(admin)
    )
    assert response.json()["status"] == PUBLISHED
    assert response.json()["low_stock"] is True

    response = client.put(
        f"/admin/products/{product['id']}", json={"status": DRAFT}, headers=auth_headers(admin)
    )
    assert response.json()["status"] == DRAFT


def test_public_catalog_hides_drafts(client, admin):
    draft_id = _create_product(client, admin, name="Prototype", status=DRAFT).json()["id"]
    _create_product(client, admin, name="Lamp", price="24.50")
    _create_product(client, admin, name="Sold out lamp", price="10.00", stock=0)

    listing = client.get("/products", params={"sort": "price_asc"}).json()
    assert listing["total_items"] == 2
    assert [item["name"] for item in listing["results"]] == ["Sold out lamp", "Lamp"]
    assert Decimal(str(listing["results"][1]["price"])) == Decimal("24.50")

    assert client.get(f"/products/{draft_id}").status_code == 404

    search = client.get("/products", params={"search": "SOLD"}).json()
    assert [item["name"] for item in search["results"]] == ["Sold out lamp"]

    cheap = client.get("/products", params={"max_price": "15"}).json()
    assert cheap["total_items"] == 1


def test_products_by_category(client, admin):
    category_id = _create_category(client, admin, "Lighting").json()["id"]
    _create_product(client, admin, name="Lamp", category_id=category_id)
    _create_product(client, admin, name="Rug")

    listing = client.get("/products", params={"category": "lighting"}).json()

    assert [item["name"] for item in listing["results"]] == ["Lamp"]


def test_product_needs_existing_category(client, admin):
    assert _create_product(client, admin, category_id=42).status_code == 404


def test_delete_product(client, admin, user):
    product_id = _create_product(client, admin).json()["id"]
    client.post("/cart/add", json={"product_id": product_id, "quantity": 1}, headers=auth_headers(user))

    assert client.delete(f"/admin/products/{product_id}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"/products/{product_id}").status_code == 404
    assert client.get("/cart/", headers=auth_headers(user)).json()["items"] == []


def test_catalog_admin_requires_admin(client, user):
    assert _create_category(client, user, "Nope").status_code == 403
    assert _create_product(client, user).status_code == 403
    assert client.get("/admin/products").status_code == 401


def test_health(client):
    response = client.get("/health/check")

    assert response.status_code == 200
    assert response.json()["database"] == "ok"
