"""
Public catalog endpoints: listing, filters, detail, search and categories.
"""
from decimal import Decimal

import pytest

from app.models import Category

pytestmark = pytest.mark.anyio


@pytest.fixture
async def catalog(db, make_product):
    shirts = Category(name="Shirts", slug="shirts")
    db.add(shirts)
    await db.commit()
    return {
        "cheap": await make_product(name="Basic Tee", price=Decimal("9.99"), categories=[shirts]),
        "pricey": await make_product(name="Silk Shirt", price=Decimal("89.00"), categories=[shirts], is_featured=True),
        "empty": await make_product(name="Rain Jacket", price=Decimal("45.00"), stock=0),
        "draft": await make_product(name="Secret Tee", status="draft"),
        "hidden": await make_product(name="Hidden Tee", is_published=False),
        "shirts": shirts,
    }


async def test_list_shows_only_active_published(client, catalog):
    response = await client.get("/api/products/")
    assert response.status_code == 200
    body = response.json()
    names = {p["name"] for p in body["data"]}
    assert names == {"Basic Tee", "Silk Shirt", "Rain Jacket"}
    assert body["pagination"] == {"current": 1, "pages": 1, "total": 3}


async def test_list_pagination_and_sorting(client, catalog):
    response = await client.get("/api/products/", params={"limit": 2, "page": 2, "sort": "price", "order": "asc"})
    body = response.json()
    assert [p["name"] for p in body["data"]] == ["Silk Shirt"]
    assert body["pagination"] == {"current": 2, "pages": 2, "total": 3}


@pytest.mark.parametrize("params,expected", [
    ({"category": "shirts"}, {"Basic Tee", "Silk Shirt"}),
    ({"category": "no-such-category"}, {"Basic Tee", "Silk Shirt", "Rain Jacket"}),
    ({"minPrice": 10, "maxPrice": 50}, {"Rain Jacket"}),
    ({"featured": "true"}, {"Silk Shirt"}),
    ({"inStock": "true"}, {"Basic Tee", "Silk Shirt"}),
    ({"search": "tee"}, {"Basic Tee"}),
    ({"search": "shirt", "inStock": "true"}, {"Silk Shirt"}),
    ({"status": "draft"}, {"Secret Tee"}),
])
async def test_list_filters(client, catalog, params, expected):
    response = await client.get("/api/products/", params=params)
    assert response.status_code == 200
    assert {p["name"] for p in response.json()["data"]} == expected


async def test_invalid_sort_is_a_validation_error(client, catalog):
    response = await client.get("/api/products/", params={"sort": "password"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_featured(client, catalog):
    response = await client.get("/api/products/featured")
    assert [p["name"] for p in response.json()["data"]] == ["Silk Shirt"]


async def test_search_endpoint(client, catalog):
    response = await client.get("/api/products/search/TEE")
    data = response.json()["data"]
    assert [p["name"] for p in data] == ["Basic Tee"]
    assert data[0]["price"] == 9.99


async def test_detail_counts_views(client, catalog):
    slug = catalog["cheap"].slug
    first = await client.get(f"/api/products/{slug}")
    second = await client.get(f"/api/products/{slug}")
    assert first.status_code == 200
    assert first.json()["data"]["views"] == 1
    assert second.json()["data"]["views"] == 2
    assert first.json()["data"]["categories"][0]["slug"] == "shirts"


async def test_unknown_slug_is_404(client):
    response = await client.get("/api/products/does-not-exist")
    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_admin_creates_product_with_generated_slug_and_sku(client, admin, auth_headers, catalog):
    response = await client.post(
        "/api/products/",
        json={
            "name": "Linen Shirt!",
            "description": "Breathable",
            "price": "30.00",
            "stock": 5,
            "categories": [catalog["shirts"].id],
            "status": "active",
            "is_published": True,
        },
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["slug"] == "linen-shirt"
    assert data["sku"].startswith("SKU-")
    assert data["price"] == 30.0
    assert [c["name"] for c in data["categories"]] == ["Shirts"]

    duplicate = await client.post(
        "/api/products/",
        json={"name": "Linen Shirt", "description": "Again", "price": "31.00"},
        headers=auth_headers(admin),
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["error"]["details"]["field"] == "slug"


async def test_admin_archives_product(client, admin, auth_headers, catalog):
    product = catalog["cheap"]
    response = await client.delete(f"/api/products/{product.id}", headers=auth_headers(admin))
    assert response.status_code == 200

    listing = await client.get("/api/products/")
    assert "Basic Tee" not in {p["name"] for p in listing.json()["data"]}


async def test_categories(client, admin, auth_headers, catalog):
    created = await client.post(
        "/api/categories/",
        json={"name": "Polo Shirts", "parent_id": catalog["shirts"].id},
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    polo = created.json()["data"]
    assert polo["slug"] == "polo-shirts"
    assert polo["parent"]["slug"] == "shirts"

    # a category cannot be moved under its own child
    cycle = await client.put(
        f"/api/categories/{catalog['shirts'].id}",
        json={"parent_id": polo["id"]},
        headers=auth_headers(admin),
    )
    assert cycle.status_code == 400

    listing = await client.get("/api/categories/")
    assert {c["slug"] for c in listing.json()["data"]} == {"shirts", "polo-shirts"}

    deleted = await client.delete(f"/api/categories/{polo['id']}", headers=auth_headers(admin))
    assert deleted.status_code == 200
    assert (await client.get("/api/categories/polo-shirts")).status_code == 404


async def test_reviews_over_http(client, customer, auth_headers, catalog):
    product = catalog["pricey"]
    created = await client.post(
        f"/api/products/{product.id}/reviews",
        json={"rating": 4, "title": "Nice", "comment": "Fits well"},
        headers=auth_headers(customer),
    )
    assert created.status_code == 201
    assert created.json()["data"]["user"]["first_name"] == "Ana"

    listing = await client.get(f"/api/products/{product.id}/reviews")
    assert listing.json()["count"] == 1

    detail = await client.get(f"/api/products/{product.slug}")
    assert detail.json()["data"]["average_rating"] == 4.0
    assert detail.json()["data"]["reviews_count"] == 1

    bad = await client.post(
        f"/api/products/{product.id}/reviews",
        json={"rating": 6, "comment": "Too good"},
        headers=auth_headers(customer),
    )
    assert bad.status_code == 400
