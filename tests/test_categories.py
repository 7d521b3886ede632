"""
Category endpoint tests: admin-only mutations, slug handling, duplicate
names, and the delete rule that a category must be empty first.
"""
import pytest
from httpx import AsyncClient


async def _publish(client: AsyncClient, user: dict, category_id: int, title: str) -> dict:
    resp = await client.post(
        "/api/v1/posts",
        json={"title": title, "content": "Body", "category": category_id, "status": "published"},
        headers=user["headers"],
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_list_categories_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/categories")
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_admin_creates_category(async_client: AsyncClient, admin: dict):
    resp = await async_client.post(
        "/api/v1/categories",
        json={"name": "  Life & Style ", "description": "Daily tips", "color": "#F59E0B"},
        headers=admin["headers"],
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Life & Style"
    assert data["slug"] == "life-style"
    assert data["color"] == "#F59E0B"
    assert data["post_count"] == 0


@pytest.mark.asyncio
async def test_non_admin_cannot_mutate_categories(async_client: AsyncClient, admin: dict, author: dict):
    resp = await async_client.post("/api/v1/categories", json={"name": "Sneaky"}, headers=author["headers"])
    assert resp.status_code == 403
    assert resp.json()["message"] == "Admin access required"

    created = await async_client.post("/api/v1/categories", json={"name": "Real"}, headers=admin["headers"])
    cat_id = created.json()["id"]
    assert (await async_client.put(
        f"/api/v1/categories/{cat_id}", json={"name": "Renamed"}, headers=author["headers"]
    )).status_code == 403
    assert (await async_client.delete(f"/api/v1/categories/{cat_id}", headers=author["headers"])).status_code == 403


@pytest.mark.asyncio
async def test_anonymous_cannot_create_category(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/categories", json={"name": "Anon"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_duplicate_category_returns_409(async_client: AsyncClient, admin: dict):
    await async_client.post("/api/v1/categories", json={"name": "Gaming"}, headers=admin["headers"])
    resp = await async_client.post("/api/v1/categories", json={"name": "Gaming"}, headers=admin["headers"])
    assert resp.status_code == 409
    assert resp.json()["message"] == "Category with this name already exists"


@pytest.mark.asyncio
async def test_invalid_color_rejected(async_client: AsyncClient, admin: dict):
    resp = await async_client.post(
        "/api/v1/categories", json={"name": "Colorful", "color": "blue"}, headers=admin["headers"]
    )
    assert resp.status_code == 422
    assert resp.json()["errors"][0]["field"] == "color"


@pytest.mark.asyncio
async def test_rename_category_updates_slug(async_client: AsyncClient, admin: dict):
    created = (await async_client.post(
        "/api/v1/categories", json={"name": "Biz"}, headers=admin["headers"]
    )).json()
    resp = await async_client.put(
        f"/api/v1/categories/{created['id']}", json={"name": "Business News"}, headers=admin["headers"]
    )
    assert resp.status_code == 200
    assert resp.json()["slug"] == "business-news"


@pytest.mark.asyncio
async def test_get_missing_category(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/categories/4040")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Category not found"}


@pytest.mark.asyncio
async def test_delete_blocked_until_empty(async_client: AsyncClient, admin: dict, author: dict):
    cat_id = (await async_client.post(
        "/api/v1/categories", json={"name": "Tech"}, headers=admin["headers"]
    )).json()["id"]
    first = await _publish(async_client, author, cat_id, "Kernel Notes")
    second = await _publish(async_client, author, cat_id, "Compiler Notes")

    resp = await async_client.delete(f"/api/v1/categories/{cat_id}", headers=admin["headers"])
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot delete category with existing posts"

    # Unpublish one, delete the other.
    await async_client.put(f"/api/v1/posts/{first['id']}", json={"status": "draft"}, headers=author["headers"])
    assert (await async_client.get(f"/api/v1/categories/{cat_id}")).json()["post_count"] == 1
    await async_client.delete(f"/api/v1/posts/{second['id']}", headers=author["headers"])
    assert (await async_client.get(f"/api/v1/categories/{cat_id}")).json()["post_count"] == 0

    resp = await async_client.delete(f"/api/v1/categories/{cat_id}", headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json() == {"message": "Category deleted successfully"}
    assert (await async_client.get(f"/api/v1/categories/{cat_id}")).status_code == 404


@pytest.mark.asyncio
async def test_failed_delete_rolls_back(async_client: AsyncClient, admin: dict, author: dict):
    """A blocked delete leaves the category and its count exactly as they were."""
    cat_id = (await async_client.post(
        "/api/v1/categories", json={"name": "Sticky"}, headers=admin["headers"]
    )).json()["id"]
    await _publish(async_client, author, cat_id, "Anchor")

    await async_client.delete(f"/api/v1/categories/{cat_id}", headers=admin["headers"])
    resp = await async_client.get(f"/api/v1/categories/{cat_id}")
    assert resp.status_code == 200
    assert resp.json()["post_count"] == 1
