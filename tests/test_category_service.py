"""
Category service tests: slug derivation, uniqueness, deletion rules and
the recount that keeps ``post_count`` honest.
"""
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quill.errors import DuplicateName, HasPosts, NotFound, ValidationFailed
from quill.models import Category, Post, PostStatus, User
from quill.schemas import CategoryCreate, CategoryUpdate
from quill.services import category_service


async def _create_user(db: AsyncSession, username: str = "svcuser") -> User:
    user = User(username=username, email=f"{username}@example.com")
    db.add(user)
    await db.flush()
    return user


async def _raw_post(db: AsyncSession, author: User, category_id: int, status: PostStatus, n: int) -> Post:
    """Insert a post without going through post_service (no recount)."""
    post = Post(
        title=f"Raw {n}",
        slug=f"raw-{n}",
        content="Body",
        category_id=category_id,
        author_id=author.id,
        status=status.value,
    )
    db.add(post)
    await db.flush()
    return post


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------

def test_slugify_basic():
    assert category_service.slugify("Web Development") == "web-development"


def test_slugify_strips_punctuation_and_collapses_whitespace():
    assert category_service.slugify("  C++ &  Rust   Tips ") == "c-rust-tips"
    assert category_service.slugify("Hello, World!") == "hello-world"


def test_slugify_drops_existing_hyphens_and_non_ascii():
    assert category_service.slugify("Self-Care") == "selfcare"
    assert category_service.slugify("Café Culture") == "caf-culture"


def test_slugify_only_punctuation_is_empty():
    assert category_service.slugify("!!!") == ""


# ---------------------------------------------------------------------------
# create / update
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_category_defaults(db_session: AsyncSession):
    result = await category_service.create_category(db_session, CategoryCreate(name="Tech Talk"))
    assert result["slug"] == "tech-talk"
    assert result["color"] == "#3B82F6"
    assert result["post_count"] == 0
    assert result["description"] is None


@pytest.mark.asyncio
async def test_create_category_keeps_custom_color(db_session: AsyncSession):
    result = await category_service.create_category(
        db_session, CategoryCreate(name="Gaming", color="#8B5CF6", description="Games")
    )
    assert result["color"] == "#8B5CF6"
    assert result["description"] == "Games"


@pytest.mark.asyncio
async def test_create_category_duplicate_name(db_session: AsyncSession):
    await category_service.create_category(db_session, CategoryCreate(name="Business"))
    with pytest.raises(DuplicateName):
        await category_service.create_category(db_session, CategoryCreate(name="Business"))


@pytest.mark.asyncio
async def test_create_category_duplicate_slug(db_session: AsyncSession):
    """Different names that slugify identically still collide."""
    await category_service.create_category(db_session, CategoryCreate(name="Web Dev"))
    with pytest.raises(DuplicateName):
        await category_service.create_category(db_session, CategoryCreate(name="web  dev!"))


@pytest.mark.asyncio
async def test_create_category_unsluggable_name(db_session: AsyncSession):
    with pytest.raises(ValidationFailed) as excinfo:
        await category_service.create_category(db_session, CategoryCreate(name="???"))
    assert excinfo.value.errors[0]["field"] == "name"


@pytest.mark.asyncio
async def test_update_category_regenerates_slug(db_session: AsyncSession):
    created = await category_service.create_category(db_session, CategoryCreate(name="Old Name"))
    updated = await category_service.update_category(
        db_session, created["id"], CategoryUpdate(name="New Name")
    )
    assert updated["name"] == "New Name"
    assert updated["slug"] == "new-name"


@pytest.mark.asyncio
async def test_update_category_without_name_keeps_slug(db_session: AsyncSession):
    created = await category_service.create_category(db_session, CategoryCreate(name="Stable"))
    updated = await category_service.update_category(
        db_session, created["id"], CategoryUpdate(description="Now described", color="#000000")
    )
    assert updated["slug"] == "stable"
    assert updated["description"] == "Now described"
    assert updated["color"] == "#000000"


@pytest.mark.asyncio
async def test_update_category_collision(db_session: AsyncSession):
    await category_service.create_category(db_session, CategoryCreate(name="Taken"))
    other = await category_service.create_category(db_session, CategoryCreate(name="Free"))
    with pytest.raises(DuplicateName):
        await category_service.update_category(db_session, other["id"], CategoryUpdate(name="Taken"))


@pytest.mark.asyncio
async def test_update_category_same_name_is_not_a_collision(db_session: AsyncSession):
    created = await category_service.create_category(db_session, CategoryCreate(name="Same"))
    updated = await category_service.update_category(
        db_session, created["id"], CategoryUpdate(name="Same")
    )
    assert updated["slug"] == "same"


@pytest.mark.asyncio
async def test_update_missing_category(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await category_service.update_category(db_session, 999, CategoryUpdate(name="Ghost"))


@pytest.mark.asyncio
async def test_list_categories_sorted_by_name(db_session: AsyncSession):
    for name in ("Zeta", "Alpha", "Mid"):
        await category_service.create_category(db_session, CategoryCreate(name=name))
    names = [c["name"] for c in await category_service.list_categories(db_session)]
    assert names == ["Alpha", "Mid", "Zeta"]


# ---------------------------------------------------------------------------
# recompute_count
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_recompute_count_counts_only_published(db_session: AsyncSession):
    user = await _create_user(db_session)
    cat = await category_service.create_category(db_session, CategoryCreate(name="Count Me"))
    await _raw_post(db_session, user, cat["id"], PostStatus.PUBLISHED, 1)
    await _raw_post(db_session, user, cat["id"], PostStatus.PUBLISHED, 2)
    await _raw_post(db_session, user, cat["id"], PostStatus.DRAFT, 3)

    assert await category_service.recompute_count(db_session, cat["id"]) == 2
    assert (await category_service.get_category(db_session, cat["id"]))["post_count"] == 2


@pytest.mark.asyncio
async def test_recompute_count_heals_stale_value(db_session: AsyncSession):
    user = await _create_user(db_session)
    cat = await category_service.create_category(db_session, CategoryCreate(name="Drifted"))
    await _raw_post(db_session, user, cat["id"], PostStatus.PUBLISHED, 1)

    category = (await db_session.execute(select(Category).where(Category.id == cat["id"]))).scalar_one()
    category.post_count = 99
    await db_session.flush()

    assert await category_service.recompute_count(db_session, cat["id"]) == 1
    assert await category_service.recompute_count(db_session, cat["id"]) == 1
    assert category.post_count == 1


@pytest.mark.asyncio
async def test_recompute_count_missing_category(db_session: AsyncSession):
    assert await category_service.recompute_count(db_session, 12345) is None


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_empty_category(db_session: AsyncSession):
    cat = await category_service.create_category(db_session, CategoryCreate(name="Empty"))
    await category_service.delete_category(db_session, cat["id"])
    with pytest.raises(NotFound):
        await category_service.get_category(db_session, cat["id"])


@pytest.mark.asyncio
async def test_delete_category_with_published_posts(db_session: AsyncSession):
    user = await _create_user(db_session)
    cat = await category_service.create_category(db_session, CategoryCreate(name="Busy"))
    await _raw_post(db_session, user, cat["id"], PostStatus.PUBLISHED, 1)
    with pytest.raises(HasPosts):
        await category_service.delete_category(db_session, cat["id"])


@pytest.mark.asyncio
async def test_delete_category_with_only_drafts(db_session: AsyncSession):
    user = await _create_user(db_session)
    cat = await category_service.create_category(db_session, CategoryCreate(name="Drafty"))
    await _raw_post(db_session, user, cat["id"], PostStatus.DRAFT, 1)
    await category_service.delete_category(db_session, cat["id"])


@pytest.mark.asyncio
async def test_delete_missing_category(db_session: AsyncSession):
    with pytest.raises(NotFound):
        await category_service.delete_category(db_session, 999)
