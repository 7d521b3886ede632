"""Seed the blog database with the default categories, an admin and sample posts."""
import argparse
import asyncio
import random
import time

from quill.database import Base, async_session, engine
from quill.models import PostStatus, UserRole
from quill.schemas import CategoryCreate, PostCreate, UserCreate
from quill.security import create_access_token
from quill.services import category_service, post_service, user_service

CATEGORIES = [
    ("Education", "Educational content, tutorials, and learning resources", "#10B981"),
    ("Technology", "Latest tech news, programming, and innovation", "#3B82F6"),
    ("Gaming", "Video games, gaming culture, and entertainment", "#8B5CF6"),
    ("Lifestyle", "Health, wellness, fashion, and daily life tips", "#F59E0B"),
    ("Business", "Entrepreneurship, finance, and career advice", "#EF4444"),
]

TAGS = ["python", "react", "fastapi", "career", "design", "testing", "indie", "finance"]


async def seed(posts_per_category: int, reset: bool) -> None:
    start = time.perf_counter()

    if reset:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        print("Recreated all tables")

    async with async_session() as session:
        admin = await user_service.create_user(
            session,
            UserCreate(username="admin", email="admin@example.com", display_name="Admin"),
            role=UserRole.ADMIN,
        )
        writer = await user_service.create_user(
            session,
            UserCreate(username="writer", email="writer@example.com", display_name="Writer"),
        )

        categories = []
        for name, description, color in CATEGORIES:
            categories.append(
                await category_service.create_category(
                    session, CategoryCreate(name=name, description=description, color=color)
                )
            )
        print(f"  Created {len(categories)} categories")

        # Posts go through post_service so every category count is recomputed.
        total = 0
        for category in categories:
            for i in range(posts_per_category):
                status = PostStatus.PUBLISHED if random.random() > 0.2 else PostStatus.DRAFT
                await post_service.create_post(
                    session,
                    random.choice([admin["id"], writer["id"]]),
                    PostCreate(
                        title=f"{category['name']} notes #{i + 1}",
                        content=f"Sample post {i + 1} about {category['name'].lower()}. " * 10,
                        category=category["id"],
                        tags=random.sample(TAGS, k=random.randint(1, 3)),
                        status=status,
                    ),
                )
                total += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {total}")
    print(f"  Admin token: {create_access_token({'sub': str(admin['id'])})}")
    print(f"  Writer token: {create_access_token({'sub': str(writer['id'])})}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--posts", type=int, default=5, help="Posts per category")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables first")
    args = parser.parse_args()
    asyncio.run(seed(posts_per_category=args.posts, reset=args.reset))


if __name__ == "__main__":
    main()
