"""
Thin data-access helpers over one AsyncSession.

  UserStore — user records and each user's ordered post references
  PostStore — post records and the newest-first page query

Neither store commits; the feed service and livefeed.ownership decide when a
unit of work is complete.
"""
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from livefeed.models import Post, User, UserPost


class UserStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    def add(self, user: User) -> None:
        self.db.add(user)

    async def post_ids(self, user_id: str) -> list[str]:
        """The user's post references in the order they were added."""
        rows = await self.db.execute(
            select(UserPost.post_id)
            .where(UserPost.user_id == user_id)
            .order_by(UserPost.seq)
        )
        return list(rows.scalars().all())


class PostStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, post_id: str) -> Optional[Post]:
        result = await self.db.execute(select(Post).where(Post.post_id == post_id))
        return result.scalar_one_or_none()

    async def count(self) -> int:
        return await self.db.scalar(select(func.count()).select_from(Post)) or 0

    async def image_in_use(self, image_url: str) -> bool:
        found = await self.db.scalar(
            select(Post.seq).where(Post.image_url == image_url).limit(1)
        )
        return found is not None

    async def page(self, page: int, per_page: int) -> list[Post]:
        """Newest first; equal timestamps keep insertion order."""
        rows = await self.db.execute(
            select(Post)
            .order_by(Post.created_at.desc(), Post.seq.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return list(rows.scalars().all())
