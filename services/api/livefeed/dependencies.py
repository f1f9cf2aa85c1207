"""FastAPI dependencies shared by the routers."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from livefeed.database import get_db
from livefeed.feed_service import FeedService


async def get_feed_service(
    request: Request, db: AsyncSession = Depends(get_db)
) -> FeedService:
    state = request.app.state
    return FeedService(
        db,
        hub=state.hub,
        images=state.images,
        tokens=state.tokens,
        bcrypt_rounds=state.settings.bcrypt_rounds,
        posts_per_page=state.settings.posts_per_page,
    )
