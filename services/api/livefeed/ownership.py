"""
Keeps `users → user_posts` in step with `posts.creator_id`.

Creating or deleting a post touches two tables. Both writes go through the
functions here and are committed together, so a failure leaves neither side
behind. `check_ownership` / `repair_ownership` detect and fix divergence left
by anything that bypassed them (manual SQL, restored backups, old data).
"""
import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from livefeed.errors import Conflict, Internal
from livefeed.models import Post, User, UserPost, new_id

logger = logging.getLogger(__name__)


class OwnershipWriteFailed(Internal):
    """The paired post/reference write was rolled back as a whole."""

    def __init__(self, operation: str, user_id: str, post_id: str) -> None:
        super().__init__()
        self.operation = operation
        self.user_id = user_id
        self.post_id = post_id


async def create_post_for_user(db: AsyncSession, user: User, post: Post) -> Post:
    """Insert `post` and append it to `user`'s post list in one commit."""
    # ids are read up front: a rollback expires every loaded instance
    user_id = user.user_id
    post_id = post.post_id = post.post_id or new_id()
    post.creator = user
    try:
        db.add(post)
        await db.flush()       # materialise seq before the reference row
        db.add(UserPost(user_id=user_id, post_id=post_id))
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("create_post_for_user rolled back (user=%s)", user_id)
        raise OwnershipWriteFailed("create", user_id, post_id)
    return post


async def remove_post_from_user(db: AsyncSession, post: Post) -> None:
    """Delete `post` and its creator's reference to it in one commit."""
    user_id, post_id = post.creator_id, post.post_id
    try:
        await db.execute(delete(UserPost).where(UserPost.post_id == post_id))
        await db.delete(post)
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise Conflict("Post was changed by another request, try again.")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("remove_post_from_user rolled back (post=%s)", post_id)
        raise OwnershipWriteFailed("delete", user_id, post_id)


# ─────────────────────── Consistency check / repair ──────────────────────

@dataclass
class OwnershipReport:
    # (user_id, post_id) pairs: post exists but is absent from its creator's list
    missing: list[tuple[str, str]] = field(default_factory=list)
    # (user_id, post_id) pairs: list entry for a deleted post or someone else's post
    dangling: list[tuple[str, str]] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.missing and not self.dangling


async def check_ownership(db: AsyncSession) -> OwnershipReport:
    creators = dict((await db.execute(select(Post.post_id, Post.creator_id))).all())
    references = (await db.execute(select(UserPost.user_id, UserPost.post_id))).all()

    report = OwnershipReport()
    referenced = set()
    for user_id, post_id in references:
        if creators.get(post_id) != user_id:
            report.dangling.append((user_id, post_id))
        else:
            referenced.add(post_id)

    for post_id, creator_id in creators.items():
        if post_id not in referenced:
            report.missing.append((creator_id, post_id))
    return report


async def repair_ownership(db: AsyncSession) -> OwnershipReport:
    """Bring user_posts back in line with posts; returns what was fixed."""
    report = await check_ownership(db)
    if report.consistent:
        return report

    for user_id, post_id in report.dangling:
        await db.execute(
            delete(UserPost).where(
                UserPost.user_id == user_id, UserPost.post_id == post_id
            )
        )
    await db.flush()
    for user_id, post_id in report.missing:
        db.add(UserPost(user_id=user_id, post_id=post_id))
    await db.commit()

    logger.warning(
        "Repaired post ownership: %d missing, %d dangling references",
        len(report.missing), len(report.dangling),
    )
    return report
