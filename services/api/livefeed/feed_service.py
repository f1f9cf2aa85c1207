"""
Feed service — every user-facing operation of the API.

Each call receives the caller's `Identity` explicitly and, in order:

  1. rejects anonymous callers (except signup / login)
  2. checks that referenced records exist and the caller owns them
  3. validates input
  4. commits the change (post + ownership reference together)
  5. publishes the `{action, post}` event to the broadcast hub

Publishing happens only after a successful commit, so observers never hear
about a mutation that did not persist. Storage faults are logged and
surfaced as `Internal`; stale optimistic versions become `Conflict`.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from opentelemetry import trace
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from livefeed.auth import (
    Authenticated,
    Identity,
    TokenService,
    hash_password,
    verify_password,
)
from livefeed.broadcast import BroadcastHub
from livefeed.clients.image_store import ImageStore, UnsupportedImage
from livefeed.errors import (
    Conflict,
    FeedError,
    Forbidden,
    Internal,
    NotFound,
    Unauthenticated,
    Unauthorized,
    ValidationFailed,
    field_error,
)
from livefeed.models import Post, User, utcnow
from livefeed.ownership import create_post_for_user, remove_post_from_user
from livefeed.schemas import (
    LoginResponse,
    PostEvent,
    PostInput,
    PostPage,
    PostResponse,
    PostUpdate,
    UserResponse,
)
from livefeed.stores import PostStore, UserStore
from livefeed.telemetry import LOGINS_TOTAL, POST_MUTATIONS_TOTAL, SIGNUPS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MIN_TEXT_LENGTH = 5
MIN_PASSWORD_LENGTH = 5
# Sent by older clients when the image input was left untouched
KEEP_IMAGE_MARKERS = ("", "undefined")


def _too_short(value: Optional[str], minimum: int = MIN_TEXT_LENGTH) -> bool:
    return value is None or len(value.strip()) < minimum


def _post_text_errors(title: Optional[str], content: Optional[str]) -> list[dict]:
    errors = []
    if title is not None and _too_short(title):
        errors.append(field_error("title", "Title must be 5 characters or more."))
    if content is not None and _too_short(content):
        errors.append(field_error("content", "Content must be at least 5 characters long."))
    return errors


class FeedService:
    def __init__(
        self,
        db: AsyncSession,
        hub: BroadcastHub,
        images: ImageStore,
        tokens: TokenService,
        bcrypt_rounds: int = 12,
        posts_per_page: int = 2,
    ) -> None:
        self.db = db
        self.hub = hub
        self.images = images
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds
        self.posts_per_page = posts_per_page
        self.users = UserStore(db)
        self.posts = PostStore(db)

    # ─────────────────────── helpers ─────────────────────────────────────

    @asynccontextmanager
    async def _operation(self, name: str, identity: Optional[Identity] = None):
        with tracer.start_as_current_span(name) as span:
            if isinstance(identity, Authenticated):
                span.set_attribute("user.id", identity.user_id)
            try:
                yield span
            except FeedError:
                raise
            except StaleDataError:
                await self.db.rollback()
                raise Conflict("Post was changed by another request, try again.")
            except SQLAlchemyError:
                await self.db.rollback()
                logger.exception("%s failed on a storage error", name)
                raise Internal()

    @staticmethod
    def _require_user(identity: Identity) -> str:
        if not isinstance(identity, Authenticated):
            raise Unauthenticated()
        return identity.user_id

    async def _current_user(self, identity: Identity) -> User:
        user = await self.users.get(self._require_user(identity))
        if user is None:
            raise NotFound("User not found!")
        return user

    async def _owned_post(self, identity: Identity, post_id: str) -> Post:
        user_id = self._require_user(identity)
        post = await self.posts.get(post_id)
        if post is None:
            raise NotFound("Post not found.")
        if post.creator_id != user_id:
            raise Forbidden()
        return post

    async def _release_if_unused(self, path: str) -> None:
        # images are shared by path; only the last reference frees the file
        if await self.posts.image_in_use(path):
            logger.debug("Keeping image %s, still referenced by a post", path)
            return
        self.images.release(path)

    async def _publish(self, action: str, post: PostResponse | str) -> None:
        event = PostEvent(action=action, post=post)
        delivered = await self.hub.publish(event.model_dump(mode="json"))
        logger.debug("Broadcast %s event to %d observers", action, delivered)

    # ─────────────────────── accounts ────────────────────────────────────

    async def signup(self, email: str, name: str, password: str) -> UserResponse:
        async with self._operation("signup"):
            email = (email or "").strip()
            errors = []
            try:
                validate_email(email, check_deliverability=False)
            except EmailNotValidError:
                errors.append(field_error("email", "Email is invalid."))
            if _too_short(password, MIN_PASSWORD_LENGTH):
                errors.append(
                    field_error("password", "Password must be at least 5 characters.")
                )
            if errors:
                raise ValidationFailed(data=errors)

            if await self.users.get_by_email(email) is not None:
                raise Conflict("User already exists!")

            user = User(
                email=email,
                name=(name or "").strip(),
                password=await hash_password(password, self.bcrypt_rounds),
            )
            self.users.add(user)
            try:
                await self.db.commit()
            except IntegrityError:
                # lost a race with a concurrent signup for the same email
                await self.db.rollback()
                raise Conflict("User already exists!")

            SIGNUPS_TOTAL.inc()
            logger.info("Created user %s", user.user_id)
            return UserResponse(
                user_id=user.user_id,
                email=user.email,
                name=user.name,
                status=user.status,
                posts=[],
            )

    async def login(self, email: str, password: str) -> LoginResponse:
        async with self._operation("login"):
            user = await self.users.get_by_email((email or "").strip())
            if user is None:
                LOGINS_TOTAL.labels(outcome="unknown_user").inc()
                raise NotFound("User not found!")
            if not await verify_password(password or "", user.password):
                LOGINS_TOTAL.labels(outcome="bad_password").inc()
                raise Unauthorized()

            token = self.tokens.issue({"userId": user.user_id, "email": user.email})
            LOGINS_TOTAL.labels(outcome="success").inc()
            return LoginResponse(token=token, user_id=user.user_id)

    async def get_user(self, identity: Identity) -> UserResponse:
        async with self._operation("get_user", identity):
            user = await self._current_user(identity)
            return UserResponse(
                user_id=user.user_id,
                email=user.email,
                name=user.name,
                status=user.status,
                posts=await self.users.post_ids(user.user_id),
            )

    async def get_status(self, identity: Identity) -> str:
        async with self._operation("get_status", identity):
            return (await self._current_user(identity)).status

    async def update_status(self, identity: Identity, status: str) -> str:
        async with self._operation("update_status", identity):
            user = await self._current_user(identity)
            user.status = status
            await self.db.commit()
            return user.status

    # ─────────────────────── posts ───────────────────────────────────────

    async def list_posts(
        self, identity: Identity, page: Optional[int] = None, public: bool = False
    ) -> PostPage:
        async with self._operation("list_posts", identity) as span:
            if not public:
                self._require_user(identity)
            page = 1 if page is None else page
            if page < 1:
                raise ValidationFailed(data=[field_error("page", "Page must be 1 or greater.")])

            total = await self.posts.count()
            posts = await self.posts.page(page, self.posts_per_page)
            span.set_attribute("feed.page", page)
            span.set_attribute("feed.total_items", total)
            return PostPage(
                posts=[PostResponse.model_validate(p) for p in posts],
                total_items=total,
            )

    async def get_post(self, identity: Identity, post_id: str) -> PostResponse:
        async with self._operation("get_post", identity):
            self._require_user(identity)
            post = await self.posts.get(post_id)
            if post is None:
                raise NotFound("Post not found.")
            return PostResponse.model_validate(post)

    async def create_post(self, identity: Identity, data: PostInput) -> PostResponse:
        async with self._operation("create_post", identity) as span:
            self._require_user(identity)

            errors = _post_text_errors(data.title, data.content)
            if not data.image_url or data.image_url in KEEP_IMAGE_MARKERS:
                errors.append(field_error("image_url", "No image provided."))
            if errors:
                raise ValidationFailed(data=errors)

            user = await self._current_user(identity)
            post = Post(
                title=data.title.strip(),
                content=data.content.strip(),
                image_url=data.image_url,
            )
            await create_post_for_user(self.db, user, post)
            span.set_attribute("post.id", post.post_id)

            response = PostResponse.model_validate(post)
            POST_MUTATIONS_TOTAL.labels(action="create").inc()
            logger.info("Post created: %s by user %s", post.post_id, post.creator_id)
            await self._publish("create", response)
            return response

    async def update_post(
        self, identity: Identity, post_id: str, data: PostUpdate
    ) -> PostResponse:
        async with self._operation("update_post", identity) as span:
            span.set_attribute("post.id", post_id)
            post = await self._owned_post(identity, post_id)

            errors = _post_text_errors(data.title, data.content)
            if errors:
                raise ValidationFailed(data=errors)

            old_image = post.image_url
            if data.title is not None:
                post.title = data.title.strip()
            if data.content is not None:
                post.content = data.content.strip()
            if data.image_url is not None and data.image_url not in KEEP_IMAGE_MARKERS:
                post.image_url = data.image_url
            post.updated_at = utcnow()
            await self.db.commit()

            if post.image_url != old_image:
                await self._release_if_unused(old_image)

            response = PostResponse.model_validate(post)
            POST_MUTATIONS_TOTAL.labels(action="update").inc()
            logger.info("Post updated: %s", post_id)
            await self._publish("update", response)
            return response

    async def delete_post(self, identity: Identity, post_id: str) -> None:
        async with self._operation("delete_post", identity) as span:
            span.set_attribute("post.id", post_id)
            post = await self._owned_post(identity, post_id)
            image = post.image_url

            await remove_post_from_user(self.db, post)
            await self._release_if_unused(image)

            POST_MUTATIONS_TOTAL.labels(action="delete").inc()
            logger.info("Post deleted: %s", post_id)
            await self._publish("delete", post_id)

    # ─────────────────────── images ──────────────────────────────────────

    async def store_image(
        self,
        identity: Identity,
        data: Optional[bytes],
        filename: str,
        content_type: Optional[str],
        old_path: Optional[str] = None,
    ) -> Optional[str]:
        """Save an uploaded image; returns its path, or None if nothing was sent.

        `old_path` names an image the client no longer needs. It is released
        unless a post still points at it (the post's own update releases it).
        """
        async with self._operation("store_image", identity):
            self._require_user(identity)
            if data is None:
                return None

            try:
                path = self.images.save(data, filename, content_type)
            except UnsupportedImage as exc:
                raise ValidationFailed(str(exc), data=[field_error("image", str(exc))])

            if old_path:
                await self._release_if_unused(old_path)
            return path
