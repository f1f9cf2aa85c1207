"""
SQLAlchemy ORM models.

Tables:
  users      — accounts: email, bcrypt hash, display name, status
  posts      — feed posts (image bytes live in the image store)
  user_posts — ordered user → authored-post references

`user_posts` must always mirror `posts.creator_id`: a row exists for a
(user, post) pair exactly when that user created that post. Only the domain
operations in livefeed.ownership write to it.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from livefeed.database import Base

DEFAULT_STATUS = "I am new!"

# MySQL DATETIME defaults to whole seconds
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

_last_timestamp: datetime | None = None


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp that never goes backwards within this process."""
    global _last_timestamp
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    if _last_timestamp is not None and now < _last_timestamp:
        now = _last_timestamp
    _last_timestamp = now
    return now


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    password: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_STATUS)
    created_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, nullable=False
    )


class Post(Base):
    __tablename__ = "posts"

    # Insertion sequence: breaks ties between identical created_at values
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, default=new_id
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Path (local store) or object key (MinIO) of the post image
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    creator_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    creator = relationship("User", lazy="joined")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_posts_creator", "creator_id"),
        Index("idx_posts_created", "created_at"),
    )


class UserPost(Base):
    __tablename__ = "user_posts"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), unique=True, nullable=False
    )

    __table_args__ = (Index("idx_user_posts_user", "user_id"),)
