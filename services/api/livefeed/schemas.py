"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Request models only check shape; length and format rules live in the feed
service so every caller gets the same `ValidationFailed` errors.
"""
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict


# ──────────────────────────── Auth / Users ────────────────────────────────

class SignupRequest(BaseModel):
    email: str
    name: str = ""
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user_id: str


class UserResponse(BaseModel):
    user_id: str
    email: str
    name: str
    status: str
    # ids of the user's posts, oldest first
    posts: list[str] = []


class StatusUpdate(BaseModel):
    status: str


class StatusResponse(BaseModel):
    status: str


# ──────────────────────────── Posts ───────────────────────────────────────

class PostInput(BaseModel):
    title: str = ""
    content: str = ""
    image_url: Optional[str] = None


class PostUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    # omitted (or the literal "undefined") keeps the current image
    image_url: Optional[str] = None


class CreatorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    name: str


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    post_id: str
    title: str
    content: str
    image_url: str
    creator: CreatorResponse
    created_at: datetime
    updated_at: datetime


class PostPage(BaseModel):
    posts: list[PostResponse]
    total_items: int


class MessageResponse(BaseModel):
    message: str


class ImageStored(BaseModel):
    message: str
    file_path: str


# ──────────────────────────── Events ──────────────────────────────────────

class PostEvent(BaseModel):
    """Broadcast after a committed mutation; `post` is the id for deletes."""

    action: Literal["create", "update", "delete"]
    post: Union[PostResponse, str]
