"""
Post endpoints:
  GET    /posts?page=n — newest-first page plus total count
  POST   /posts        — create a post (image uploaded beforehand)
  GET    /posts/{id}   — fetch a single post
  PUT    /posts/{id}   — edit a post (creator only)
  DELETE /posts/{id}   — delete a post and its image (creator only)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from livefeed.auth import Identity, get_identity
from livefeed.dependencies import get_feed_service
from livefeed.feed_service import FeedService
from livefeed.schemas import MessageResponse, PostInput, PostPage, PostResponse, PostUpdate

router = APIRouter()


@router.get("", response_model=PostPage)
async def list_posts(
    request: Request,
    page: Optional[int] = Query(None, description="1-based page number"),
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    public = request.app.state.settings.public_post_listing
    return await service.list_posts(identity, page, public=public)


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostInput,
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    return await service.create_post(identity, body)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    return await service.get_post(identity, post_id)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    body: PostUpdate,
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    return await service.update_post(identity, post_id, body)


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    await service.delete_post(identity, post_id)
    return MessageResponse(message="Post deleted successfully!")
