"""
Current-user endpoints:
  GET   /users/me        — profile plus ordered post ids
  GET   /users/me/status — status text
  PATCH /users/me/status — replace status text
"""
from fastapi import APIRouter, Depends

from livefeed.auth import Identity, get_identity
from livefeed.dependencies import get_feed_service
from livefeed.feed_service import FeedService
from livefeed.schemas import StatusResponse, StatusUpdate, UserResponse

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    return await service.get_user(identity)


@router.get("/me/status", response_model=StatusResponse)
async def get_status(
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    return StatusResponse(status=await service.get_status(identity))


@router.patch("/me/status", response_model=StatusResponse)
async def update_status(
    body: StatusUpdate,
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    return StatusResponse(status=await service.update_status(identity, body.status))
