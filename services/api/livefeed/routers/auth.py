"""
Account endpoints:
  PUT  /auth/signup — register with email, name and password
  POST /auth/login  — exchange credentials for a bearer token (1h)
"""
from fastapi import APIRouter, Depends, status

from livefeed.dependencies import get_feed_service
from livefeed.feed_service import FeedService
from livefeed.schemas import LoginRequest, LoginResponse, SignupRequest, UserResponse

router = APIRouter()


@router.put("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, service: FeedService = Depends(get_feed_service)):
    return await service.signup(body.email, body.name, body.password)


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, service: FeedService = Depends(get_feed_service)):
    return await service.login(body.email, body.password)
