"""
Image upload endpoint:
  PUT /post-image — store one jpeg/jpg/png attachment (field `image`) and
                    return its path for a following create/update call.
                    `old_path` optionally releases a replaced image.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse

from livefeed.auth import Identity, get_identity
from livefeed.dependencies import get_feed_service
from livefeed.errors import Unauthenticated, ValidationFailed
from livefeed.feed_service import FeedService
from livefeed.schemas import ImageStored, MessageResponse
from livefeed.telemetry import IMAGE_UPLOADS_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put(
    "/post-image",
    status_code=status.HTTP_201_CREATED,
    responses={200: {"model": MessageResponse}, 201: {"model": ImageStored}},
)
async def upload_image(
    image: Optional[UploadFile] = File(None),
    old_path: Optional[str] = Form(None),
    identity: Identity = Depends(get_identity),
    service: FeedService = Depends(get_feed_service),
):
    # refuse before pulling the upload into memory
    if not identity.authenticated:
        raise Unauthenticated()
    data = await image.read() if image is not None else None
    try:
        path = await service.store_image(
            identity,
            data,
            filename=image.filename if image is not None else "",
            content_type=image.content_type if image is not None else None,
            old_path=old_path,
        )
    except ValidationFailed:
        IMAGE_UPLOADS_TOTAL.labels(outcome="rejected").inc()
        raise

    if path is None:
        IMAGE_UPLOADS_TOTAL.labels(outcome="empty").inc()
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=MessageResponse(message="No file provided").model_dump(),
        )

    IMAGE_UPLOADS_TOTAL.labels(outcome="stored").inc()
    logger.info("Stored image %s", path)
    return ImageStored(message="File stored", file_path=path)
