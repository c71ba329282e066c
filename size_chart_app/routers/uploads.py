from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from size_chart_app.deps import get_media_storage
from size_chart_app.errors import InternalError, ValidationError
from size_chart_app.media_storage import (
    InvalidImageTypeError,
    MediaStorage,
    MediaStorageConfigurationError,
    MediaStorageError,
)
from size_chart_app.security import ShopContext, require_shop_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["uploads"])


@router.post("/upload-image")
async def upload_image(
    image: UploadFile | None = File(default=None),
    auth: ShopContext = Depends(require_shop_session),
    media_storage: MediaStorage = Depends(get_media_storage),
) -> dict:
    if image is None:
        raise ValidationError("No image file provided")

    data = await image.read()
    try:
        key = media_storage.upload_image(
            data=data,
            filename=image.filename or "image.jpg",
            content_type=image.content_type,
        )
    except InvalidImageTypeError as exc:
        raise ValidationError(str(exc)) from exc
    except (MediaStorageError, MediaStorageConfigurationError) as exc:
        logger.exception("Image upload failed", extra={"shop": auth.shop})
        raise InternalError(str(exc)) from exc

    logger.info("Uploaded image", extra={"shop": auth.shop, "key": key})
    return {"success": True, "s3Key": key, "s3Url": media_storage.public_url(key)}
