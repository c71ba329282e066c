from __future__ import annotations

import copy
import logging
from typing import Any, Mapping

from starlette.datastructures import UploadFile

from size_chart_app.errors import InternalError, ValidationError
from size_chart_app.media_storage import (
    InvalidImageTypeError,
    MediaStorage,
    MediaStorageConfigurationError,
    MediaStorageError,
)

logger = logging.getLogger(__name__)

MEASUREMENT_FILE_FIELD = "measurementFile"
GUIDE_IMAGE_FIELD_PREFIX = "guideImage_"


def _is_data_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("data:")


async def _upload(upload: UploadFile, media_storage: MediaStorage) -> str:
    data = await upload.read()
    key = media_storage.upload_image(
        data=data,
        filename=upload.filename or "image.jpg",
        content_type=upload.content_type,
    )
    return media_storage.public_url(key)


async def resolve_chart_images(
    chart_data: dict[str, Any],
    form: Mapping[str, Any],
    media_storage: MediaStorage,
) -> dict[str, Any]:
    """
    Upload images attached to a template form and write their public URLs into the chart.

    ``measurementFile`` replaces the chart image; ``guideImage_<i>`` replaces the guide
    image of the i-th measurement field. Inline data URLs are never persisted.
    """
    resolved = copy.deepcopy(chart_data)

    measurement_upload = form.get(MEASUREMENT_FILE_FIELD)
    if isinstance(measurement_upload, UploadFile):
        try:
            resolved["measurementFile"] = await _upload(measurement_upload, media_storage)
        except InvalidImageTypeError as exc:
            raise ValidationError(str(exc)) from exc
        except (MediaStorageError, MediaStorageConfigurationError) as exc:
            raise InternalError(f"Failed to upload measurement file: {exc}") from exc
    elif _is_data_url(resolved.get("measurementFile")):
        logger.warning("Dropping inline measurement image; images must be uploaded as files")
        resolved.pop("measurementFile")

    fields = resolved.get("measurementFields")
    if not isinstance(fields, list):
        return resolved

    for index, field in enumerate(fields):
        if not isinstance(field, dict):
            continue
        upload = form.get(f"{GUIDE_IMAGE_FIELD_PREFIX}{index}")
        if isinstance(upload, UploadFile):
            try:
                url = await _upload(upload, media_storage)
            except InvalidImageTypeError as exc:
                raise ValidationError(str(exc)) from exc
            except (MediaStorageError, MediaStorageConfigurationError):
                logger.exception("Failed to upload guide image", extra={"field_index": index})
                continue
            field["guideImage"] = url
            field["guideImageUrl"] = url
            continue
        for key in ("guideImage", "guideImageUrl"):
            if _is_data_url(field.get(key)):
                logger.warning(
                    "Dropping inline guide image; images must be uploaded as files",
                    extra={"field_index": index},
                )
                field.pop(key)
    return resolved
