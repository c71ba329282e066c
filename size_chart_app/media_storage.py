from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from size_chart_app.config import settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
IMAGE_KEY_PREFIX = "images/"
DEFAULT_GUIDE_IMAGE_PREFIX = "images/guideimages/"
_IMAGE_URL_KEYS = {"measurementFile", "guideImage", "guideImageUrl"}


class MediaStorageConfigurationError(RuntimeError):
    pass


class MediaStorageError(RuntimeError):
    pass


class InvalidImageTypeError(MediaStorageError):
    pass


class MediaStorage:
    """
    Thin wrapper around the S3 bucket holding chart and measurement guide images.

    Objects live under ``images/YYYY/MM/<uuid>.<ext>``; shared default guide images
    live under ``images/guideimages/`` and are never deleted.
    """

    def __init__(self, client: Any | None = None) -> None:
        self.bucket = settings.AWS_S3_BUCKET_NAME
        self.region = settings.AWS_REGION or "us-east-1"
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            )
        return self._client

    def _require_bucket(self) -> str:
        if not self.bucket:
            raise MediaStorageConfigurationError("AWS_S3_BUCKET_NAME is not configured")
        return self.bucket

    def build_key(self, *, filename: str, now: datetime | None = None) -> str:
        moment = now or datetime.now(timezone.utc)
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
        return f"{IMAGE_KEY_PREFIX}{moment.year}/{moment.month:02d}/{uuid4()}.{ext}"

    def upload_image(self, *, data: bytes, filename: str, content_type: Optional[str]) -> str:
        bucket = self._require_bucket()
        resolved_type = content_type or "application/octet-stream"
        if resolved_type not in ALLOWED_IMAGE_TYPES:
            raise InvalidImageTypeError(
                f"Invalid file type. Allowed types: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}"
            )
        key = self.build_key(filename=filename or "image.jpg")
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=resolved_type)
        except (BotoCoreError, ClientError) as exc:
            raise MediaStorageError(f"Failed to upload image to S3: {exc}") from exc
        return key

    def public_url(self, key_or_url: str) -> str:
        if key_or_url.startswith(("http://", "https://")):
            return key_or_url
        key = key_or_url
        if key.startswith("s3://"):
            parts = key[len("s3://"):].split("/")
            key = "/".join(parts[1:])
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    @staticmethod
    def extract_key(url_or_key: str | None) -> str | None:
        if not url_or_key or not isinstance(url_or_key, str):
            return None
        if url_or_key.startswith(IMAGE_KEY_PREFIX):
            return url_or_key
        if url_or_key.startswith("https://"):
            path = urlparse(url_or_key).path.lstrip("/")
            if path.startswith(IMAGE_KEY_PREFIX):
                return path
        return None

    @staticmethod
    def is_default_guide_image(key: str) -> bool:
        return key.startswith(DEFAULT_GUIDE_IMAGE_PREFIX)

    def delete_image(self, url_or_key: str | None) -> bool:
        """Best-effort delete; returns True only when an object delete was issued."""
        if not url_or_key:
            return False
        key = self.extract_key(url_or_key)
        if not key:
            logger.warning("Invalid S3 key or URL for deletion", extra={"value": url_or_key})
            return False
        if self.is_default_guide_image(key):
            logger.info("Skipping deletion of default guide image", extra={"key": key})
            return False
        try:
            self.client.delete_object(Bucket=self._require_bucket(), Key=key)
        except (BotoCoreError, ClientError, MediaStorageConfigurationError):
            logger.exception("Failed to delete image from S3", extra={"key": key})
            return False
        return True

    def normalize_chart_urls(self, data: Any) -> Any:
        """Rewrite stored ``s3://`` references inside a chart payload to public HTTPS URLs."""
        if isinstance(data, str):
            return self.public_url(data) if data.startswith("s3://") else data
        if isinstance(data, list):
            return [self.normalize_chart_urls(item) for item in data]
        if isinstance(data, dict):
            normalized: dict[str, Any] = {}
            for key, value in data.items():
                if key in _IMAGE_URL_KEYS and isinstance(value, str) and value.startswith(IMAGE_KEY_PREFIX):
                    normalized[key] = self.public_url(value)
                else:
                    normalized[key] = self.normalize_chart_urls(value)
            return normalized
        return data
