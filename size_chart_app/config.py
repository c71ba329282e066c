from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PLACEHOLDER_APP_URLS = {"https://example.com", "http://example.com"}


class Settings(BaseSettings):
    SHOPIFY_API_KEY: str
    SHOPIFY_API_SECRET: str
    SHOPIFY_APP_URL: str | None = None
    SHOPIFY_ADMIN_API_VERSION: str = "2024-10"
    SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = 20.0

    SIZE_CHART_DB_URL: str = "sqlite:///./size_chart_app.db"
    ENVIRONMENT: str = "development"

    APP_PROXY_SUBPATH: str = "size-chart"
    LIST_PRODUCTS_LIMIT: int = 250

    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: str | None = None
    AWS_SECRET_ACCESS_KEY: str | None = None
    AWS_S3_BUCKET_NAME: str | None = None

    @field_validator("SHOPIFY_APP_URL")
    @classmethod
    def strip_app_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @property
    def configured_app_url(self) -> str | None:
        """Explicit app URL override, ignoring the scaffold placeholder."""
        if not self.SHOPIFY_APP_URL:
            return None
        if self.SHOPIFY_APP_URL.rstrip("/") in _PLACEHOLDER_APP_URLS:
            return None
        return self.SHOPIFY_APP_URL

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
