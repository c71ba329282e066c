import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

from size_chart_app.db import init_db
from size_chart_app.errors import SizeChartError, error_payload, error_status
from size_chart_app.media_storage import MediaStorage
from size_chart_app.routers import (
    dashboard,
    measurement_templates,
    public,
    subscription,
    templates,
    theme_settings,
    uploads,
    webhooks,
)
from size_chart_app.shopify_api import ShopifyApiClient

logger = logging.getLogger(__name__)

shopify_api = ShopifyApiClient()
media_storage = MediaStorage()


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Size Chart App",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )
    app.state.shopify_api = shopify_api
    app.state.media_storage = media_storage

    @app.exception_handler(SizeChartError)
    async def size_chart_error_handler(_request: Request, exc: SizeChartError) -> ORJSONResponse:
        if exc.status_code >= 500:
            logger.exception("Request failed", exc_info=exc)
        return ORJSONResponse(status_code=exc.status_code, content=error_payload(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=error_status(exc), content=error_payload(exc))

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    app.include_router(templates.router)
    app.include_router(dashboard.router)
    app.include_router(measurement_templates.router)
    app.include_router(theme_settings.router)
    app.include_router(subscription.router)
    app.include_router(uploads.router)
    app.include_router(public.router)
    app.include_router(webhooks.router)

    return app


app = create_app()
