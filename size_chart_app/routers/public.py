"""Unauthenticated endpoints called by the storefront theme extension.

Every response, including failures and preflights, carries the CORS headers so
the storefront script can always read the body.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import pydantic
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from size_chart_app.db import get_session
from size_chart_app.deps import get_media_storage, get_shopify_api
from size_chart_app.errors import SizeChartError, ValidationError, error_payload, error_status
from size_chart_app.media_storage import MediaStorage
from size_chart_app.repositories import ThemeSettingsRepository
from size_chart_app.schemas import DraftOrderRequest
from size_chart_app.services import storefront
from size_chart_app.services.app_url import RequestFacts, resolve_app_url
from size_chart_app.services.draft_orders import DraftOrderCreator
from size_chart_app.shopify_api import ShopifyApiClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["public"])

PUBLIC_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",
}
APP_URL_CORS_HEADERS = {**PUBLIC_CORS_HEADERS, "Access-Control-Allow-Methods": "GET, OPTIONS"}

Builder = Callable[[], Union[dict[str, Any], Awaitable[dict[str, Any]]]]


def cors_json(content: Any, *, status_code: int = 200, headers: Optional[dict[str, str]] = None) -> ORJSONResponse:
    return ORJSONResponse(content=content, status_code=status_code, headers=headers or PUBLIC_CORS_HEADERS)


def preflight(headers: Optional[dict[str, str]] = None) -> Response:
    return Response(status_code=204, headers=headers or PUBLIC_CORS_HEADERS)


async def _respond(
    build: Builder,
    *,
    headers: Optional[dict[str, str]] = None,
    failure_fields: Optional[dict[str, Any]] = None,
) -> ORJSONResponse:
    try:
        result = build()
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:  # noqa: BLE001
        if not isinstance(exc, SizeChartError):
            logger.exception("Public endpoint failed")
        payload = {**error_payload(exc), **(failure_fields or {})}
        return cors_json(payload, status_code=error_status(exc), headers=headers)
    return cors_json(result, headers=headers)


def _facts(request: Request, *, shop: Optional[str], saved_app_url: Optional[str] = None) -> RequestFacts:
    return RequestFacts(url=str(request.url), headers=request.headers, shop=shop, saved_app_url=saved_app_url)


def _require(value: Optional[str], message: str) -> str:
    if not value or not value.strip():
        raise ValidationError(message)
    return value.strip()


@router.options("/app-url/public")
def app_url_preflight() -> Response:
    return preflight(APP_URL_CORS_HEADERS)


@router.get("/app-url/public")
async def public_app_url(
    request: Request,
    shop: Optional[str] = None,
    session: Session = Depends(get_session),
) -> ORJSONResponse:
    def build() -> dict[str, Any]:
        saved = None
        if shop:
            row = ThemeSettingsRepository(session).get(shop=shop)
            saved = row.app_url if row is not None else None
        return resolve_app_url(_facts(request, shop=shop, saved_app_url=saved)).to_payload()

    return await _respond(build, headers=APP_URL_CORS_HEADERS, failure_fields={"appUrl": ""})


@router.options("/size-chart-types/public")
def chart_types_preflight() -> Response:
    return preflight()


@router.get("/size-chart-types/public")
async def public_chart_types(
    shop: Optional[str] = None,
    productId: Optional[str] = None,
    session: Session = Depends(get_session),
) -> ORJSONResponse:
    def build() -> dict[str, Any]:
        required_message = "Shop and productId parameters required"
        return storefront.chart_types_for_product(
            session,
            shop=_require(shop, required_message),
            product_id=_require(productId, required_message),
        )

    return await _respond(build, failure_fields={"hasTableTemplate": False, "hasCustomTemplate": False})


@router.options("/size-chart/public")
def size_chart_preflight() -> Response:
    return preflight()


@router.get("/size-chart/public")
async def public_size_chart(
    shop: Optional[str] = None,
    productId: Optional[str] = None,
    templateType: Optional[str] = None,
    session: Session = Depends(get_session),
    media_storage: MediaStorage = Depends(get_media_storage),
) -> ORJSONResponse:
    def build() -> dict[str, Any]:
        required_message = "Shop and productId parameters required"
        return storefront.size_chart_for_product(
            session,
            shop=_require(shop, required_message),
            product_id=_require(productId, required_message),
            template_type=templateType,
            media_storage=media_storage,
        )

    return await _respond(build, failure_fields={"hasChart": False})


@router.options("/theme-settings/public")
def theme_settings_preflight() -> Response:
    return preflight()


@router.get("/theme-settings/public")
async def public_theme_settings(
    request: Request,
    shop: Optional[str] = None,
    session: Session = Depends(get_session),
) -> ORJSONResponse:
    def build() -> dict[str, Any]:
        resolved_shop = _require(shop, "Shop parameter required")
        return storefront.display_settings(session, facts=_facts(request, shop=resolved_shop))

    return await _respond(build)


@router.options("/measurement-template/public")
def measurement_templates_preflight() -> Response:
    return preflight()


@router.get("/measurement-template/public")
async def public_measurement_templates(
    shop: Optional[str] = None,
    session: Session = Depends(get_session),
    media_storage: MediaStorage = Depends(get_media_storage),
) -> ORJSONResponse:
    def build() -> dict[str, Any]:
        templates = storefront.measurement_templates(
            session,
            shop=_require(shop, "Shop parameter is required"),
            media_storage=media_storage,
        )
        return {"success": True, "templates": templates}

    return await _respond(build)


@router.options("/draft-order/public")
def draft_order_preflight() -> Response:
    return preflight()


@router.get("/draft-order/public")
def draft_order_info() -> ORJSONResponse:
    return cors_json(
        {
            "message": "Draft Order API - Use POST to create draft orders",
            "endpoint": "/api/draft-order/public",
        }
    )


async def _draft_order_request(request: Request) -> DraftOrderRequest:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    if not body.get("productId"):
        raise ValidationError("Product ID is required")
    if not body.get("measurements"):
        raise ValidationError("Measurements are required")
    try:
        return DraftOrderRequest.model_validate(body)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid draft order request: {location} {first.get('msg')}".strip()) from exc


@router.post("/draft-order/public")
async def create_public_draft_order(
    request: Request,
    shop: Optional[str] = None,
    session: Session = Depends(get_session),
    shopify_api: ShopifyApiClient = Depends(get_shopify_api),
) -> ORJSONResponse:
    async def build() -> dict[str, Any]:
        resolved_shop = _require(shop, "Shop parameter is required")
        draft_request = await _draft_order_request(request)
        created = await DraftOrderCreator(session, shopify_api).create(shop=resolved_shop, request=draft_request)
        return created.model_dump(mode="json")

    return await _respond(build)
