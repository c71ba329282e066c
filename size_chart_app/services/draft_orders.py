from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from size_chart_app.errors import (
    ProductNotFoundError,
    SessionExpiredError,
    ShopNotInstalledError,
    UpstreamError,
    ValidationError,
)
from size_chart_app.identifiers import canonical_shop_domain, normalize_product_id, normalize_variant_id
from size_chart_app.models import ShopSession
from size_chart_app.repositories.sessions import ShopSessionsRepository
from size_chart_app.schemas import DraftOrderRequest, DraftOrderResponse
from size_chart_app.shopify_api import ShopifyApiClient, ShopifyApiError

logger = logging.getLogger(__name__)

CUSTOM_ORDER_TAG = "custom-order"
CUSTOM_ORDER_NOTE = "This is a custom-made order. Cash on Delivery is not available."
CUSTOM_ORDER_MESSAGE = (
    "Draft order created with 'custom-order' tag. Ensure products are assigned to "
    "'Custom Orders – No COD' shipping profile to restrict COD."
)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def format_measurement_name(name: str) -> str:
    """Title-case a measurement name per slash segment, then per word: ``chest/bust`` -> ``Chest / Bust``."""
    joined = " / ".join(_capitalize(part.strip()) for part in name.split("/"))
    return " ".join(_capitalize(word) for word in joined.split(" "))


def build_line_item_properties(measurements: dict[str, Any]) -> list[dict[str, str]]:
    properties = [{"name": "_custom_order", "value": "true"}]
    for key, value in measurements.items():
        if value is None or value == "":
            continue
        properties.append({"name": format_measurement_name(str(key)), "value": str(value)})
    return properties


def _is_expired(record: ShopSession, *, now: datetime | None = None) -> bool:
    if record.expires is None:
        return False
    expires = record.expires
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires < (now or datetime.now(timezone.utc))


def _as_int(value: Any, *, field: str) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {field}: {value}") from exc


class DraftOrderCreator:
    """Creates a tagged custom-order draft order from storefront measurements."""

    def __init__(self, session: Session, shopify_api: ShopifyApiClient) -> None:
        self.session = session
        self.shopify_api = shopify_api

    def _credential(self, shop: str) -> ShopSession:
        record = ShopSessionsRepository(self.session).latest_for_shop(shop=shop)
        if record is None:
            logger.error("No stored session for shop", extra={"shop": shop})
            raise ShopNotInstalledError()
        if _is_expired(record):
            logger.error("Stored session expired", extra={"shop": record.shop})
            raise SessionExpiredError()
        return record

    async def create(self, *, shop: str, request: DraftOrderRequest) -> DraftOrderResponse:
        if not shop:
            raise ValidationError("Shop parameter is required")

        credential = self._credential(shop)
        shop_domain = canonical_shop_domain(credential.shop)
        product_id = normalize_product_id(request.productId)

        try:
            product = await self.shopify_api.get_product_rest(
                shop_domain=shop_domain,
                access_token=credential.access_token,
                product_id=product_id,
            )
        except ShopifyApiError as exc:
            if exc.status_code == 404:
                raise ProductNotFoundError() from exc
            raise UpstreamError(str(exc)) from exc

        variant_id: Any = request.variantId
        if not variant_id:
            variants = product.get("variants") or []
            if variants:
                variant_id = variants[0].get("id")
        if not variant_id:
            raise ValidationError("No variant found for product")

        draft_order = {
            "line_items": [
                {
                    "variant_id": _as_int(normalize_variant_id(variant_id), field="variant id"),
                    "quantity": request.quantity,
                    "properties": build_line_item_properties(request.measurements),
                }
            ],
            "tags": CUSTOM_ORDER_TAG,
            "note": CUSTOM_ORDER_NOTE,
            "use_customer_default_address": True,
            "payment_terms": None,
        }

        try:
            created = await self.shopify_api.create_draft_order(
                shop_domain=shop_domain,
                access_token=credential.access_token,
                draft_order=draft_order,
            )
        except ShopifyApiError as exc:
            logger.exception("Draft order creation failed", extra={"shop": shop_domain})
            raise UpstreamError(str(exc)) from exc

        checkout_url = created.get("checkout_url") or created.get("invoice_url")
        if not checkout_url:
            raise UpstreamError("Draft order created but no checkout/invoice URL")

        logger.info(
            "Created custom draft order",
            extra={"shop": shop_domain, "product_id": product_id, "draft_order_id": created.get("id")},
        )
        return DraftOrderResponse(
            invoiceUrl=checkout_url,
            draftOrderId=created.get("id"),
            draftOrderName=created.get("name"),
            message=CUSTOM_ORDER_MESSAGE,
        )
