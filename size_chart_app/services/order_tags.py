from __future__ import annotations

import logging

from size_chart_app.errors import NotFoundError, UpstreamError, ValidationError
from size_chart_app.identifiers import order_gid
from size_chart_app.shopify_api import ShopifyApiClient, ShopifyApiError

logger = logging.getLogger(__name__)

READY_TO_DISPATCH_TAG = "ready-to-dispatch"


async def set_order_tag(
    shopify_api: ShopifyApiClient,
    *,
    shop: str,
    access_token: str,
    order_id: str | None,
    tag: str,
    present: bool,
) -> list[str]:
    """Add or remove one tag on an order, keeping its other tags."""
    if not order_id or not str(order_id).strip():
        raise ValidationError("Order ID is required")
    gid = order_gid(order_id)
    if gid is None:
        raise ValidationError("Invalid order ID format")

    try:
        tags = await shopify_api.get_order_tags(shop_domain=shop, access_token=access_token, order_gid=gid)
        if present and tag not in tags:
            tags.append(tag)
        elif not present:
            tags = [existing for existing in tags if existing != tag]
        updated = await shopify_api.update_order_tags(
            shop_domain=shop,
            access_token=access_token,
            order_gid=gid,
            tags=tags,
        )
    except ShopifyApiError as exc:
        if exc.status_code == 404:
            raise NotFoundError("Order not found") from exc
        logger.exception("Order tag update failed", extra={"shop": shop, "order": gid})
        raise UpstreamError(str(exc)) from exc

    logger.info("Updated order tags", extra={"shop": shop, "order": gid, "tag": tag, "present": present})
    return updated
