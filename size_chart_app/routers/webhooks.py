from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from size_chart_app.db import get_session
from size_chart_app.errors import UnauthorizedError, ValidationError
from size_chart_app.identifiers import canonical_shop_domain
from size_chart_app.repositories import ShopSessionsRepository
from size_chart_app.security import verify_webhook_hmac
from size_chart_app.services.gdpr import redact_shop

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _verified_webhook(
    request: Request,
    *,
    require_shop: bool = True,
) -> tuple[Optional[str], dict[str, Any]]:
    body = await request.body()
    if not verify_webhook_hmac(body=body, supplied_hmac=request.headers.get("x-shopify-hmac-sha256")):
        raise UnauthorizedError("Invalid webhook HMAC")

    try:
        payload = json.loads(body) if body else {}
    except ValueError:
        logger.warning("Webhook body is not valid JSON", extra={"path": request.url.path})
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    shop = request.headers.get("x-shopify-shop-domain") or payload.get("shop_domain")
    if not shop:
        if require_shop:
            raise ValidationError("Missing x-shopify-shop-domain header")
        return None, payload
    return canonical_shop_domain(shop), payload


@router.post("/shop/redact")
async def shop_redact_webhook(request: Request, session: Session = Depends(get_session)):
    shop, _payload = await _verified_webhook(request, require_shop=False)
    if shop is None:
        logger.warning("Shop redact without a shop domain; nothing to delete")
        return {"received": True}
    try:
        redact_shop(session, shop=shop)
    except Exception:  # noqa: BLE001
        # Compliance webhooks must be acknowledged even when deletion fails.
        logger.exception("Shop redact failed", extra={"shop": shop})
    return {"received": True}


@router.post("/customers/redact")
async def customers_redact_webhook(request: Request):
    shop, payload = await _verified_webhook(request)
    customer = payload.get("customer") or {}
    logger.info(
        "Received customers/redact; no customer data is stored",
        extra={"shop": shop, "customer_id": customer.get("id")},
    )
    return {"received": True}


@router.post("/customers/data_request")
async def customers_data_request_webhook(request: Request):
    shop, payload = await _verified_webhook(request)
    customer = payload.get("customer") or {}
    logger.info(
        "Received customers/data_request; no customer data is stored",
        extra={"shop": shop, "customer_id": customer.get("id")},
    )
    return {"received": True}


@router.post("/shop/update")
async def shop_update_webhook(request: Request):
    shop, payload = await _verified_webhook(request)
    domain = payload.get("domain")
    if domain and domain != shop:
        logger.info("Shop domain changed", extra={"shop": shop, "domain": domain})
    else:
        logger.info("Received shop/update", extra={"shop": shop})
    return {"received": True}


@router.post("/app/uninstalled")
async def app_uninstalled_webhook(request: Request, session: Session = Depends(get_session)):
    shop, _payload = await _verified_webhook(request)
    removed = ShopSessionsRepository(session).delete_for_shop(shop=shop)
    logger.info("App uninstalled", extra={"shop": shop, "sessions_removed": removed})
    return {"received": True}
