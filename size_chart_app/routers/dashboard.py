from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from size_chart_app.db import get_session
from size_chart_app.deps import get_shopify_api
from size_chart_app.errors import ValidationError
from size_chart_app.repositories import ShopSessionsRepository
from size_chart_app.security import ShopContext, require_shop_session
from size_chart_app.services.order_tags import READY_TO_DISPATCH_TAG, set_order_tag
from size_chart_app.services.product_charts import ProductChartService
from size_chart_app.shopify_api import ShopifyApiClient

router = APIRouter(prefix="/app/dashboard", tags=["dashboard"])


def _form_text(form: Any, key: str) -> Optional[str]:
    value = form.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


@router.post("")
async def dashboard_action(
    request: Request,
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
    shopify_api: ShopifyApiClient = Depends(get_shopify_api),
) -> dict[str, Any]:
    form = await request.form()
    intent = _form_text(form, "intent")
    charts = ProductChartService(session, shopify_api)

    if intent == "assign-template":
        template_id = _form_text(form, "templateId")
        product_id = _form_text(form, "productId")
        if not template_id or not product_id:
            raise ValidationError("Template ID and Product ID are required")
        created = await charts.assign_template(
            shop=auth.shop,
            access_token=ShopSessionsRepository(session).require_access_token(shop=auth.shop),
            template_id=template_id,
            product_id=product_id,
        )
        return {"success": True, "created": created}

    if intent == "unassign-template":
        deleted = charts.unassign(
            shop=auth.shop,
            product_id=_form_text(form, "productId"),
            template_id=_form_text(form, "templateId"),
            chart_type=_form_text(form, "chartType"),
        )
        return {"success": True, "deletedCount": deleted}

    if intent == "cancel-all-charts":
        chart_type = _form_text(form, "chartType")
        selected = (_form_text(form, "selectedProductIds") or "").split(",")
        deleted = charts.cancel_all(shop=auth.shop, chart_type=chart_type, product_ids=selected)
        return {"success": True, "deletedCount": deleted, "chartType": chart_type}

    if intent in ("ready-to-dispatch", "cancel-dispatch"):
        ready = intent == "ready-to-dispatch"
        order_id = _form_text(form, "orderId")
        if not order_id:
            raise ValidationError("Order ID is required")
        tags = await set_order_tag(
            shopify_api,
            shop=auth.shop,
            access_token=ShopSessionsRepository(session).require_access_token(shop=auth.shop),
            order_id=order_id,
            tag=READY_TO_DISPATCH_TAG,
            present=ready,
        )
        message = "Order marked as ready to dispatch" if ready else "Dispatch cancelled successfully"
        return {"success": True, "message": message, "tags": tags}

    raise ValidationError("Invalid intent")
