from __future__ import annotations

from typing import Any

import pydantic
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from size_chart_app.db import get_session
from size_chart_app.errors import ValidationError
from size_chart_app.schemas import SubscriptionUpdateRequest
from size_chart_app.security import ShopContext, require_shop_session
from size_chart_app.services import subscriptions

router = APIRouter(prefix="/api/subscription", tags=["subscription"])


@router.get("")
def get_subscription(
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    return subscriptions.subscription_overview(session, shop=auth.shop)


@router.post("")
async def update_subscription(
    request: Request,
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    form = await request.form()
    if form.get("intent") != "update":
        raise ValidationError("Invalid intent")
    try:
        payload = SubscriptionUpdateRequest(planName=form.get("planName") or "")
    except pydantic.ValidationError as exc:
        raise ValidationError("Plan name required") from exc

    subscription = subscriptions.update_shop_subscription(session, shop=auth.shop, plan_name=payload.planName)
    return {
        "success": True,
        "subscription": subscriptions.serialize_subscription(subscription),
        "limits": subscriptions.get_plan_limits(session, shop=auth.shop),
    }
