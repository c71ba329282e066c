"""Plans, per-shop subscriptions and usage against plan limits.

Limits are reported to the admin UI; template creation and product assignment
do not consult them.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from size_chart_app.errors import NotFoundError
from size_chart_app.identifiers import shop_variants
from size_chart_app.models import Plan, ProductAssignment, SizeChartTemplate, Subscription

logger = logging.getLogger(__name__)

UNLIMITED = -1

PLAN_LIMITS: dict[str, dict[str, Any]] = {
    "free": {
        "maxTemplates": 3,
        "maxProductAssignments": 10,
        "customBranding": False,
        "apiAccess": False,
        "prioritySupport": False,
    },
    "basic": {
        "maxTemplates": 10,
        "maxProductAssignments": 50,
        "customBranding": False,
        "apiAccess": False,
        "prioritySupport": False,
    },
    "pro": {
        "maxTemplates": 50,
        "maxProductAssignments": 500,
        "customBranding": True,
        "apiAccess": True,
        "prioritySupport": False,
    },
    "enterprise": {
        "maxTemplates": UNLIMITED,
        "maxProductAssignments": UNLIMITED,
        "customBranding": True,
        "apiAccess": True,
        "prioritySupport": True,
    },
}

DEFAULT_PLANS: list[dict[str, Any]] = [
    {
        "name": "free",
        "display_name": "Free",
        "price": 0.0,
        "features": ["basic_size_charts", "theme_integration"],
    },
    {
        "name": "basic",
        "display_name": "Basic",
        "price": 9.99,
        "features": ["basic_size_charts", "theme_integration", "more_templates"],
    },
    {
        "name": "pro",
        "display_name": "Pro",
        "price": 29.99,
        "features": ["basic_size_charts", "theme_integration", "unlimited_templates", "custom_branding", "api_access"],
    },
    {
        "name": "enterprise",
        "display_name": "Enterprise",
        "price": 99.99,
        "features": [
            "all_features",
            "unlimited_everything",
            "custom_branding",
            "api_access",
            "priority_support",
            "custom_integrations",
        ],
    },
]


def ensure_default_plans(session: Session) -> None:
    for definition in DEFAULT_PLANS:
        plan = session.scalars(select(Plan).where(Plan.name == definition["name"])).first()
        if plan is None:
            plan = Plan(name=definition["name"], currency="USD", interval="month", active=True)
            session.add(plan)
        plan.display_name = definition["display_name"]
        plan.price = definition["price"]
        plan.features = list(definition["features"])
        plan.limits = dict(PLAN_LIMITS[definition["name"]])
    session.commit()


def _find_subscription(session: Session, shop: str) -> Optional[Subscription]:
    stmt = select(Subscription).where(Subscription.shop.in_(shop_variants(shop))).order_by(Subscription.id)
    return session.scalars(stmt).first()


def get_shop_subscription(session: Session, *, shop: str) -> Subscription:
    """Return the shop's subscription, enrolling it on the free plan on first access."""
    subscription = _find_subscription(session, shop)
    if subscription is not None:
        return subscription

    ensure_default_plans(session)
    free_plan = session.scalars(select(Plan).where(Plan.name == "free")).one()
    subscription = Subscription(
        shop=shop,
        plan_id=free_plan.id,
        plan_name="free",
        status="active",
        limits=dict(PLAN_LIMITS["free"]),
    )
    session.add(subscription)
    session.commit()
    session.refresh(subscription)
    logger.info("Enrolled shop on free plan", extra={"shop": shop})
    return subscription


def get_plan_limits(session: Session, *, shop: str) -> dict[str, Any]:
    subscription = get_shop_subscription(session, shop=shop)
    limits = dict(PLAN_LIMITS.get(subscription.plan_name, PLAN_LIMITS["free"]))
    if isinstance(subscription.limits, dict):
        limits.update(subscription.limits)
    return limits


def has_feature_access(session: Session, *, shop: str, feature: str) -> bool:
    subscription = get_shop_subscription(session, shop=shop)
    if subscription.status != "active":
        return False
    return get_plan_limits(session, shop=shop).get(feature) is True


def check_plan_limit(session: Session, *, shop: str, limit_type: str, current_count: int) -> dict[str, Any]:
    limit = get_plan_limits(session, shop=shop).get(limit_type, 0)
    if limit == UNLIMITED:
        return {"allowed": True, "remaining": UNLIMITED}
    remaining = limit - current_count
    return {"allowed": remaining > 0, "remaining": max(0, remaining), "limit": limit}


def get_shop_usage(session: Session, *, shop: str) -> dict[str, int]:
    variants = shop_variants(shop)
    templates = session.scalar(
        select(func.count(SizeChartTemplate.id)).where(
            SizeChartTemplate.shop.in_(variants),
            SizeChartTemplate.active.is_(True),
        )
    )
    assignments = session.scalar(
        select(func.count(ProductAssignment.id)).where(ProductAssignment.shop.in_(variants))
    )
    return {"templates": templates or 0, "productAssignments": assignments or 0}


def can_create_template(session: Session, *, shop: str) -> bool:
    usage = get_shop_usage(session, shop=shop)
    return check_plan_limit(session, shop=shop, limit_type="maxTemplates", current_count=usage["templates"])[
        "allowed"
    ]


def can_assign_to_product(session: Session, *, shop: str) -> bool:
    usage = get_shop_usage(session, shop=shop)
    return check_plan_limit(
        session,
        shop=shop,
        limit_type="maxProductAssignments",
        current_count=usage["productAssignments"],
    )["allowed"]


def update_shop_subscription(session: Session, *, shop: str, plan_name: str, status: str = "active") -> Subscription:
    ensure_default_plans(session)
    plan = session.scalars(select(Plan).where(Plan.name == plan_name)).first()
    if plan is None:
        raise NotFoundError(f"Plan {plan_name} not found")

    subscription = _find_subscription(session, shop)
    if subscription is None:
        subscription = Subscription(shop=shop)
        session.add(subscription)
    subscription.plan_id = plan.id
    subscription.plan_name = plan.name
    subscription.status = status
    subscription.limits = dict(plan.limits or PLAN_LIMITS.get(plan.name, PLAN_LIMITS["free"]))
    session.commit()
    session.refresh(subscription)
    logger.info("Updated shop subscription", extra={"shop": shop, "plan": plan.name})
    return subscription


def serialize_subscription(subscription: Subscription) -> dict[str, Any]:
    return {
        "planName": subscription.plan_name or "free",
        "status": subscription.status or "active",
        "currentPeriodEnd": subscription.current_period_end,
        "trialEndsAt": subscription.trial_ends_at,
    }


def subscription_overview(session: Session, *, shop: str) -> dict[str, Any]:
    subscription = get_shop_subscription(session, shop=shop)
    return {
        "subscription": serialize_subscription(subscription),
        "limits": get_plan_limits(session, shop=shop),
        "usage": get_shop_usage(session, shop=shop),
        "canCreateTemplate": can_create_template(session, shop=shop),
        "canAssignToProduct": can_assign_to_product(session, shop=shop),
    }
