from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.orm import Session

from size_chart_app.identifiers import shop_variants
from size_chart_app.models import ProductAssignment, ShopSession, SizeChartTemplate, Subscription, ThemeSettings

logger = logging.getLogger(__name__)

# Children before parents so foreign keys hold at every step.
_SHOP_OWNED_MODELS = (ProductAssignment, SizeChartTemplate, ThemeSettings, Subscription, ShopSession)


def redact_shop(session: Session, *, shop: str) -> dict[str, int]:
    """Delete every stored row for a shop in one transaction and return per-table counts."""
    variants = shop_variants(shop)
    counts: dict[str, int] = {}
    try:
        for model in _SHOP_OWNED_MODELS:
            result = session.execute(delete(model).where(model.shop.in_(variants)))
            counts[model.__tablename__] = result.rowcount or 0
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Redacted shop data", extra={"shop": shop, "deleted": counts})
    return counts
