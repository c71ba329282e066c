"""Product-centric chart links used by the admin dashboard."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from size_chart_app.errors import ProductNotFoundError, UpstreamError, ValidationError
from size_chart_app.identifiers import normalize_product_id, shop_variants
from size_chart_app.models import ProductAssignment, SizeChartTemplate, TemplateKindEnum
from size_chart_app.repositories.templates import TemplatesRepository
from size_chart_app.shopify_api import ShopifyApiClient, ShopifyApiError

logger = logging.getLogger(__name__)

CHART_TYPE_ALL = "all"
CHART_TYPE_KINDS = {
    "table": TemplateKindEnum.table,
    "custom": TemplateKindEnum.measurement,
}


def _kinds_for_chart_type(chart_type: str) -> Optional[TemplateKindEnum]:
    if chart_type == CHART_TYPE_ALL:
        return None
    kind = CHART_TYPE_KINDS.get(chart_type)
    if kind is None:
        raise ValidationError("Chart type must be one of: table, custom, all")
    return kind


class ProductChartService:
    def __init__(self, session: Session, shopify_api: Optional[ShopifyApiClient] = None) -> None:
        self.session = session
        self.shopify_api = shopify_api

    def _assignments(
        self,
        *,
        shop: str,
        product_ids: Optional[list[str]] = None,
        kind: Optional[TemplateKindEnum] = None,
        template_id: Optional[str] = None,
    ) -> list[ProductAssignment]:
        stmt = (
            select(ProductAssignment)
            .join(ProductAssignment.template)
            .where(ProductAssignment.shop.in_(shop_variants(shop)))
        )
        if product_ids:
            stmt = stmt.where(ProductAssignment.product_id.in_(product_ids))
        if kind is not None:
            stmt = stmt.where(SizeChartTemplate.kind == kind)
        if template_id is not None:
            stmt = stmt.where(ProductAssignment.template_id == template_id)
        return list(self.session.scalars(stmt).all())

    def _delete(self, assignments: list[ProductAssignment]) -> int:
        try:
            for assignment in assignments:
                self.session.delete(assignment)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return len(assignments)

    async def assign_template(self, *, shop: str, access_token: str, template_id: str, product_id: Any) -> bool:
        """
        Link one product to a template, replacing the product's link to any other
        template of the same kind. Returns False when the link already existed.
        """
        if not template_id or not product_id:
            raise ValidationError("Template ID and Product ID are required")
        template = TemplatesRepository(self.session).get_or_404(template_id=template_id, shop=shop)
        numeric_id = normalize_product_id(product_id)

        existing = [a for a in template.assignments if a.product_id == numeric_id]
        superseded = [
            a
            for a in self._assignments(shop=shop, product_ids=[numeric_id], kind=template.kind)
            if a.template_id != template.id
        ]

        title: Optional[str] = None
        if not existing:
            try:
                product = await self.shopify_api.get_product_summary(
                    shop_domain=shop,
                    access_token=access_token,
                    product_id=numeric_id,
                )
            except ShopifyApiError as exc:
                raise UpstreamError(str(exc)) from exc
            if product is None:
                raise ProductNotFoundError()
            title = product["title"]

        try:
            for assignment in superseded:
                self.session.delete(assignment)
            if not existing:
                self.session.add(
                    ProductAssignment(
                        shop=template.shop,
                        template_id=template.id,
                        product_id=numeric_id,
                        product_title=title,
                    )
                )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Assigned template to product",
            extra={"shop": shop, "template_id": template.id, "product_id": numeric_id, "replaced": len(superseded)},
        )
        return not existing

    def unassign(
        self,
        *,
        shop: str,
        product_id: Any,
        template_id: Optional[str] = None,
        chart_type: Optional[str] = None,
    ) -> int:
        if not product_id:
            raise ValidationError("Product ID is required")
        numeric_id = normalize_product_id(product_id)

        if chart_type:
            assignments = self._assignments(
                shop=shop, product_ids=[numeric_id], kind=_kinds_for_chart_type(chart_type)
            )
        elif template_id:
            assignments = self._assignments(shop=shop, product_ids=[numeric_id], template_id=template_id)
        else:
            raise ValidationError("Either Template ID or Chart Type is required")

        deleted = self._delete(assignments)
        logger.info(
            "Unassigned product charts",
            extra={"shop": shop, "product_id": numeric_id, "chart_type": chart_type, "deleted": deleted},
        )
        return deleted

    def cancel_all(self, *, shop: str, chart_type: Optional[str], product_ids: Iterable[Any] = ()) -> int:
        """Remove every link of a chart type, optionally limited to some products."""
        kind = _kinds_for_chart_type(chart_type or "")
        selected = [normalize_product_id(p) for p in product_ids if str(p).strip()]
        deleted = self._delete(self._assignments(shop=shop, product_ids=selected or None, kind=kind))
        logger.info(
            "Cancelled product charts",
            extra={"shop": shop, "chart_type": chart_type, "products": len(selected), "deleted": deleted},
        )
        return deleted
