from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, contains_eager

from size_chart_app.identifiers import normalize_product_id, shop_variants
from size_chart_app.models import ProductAssignment, SizeChartTemplate
from size_chart_app.repositories.templates import TemplatesRepository
from size_chart_app.schemas import AssignmentConflict
from size_chart_app.shopify_api import ShopifyApiClient, ShopifyApiError

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    added: int = 0
    removed: int = 0
    conflicts: list[AssignmentConflict] = field(default_factory=list)


def _ordered_unique(values: Iterable[Any]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        normalized = normalize_product_id(value).strip()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        ordered.append(normalized)
    return ordered


class AssignmentReconciler:
    """
    Brings a template's product assignments in line with a full desired set.

    Products newly linked to a template supersede any link they had to another
    template of the same kind; table and measurement links coexist. All row
    changes are committed together once catalog lookups have finished.
    """

    def __init__(self, session: Session, shopify_api: ShopifyApiClient) -> None:
        self.session = session
        self.shopify_api = shopify_api

    async def reconcile(
        self,
        *,
        shop: str,
        access_token: str,
        template_id: str,
        product_ids: Iterable[Any],
    ) -> AssignmentResult:
        template = TemplatesRepository(self.session).get_or_404(template_id=template_id, shop=shop)

        desired = _ordered_unique(product_ids)
        desired_set = set(desired)
        current = {normalize_product_id(a.product_id): a for a in template.assignments}

        to_add = [product_id for product_id in desired if product_id not in current]
        to_remove = [assignment for product_id, assignment in current.items() if product_id not in desired_set]

        result = AssignmentResult(removed=len(to_remove))
        superseded = self._same_kind_assignments(shop=shop, template=template, product_ids=to_add)
        for assignment in superseded:
            result.conflicts.append(
                AssignmentConflict(
                    productId=assignment.product_id,
                    productTitle=assignment.product_title,
                    previousTemplateId=assignment.template_id,
                    previousTemplateName=assignment.template.name,
                    newTemplateName=template.name,
                )
            )

        titles = await self._resolve_titles(shop=shop, access_token=access_token, product_ids=to_add)

        try:
            for assignment in to_remove:
                self.session.delete(assignment)
            for assignment in superseded:
                self.session.delete(assignment)
            for product_id, title in titles.items():
                self.session.add(
                    ProductAssignment(
                        shop=template.shop,
                        template_id=template.id,
                        product_id=product_id,
                        product_title=title,
                    )
                )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        result.added = len(titles)
        logger.info(
            "Reconciled template product assignments",
            extra={
                "shop": shop,
                "template_id": template_id,
                "added": result.added,
                "removed": result.removed,
                "conflicts": len(result.conflicts),
            },
        )
        return result

    def _same_kind_assignments(
        self,
        *,
        shop: str,
        template: SizeChartTemplate,
        product_ids: list[str],
    ) -> list[ProductAssignment]:
        if not product_ids:
            return []
        stmt = (
            select(ProductAssignment)
            .join(ProductAssignment.template)
            .options(contains_eager(ProductAssignment.template))
            .where(
                ProductAssignment.shop.in_(shop_variants(shop)),
                ProductAssignment.product_id.in_(product_ids),
                ProductAssignment.template_id != template.id,
                SizeChartTemplate.kind == template.kind,
            )
            .order_by(ProductAssignment.product_id, ProductAssignment.created_at)
        )
        return list(self.session.scalars(stmt).unique().all())

    async def _resolve_titles(
        self,
        *,
        shop: str,
        access_token: str,
        product_ids: list[str],
    ) -> dict[str, str]:
        titles: dict[str, str] = {}
        for product_id in product_ids:
            try:
                product = await self.shopify_api.get_product_summary(
                    shop_domain=shop,
                    access_token=access_token,
                    product_id=product_id,
                )
            except ShopifyApiError as exc:
                logger.warning(
                    "Skipping product assignment after catalog lookup failure",
                    extra={"shop": shop, "product_id": product_id, "error": str(exc)},
                )
                continue
            if product is None:
                logger.info(
                    "Skipping product assignment for missing product",
                    extra={"shop": shop, "product_id": product_id},
                )
                continue
            titles[product_id] = product["title"]
        return titles
