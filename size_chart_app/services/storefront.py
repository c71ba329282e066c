"""Read-only lookups backing the storefront theme extension."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, contains_eager

from size_chart_app.errors import NotFoundError, ValidationError
from size_chart_app.identifiers import normalize_product_id, shop_variants
from size_chart_app.media_storage import MediaStorage
from size_chart_app.models import ProductAssignment, SizeChartTemplate, TemplateKindEnum
from size_chart_app.repositories.templates import TemplatesRepository
from size_chart_app.repositories.theme_settings import ThemeSettingsRepository, settings_to_payload
from size_chart_app.services.app_url import RequestFacts, normalize_app_url, resolve_app_url

_TEMPLATE_TYPE_KINDS = {
    "table": TemplateKindEnum.table,
    "custom": TemplateKindEnum.measurement,
}


class NoChartFoundError(NotFoundError):
    error = "No size chart found for this product"


def _active_assignments(session: Session, *, shop: str, product_id: str) -> list[ProductAssignment]:
    stmt = (
        select(ProductAssignment)
        .join(ProductAssignment.template)
        .options(contains_eager(ProductAssignment.template))
        .where(
            ProductAssignment.shop.in_(shop_variants(shop)),
            ProductAssignment.product_id == normalize_product_id(product_id),
            SizeChartTemplate.active.is_(True),
        )
        .order_by(ProductAssignment.created_at)
    )
    return list(session.scalars(stmt).unique().all())


def chart_types_for_product(session: Session, *, shop: str, product_id: str) -> dict[str, bool]:
    kinds = {assignment.template.kind for assignment in _active_assignments(session, shop=shop, product_id=product_id)}
    return {
        "hasTableTemplate": TemplateKindEnum.table in kinds,
        "hasCustomTemplate": TemplateKindEnum.measurement in kinds,
    }


def public_chart_data(template: SizeChartTemplate, media_storage: MediaStorage) -> dict[str, Any]:
    """Chart payload as the storefront modal reads it, with image references made browser-safe."""
    chart_data = media_storage.normalize_chart_urls(dict(template.chart_data or {}))
    for key in ("sizeData", "columns", "measurementFields"):
        if not isinstance(chart_data.get(key), list):
            chart_data[key] = []
    chart_data["isMeasurementTemplate"] = template.kind == TemplateKindEnum.measurement
    return chart_data


def size_chart_for_product(
    session: Session,
    *,
    shop: str,
    product_id: str,
    template_type: Optional[str],
    media_storage: MediaStorage,
) -> dict[str, Any]:
    assignments = _active_assignments(session, shop=shop, product_id=product_id)
    if template_type:
        wanted_kind = _TEMPLATE_TYPE_KINDS.get(template_type)
        assignments = [a for a in assignments if a.template.kind == wanted_kind]
    if not assignments:
        raise NoChartFoundError()

    assignment = assignments[0]
    template = assignment.template
    chart_data = public_chart_data(template, media_storage)
    return {
        "hasChart": True,
        "productName": assignment.product_title,
        "template": {
            "id": template.id,
            "name": template.name,
            "description": template.description or "",
            "chartData": chart_data,
            "measurementFile": chart_data.get("measurementFile"),
            "rawDescription": template.description or "",
        },
    }


def display_settings(session: Session, *, facts: RequestFacts) -> dict[str, Any]:
    row = ThemeSettingsRepository(session).get(shop=facts.shop or "")
    payload = settings_to_payload(row).model_dump()

    saved = payload.pop("appUrl", None)
    if saved:
        app_url = normalize_app_url(saved)
    else:
        app_url = resolve_app_url(facts).app_url
    payload["appUrl"] = app_url
    return {"settings": payload, "appUrl": app_url}


def measurement_templates(session: Session, *, shop: str, media_storage: MediaStorage) -> list[dict[str, Any]]:
    stmt = (
        select(SizeChartTemplate)
        .where(
            SizeChartTemplate.shop.in_(shop_variants(shop)),
            SizeChartTemplate.active.is_(True),
            SizeChartTemplate.kind == TemplateKindEnum.measurement,
        )
        .order_by(SizeChartTemplate.updated_at.desc())
    )
    return [measurement_template_payload(template, media_storage) for template in session.scalars(stmt).all()]


def measurement_template_payload(template: SizeChartTemplate, media_storage: MediaStorage) -> dict[str, Any]:
    chart_data = media_storage.normalize_chart_urls(dict(template.chart_data or {}))
    return {
        "id": template.id,
        "name": template.name,
        "category": chart_data.get("category") or template.category or "custom",
        "measurementFields": chart_data.get("measurementFields") or [],
        "fitPreferencesEnabled": bool(chart_data.get("fitPreferencesEnabled")),
        "stitchingNotesEnabled": bool(chart_data.get("stitchingNotesEnabled")),
        "fitPreferences": chart_data.get("fitPreferences"),
        "createdAt": template.created_at,
        "updatedAt": template.updated_at,
    }


def measurement_template(
    session: Session,
    *,
    shop: str,
    template_id: str,
    media_storage: MediaStorage,
) -> dict[str, Any]:
    template = TemplatesRepository(session).get_or_404(template_id=template_id, shop=shop)
    if template.kind != TemplateKindEnum.measurement:
        raise ValidationError("Not a measurement template")
    return measurement_template_payload(template, media_storage)
