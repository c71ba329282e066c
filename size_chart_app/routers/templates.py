from __future__ import annotations

import json
import logging
from typing import Any, Optional

import pydantic
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from size_chart_app.db import get_session
from size_chart_app.deps import get_media_storage, get_shopify_api
from size_chart_app.errors import ShopNotInstalledError, ValidationError
from size_chart_app.media_storage import MediaStorage
from size_chart_app.models import SizeChartTemplate, TemplateKindEnum
from size_chart_app.repositories import ShopSessionsRepository, TemplatesRepository
from size_chart_app.schemas import (
    AssignProductsResponse,
    ProductAssignmentSummary,
    TemplateListResponse,
    TemplateResponse,
    parse_chart_data,
)
from size_chart_app.security import ShopContext, require_shop_session
from size_chart_app.services.assignments import AssignmentReconciler
from size_chart_app.services.template_images import resolve_chart_images
from size_chart_app.shopify_api import ShopifyApiClient, ShopifyApiError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/app/templates", tags=["templates"])


def serialize_template(template: SizeChartTemplate, media_storage: MediaStorage) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        shop=template.shop,
        name=template.name,
        gender=template.gender,
        category=template.category,
        description=template.description,
        active=template.active,
        kind=template.kind.value,
        chartData=media_storage.normalize_chart_urls(dict(template.chart_data or {})),
        productAssignments=[
            ProductAssignmentSummary(productId=a.product_id, productTitle=a.product_title)
            for a in template.assignments
        ],
        createdAt=template.created_at,
        updatedAt=template.updated_at,
    )


def _access_token(session: Session, shop: str) -> str:
    return ShopSessionsRepository(session).require_access_token(shop=shop)


def _product_template_map(templates: list[SizeChartTemplate]) -> dict[str, dict[str, Any]]:
    mapping: dict[str, dict[str, Any]] = {}
    for template in templates:
        slot = "customTemplate" if template.kind == TemplateKindEnum.measurement else "tableTemplate"
        for assignment in template.assignments:
            entry = mapping.setdefault(assignment.product_id, {"tableTemplate": None, "customTemplate": None})
            entry[slot] = {"templateId": template.id, "templateName": template.name}
    return mapping


def _form_text(form: Any, key: str) -> Optional[str]:
    value = form.get(key)
    if value is None or not isinstance(value, str):
        return None
    return value


def _load_json_field(form: Any, key: str, default: Any) -> Any:
    raw = _form_text(form, key)
    if raw is None or not raw.strip():
        return default
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid JSON in field '{key}'") from exc


async def _chart_from_form(form: Any, media_storage: MediaStorage):
    raw_chart = _load_json_field(form, "chartData", {})
    if not isinstance(raw_chart, dict):
        raise ValidationError("chartData must be a JSON object")
    resolved = await resolve_chart_images(raw_chart, form, media_storage)
    try:
        return parse_chart_data(resolved)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid chart data: {exc.errors()[0].get('msg')}") from exc


@router.get("")
async def list_templates(
    gender: Optional[str] = None,
    category: Optional[str] = None,
    active: Optional[bool] = None,
    search: Optional[str] = None,
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
    shopify_api: ShopifyApiClient = Depends(get_shopify_api),
    media_storage: MediaStorage = Depends(get_media_storage),
) -> TemplateListResponse:
    repo = TemplatesRepository(session)
    templates = repo.list(shop=auth.shop, gender=gender, category=category, active=active, search=search)
    table, measurement = repo.partition(templates)

    products: list[dict[str, Any]] = []
    try:
        products = await shopify_api.list_products(
            shop_domain=auth.shop,
            access_token=_access_token(session, auth.shop),
        )
    except (ShopifyApiError, ShopNotInstalledError) as exc:
        logger.warning("Product catalog unavailable for templates page", extra={"shop": auth.shop, "error": str(exc)})

    return TemplateListResponse(
        tableTemplates=[serialize_template(t, media_storage) for t in table],
        measurementTemplates=[serialize_template(t, media_storage) for t in measurement],
        products=products,
        productTemplateMap=_product_template_map(templates),
    )


@router.post("")
async def template_action(
    request: Request,
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
    shopify_api: ShopifyApiClient = Depends(get_shopify_api),
    media_storage: MediaStorage = Depends(get_media_storage),
) -> dict[str, Any]:
    form = await request.form()
    intent = _form_text(form, "intent")
    repo = TemplatesRepository(session)

    if intent == "create":
        chart = await _chart_from_form(form, media_storage)
        template = repo.create(
            shop=auth.shop,
            name=_form_text(form, "name"),
            gender=_form_text(form, "gender"),
            category=_form_text(form, "category"),
            description=_form_text(form, "description"),
            chart=chart,
        )
        return {"success": True, "template": serialize_template(template, media_storage).model_dump(mode="json")}

    if intent == "update":
        template_id = _form_text(form, "id")
        if not template_id:
            raise ValidationError("Template id is required")
        fields: dict[str, Any] = {
            key: _form_text(form, key) for key in ("name", "gender", "category", "description") if key in form
        }
        if "chartData" in form:
            fields["chart"] = await _chart_from_form(form, media_storage)
        template = repo.update(template_id=template_id, shop=auth.shop, **fields)
        return {"success": True, "template": serialize_template(template, media_storage).model_dump(mode="json")}

    if intent == "toggle-active":
        template_id = _form_text(form, "id")
        if not template_id:
            raise ValidationError("Template id is required")
        active_raw = _form_text(form, "active")
        active = None if active_raw is None else active_raw == "true"
        template = repo.toggle_active(template_id=template_id, shop=auth.shop, active=active)
        return {"success": True, "template": serialize_template(template, media_storage).model_dump(mode="json")}

    if intent == "delete":
        template_id = _form_text(form, "id")
        if not template_id:
            raise ValidationError("Template id is required")
        repo.delete(template_id=template_id, shop=auth.shop, media_storage=media_storage)
        return {"success": True}

    if intent == "assign-products":
        template_id = _form_text(form, "templateId")
        if not template_id:
            raise ValidationError("Template id is required")
        product_ids = _load_json_field(form, "productIds", [])
        if not isinstance(product_ids, list):
            raise ValidationError("productIds must be a JSON array")
        result = await AssignmentReconciler(session, shopify_api).reconcile(
            shop=auth.shop,
            access_token=_access_token(session, auth.shop),
            template_id=template_id,
            product_ids=product_ids,
        )
        return AssignProductsResponse(
            assigned=result.added,
            removed=result.removed,
            productsWithExistingAssignments=result.conflicts,
        ).model_dump(mode="json")

    raise ValidationError("Invalid intent")
