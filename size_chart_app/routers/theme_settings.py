from __future__ import annotations

import json
from typing import Any

import pydantic
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from size_chart_app.db import get_session
from size_chart_app.errors import ValidationError
from size_chart_app.repositories import ThemeSettingsRepository
from size_chart_app.repositories.theme_settings import settings_to_payload
from size_chart_app.schemas import ThemeSettingsPayload
from size_chart_app.security import ShopContext, require_shop_session

router = APIRouter(prefix="/api/theme-settings", tags=["theme-settings"])

_MARGIN_FIELDS = {"top": "marginTop", "bottom": "marginBottom", "left": "marginLeft", "right": "marginRight"}


def _to_admin_format(payload: ThemeSettingsPayload) -> dict[str, Any]:
    data = payload.model_dump()
    data["margin"] = {side: data.pop(field) for side, field in _MARGIN_FIELDS.items()}
    return data


def _from_admin_format(raw: dict[str, Any]) -> ThemeSettingsPayload:
    data = {key: value for key, value in raw.items() if value not in (None, "")}
    margin = data.pop("margin", None)
    if isinstance(margin, dict):
        for side, field in _MARGIN_FIELDS.items():
            if margin.get(side) not in (None, ""):
                data[field] = margin[side]
    try:
        return ThemeSettingsPayload(**data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid theme settings: {exc.errors()[0].get('msg')}") from exc


@router.get("")
def get_theme_settings(
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    row = ThemeSettingsRepository(session).get(shop=auth.shop)
    return {"settings": _to_admin_format(settings_to_payload(row))}


@router.post("")
async def save_theme_settings(
    request: Request,
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            raw = await request.json()
        except ValueError as exc:
            raise ValidationError("Request body must be valid JSON") from exc
    else:
        form = await request.form()
        settings_field = form.get("settings")
        try:
            raw = json.loads(settings_field) if isinstance(settings_field, str) and settings_field else {}
        except ValueError as exc:
            raise ValidationError("Invalid JSON in field 'settings'") from exc
    if not isinstance(raw, dict):
        raise ValidationError("Settings must be a JSON object")

    row = ThemeSettingsRepository(session).upsert(shop=auth.shop, payload=_from_admin_format(raw))
    return {"success": True, "settings": _to_admin_format(settings_to_payload(row))}
