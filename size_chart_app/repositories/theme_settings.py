from __future__ import annotations

from typing import Optional

from sqlalchemy import select

from size_chart_app.identifiers import shop_variants
from size_chart_app.models import ThemeSettings
from size_chart_app.repositories.base import Repository
from size_chart_app.schemas import ThemeSettingsPayload

_COLUMN_BY_FIELD = {
    "buttonText": "button_text",
    "customSizeButtonText": "custom_size_button_text",
    "buttonSize": "button_size",
    "buttonWidth": "button_width",
    "alignment": "alignment",
    "buttonType": "button_type",
    "iconType": "icon_type",
    "iconPosition": "icon_position",
    "backgroundColor": "background_color",
    "borderColor": "border_color",
    "textColor": "text_color",
    "borderRadius": "border_radius",
    "marginTop": "margin_top",
    "marginBottom": "margin_bottom",
    "marginLeft": "margin_left",
    "marginRight": "margin_right",
    "appUrl": "app_url",
}


def settings_to_payload(row: Optional[ThemeSettings]) -> ThemeSettingsPayload:
    if row is None:
        return ThemeSettingsPayload()
    return ThemeSettingsPayload(
        **{field: getattr(row, column) for field, column in _COLUMN_BY_FIELD.items()}
    )


class ThemeSettingsRepository(Repository):
    def get(self, *, shop: str) -> Optional[ThemeSettings]:
        stmt = (
            select(ThemeSettings)
            .where(ThemeSettings.shop.in_(shop_variants(shop)))
            .order_by(ThemeSettings.updated_at.desc())
        )
        return self.session.scalars(stmt).first()

    def upsert(self, *, shop: str, payload: ThemeSettingsPayload) -> ThemeSettings:
        row = self.get(shop=shop)
        if row is None:
            row = ThemeSettings(shop=shop)
        values = payload.model_dump()
        for field, column in _COLUMN_BY_FIELD.items():
            setattr(row, column, values[field])
        return self.save(row)
