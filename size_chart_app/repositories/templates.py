from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from size_chart_app.errors import DuplicateNameError, HasAssignmentsError, NotFoundError, ValidationError
from size_chart_app.identifiers import shop_variants
from size_chart_app.media_storage import MediaStorage
from size_chart_app.models import SizeChartTemplate, TemplateKindEnum
from size_chart_app.repositories.base import Repository
from size_chart_app.schemas import MeasurementChartData, TableChartData, dump_chart_data

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"name", "gender", "category", "description", "chart"}


def _kind_for_chart(chart: TableChartData | MeasurementChartData) -> TemplateKindEnum:
    return TemplateKindEnum(chart.kind)


def _validate_chart(chart: TableChartData | MeasurementChartData) -> None:
    if isinstance(chart, MeasurementChartData) and not chart.enabled_fields():
        raise ValidationError("At least one measurement field must be enabled")


class TemplatesRepository(Repository):
    def _name_taken(self, *, shop: str, name: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(SizeChartTemplate.id).where(
            SizeChartTemplate.shop.in_(shop_variants(shop)),
            SizeChartTemplate.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(SizeChartTemplate.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def get(self, *, template_id: str, shop: str) -> Optional[SizeChartTemplate]:
        stmt = (
            select(SizeChartTemplate)
            .options(selectinload(SizeChartTemplate.assignments))
            .where(
                SizeChartTemplate.id == template_id,
                SizeChartTemplate.shop.in_(shop_variants(shop)),
            )
        )
        return self.session.scalars(stmt).first()

    def get_or_404(self, *, template_id: str, shop: str) -> SizeChartTemplate:
        template = self.get(template_id=template_id, shop=shop)
        if template is None:
            raise NotFoundError("Template not found")
        return template

    def list(
        self,
        *,
        shop: str,
        gender: Optional[str] = None,
        category: Optional[str] = None,
        active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> list[SizeChartTemplate]:
        stmt = (
            select(SizeChartTemplate)
            .options(selectinload(SizeChartTemplate.assignments))
            .where(SizeChartTemplate.shop.in_(shop_variants(shop)))
        )
        if gender:
            stmt = stmt.where(SizeChartTemplate.gender == gender)
        if category:
            stmt = stmt.where(SizeChartTemplate.category == category)
        if active is not None:
            stmt = stmt.where(SizeChartTemplate.active.is_(active))
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(SizeChartTemplate.name).like(pattern),
                    func.lower(func.coalesce(SizeChartTemplate.description, "")).like(pattern),
                )
            )
        stmt = stmt.order_by(SizeChartTemplate.created_at.desc())
        return list(self.session.scalars(stmt).all())

    @staticmethod
    def partition(
        templates: list[SizeChartTemplate],
    ) -> tuple[list[SizeChartTemplate], list[SizeChartTemplate]]:
        table = [t for t in templates if t.kind == TemplateKindEnum.table]
        measurement = [t for t in templates if t.kind == TemplateKindEnum.measurement]
        return table, measurement

    def create(
        self,
        *,
        shop: str,
        name: Optional[str],
        gender: Optional[str],
        chart: TableChartData | MeasurementChartData,
        category: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SizeChartTemplate:
        if not shop:
            raise ValidationError("Shop information is missing. Please try logging in again.")
        trimmed_name = (name or "").strip()
        if not trimmed_name:
            raise ValidationError("Chart name is required.")
        if not gender:
            raise ValidationError("Gender is required.")
        _validate_chart(chart)

        if self._name_taken(shop=shop, name=trimmed_name):
            raise DuplicateNameError(trimmed_name)

        template = SizeChartTemplate(
            shop=shop,
            name=trimmed_name,
            gender=gender,
            category=category or None,
            description=description or None,
            active=True,
            kind=_kind_for_chart(chart),
            chart_data=dump_chart_data(chart),
        )
        self.save(template)
        logger.info(
            "Created size chart template",
            extra={"shop": shop, "template_id": template.id, "kind": template.kind.value},
        )
        return template

    def update(self, *, template_id: str, shop: str, **fields: Any) -> SizeChartTemplate:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported template fields: {', '.join(sorted(unknown))}")

        template = self.get_or_404(template_id=template_id, shop=shop)

        if "name" in fields and fields["name"] is not None:
            trimmed_name = fields["name"].strip()
            if not trimmed_name:
                raise ValidationError("Chart name is required.")
            if self._name_taken(shop=shop, name=trimmed_name, exclude_id=template.id):
                raise DuplicateNameError(trimmed_name)
            template.name = trimmed_name

        if fields.get("gender"):
            template.gender = fields["gender"]
        for key in ("category", "description"):
            if key in fields and fields[key] is not None:
                setattr(template, key, fields[key] or None)

        chart = fields.get("chart")
        if chart is not None:
            _validate_chart(chart)
            new_kind = _kind_for_chart(chart)
            if new_kind != template.kind and template.assignments:
                raise ValidationError(
                    "Cannot change the chart type of a template that is assigned to products."
                )
            template.kind = new_kind
            template.chart_data = dump_chart_data(chart)

        return self.save(template)

    def toggle_active(self, *, template_id: str, shop: str, active: Optional[bool] = None) -> SizeChartTemplate:
        template = self.get_or_404(template_id=template_id, shop=shop)
        template.active = (not template.active) if active is None else active
        return self.save(template)

    def delete(self, *, template_id: str, shop: str, media_storage: Optional[MediaStorage] = None) -> None:
        template = self.get_or_404(template_id=template_id, shop=shop)

        if template.assignments:
            raise HasAssignmentsError(
                template_name=template.name,
                assignment_count=len(template.assignments),
                product_titles=[a.product_title or a.product_id for a in template.assignments[:3]],
            )

        if media_storage is not None:
            self._delete_template_images(template, media_storage)

        self.session.delete(template)
        self.session.commit()
        logger.info("Deleted size chart template", extra={"shop": shop, "template_id": template_id})

    @staticmethod
    def _delete_template_images(template: SizeChartTemplate, media_storage: MediaStorage) -> None:
        chart_data = template.chart_data or {}
        urls: list[str] = []
        measurement_file = chart_data.get("measurementFile")
        if isinstance(measurement_file, str):
            urls.append(measurement_file)
        for field in chart_data.get("measurementFields") or []:
            if not isinstance(field, dict):
                continue
            image_url = field.get("guideImageUrl") or field.get("guideImage")
            if isinstance(image_url, str) and image_url.startswith("https://"):
                urls.append(image_url)

        for url in urls:
            try:
                media_storage.delete_image(url)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Error deleting template image during template deletion",
                    extra={"template_id": template.id, "url": url},
                )
