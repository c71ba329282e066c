from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class MeasurementField(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str = Field(min_length=1)
    unit: str = "in"
    min: float | None = None
    max: float | None = None
    required: bool = False
    enabled: bool = True
    order: int = 0
    customInstructions: str | None = None
    guideImage: str | None = None
    guideImageUrl: str | None = None

    @model_validator(mode="after")
    def validate_range(self) -> "MeasurementField":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Measurement field '{self.name}' has min greater than max")
        return self


class TableChartData(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["table"] = "table"
    unit: str | None = None
    columns: list[dict[str, Any]] = Field(default_factory=list)
    sizeData: list[dict[str, Any]] = Field(default_factory=list)
    measurementFile: str | None = None


class MeasurementChartData(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["measurement"] = "measurement"
    category: str = "custom"
    measurementFields: list[MeasurementField] = Field(default_factory=list)
    fitPreferencesEnabled: bool = False
    stitchingNotesEnabled: bool = False
    fitPreferences: Any = None
    measurementFile: str | None = None

    def enabled_fields(self) -> list[MeasurementField]:
        return sorted((field for field in self.measurementFields if field.enabled), key=lambda f: f.order)


ChartData = Annotated[Union[TableChartData, MeasurementChartData], Field(discriminator="kind")]
_chart_data_adapter: TypeAdapter[TableChartData | MeasurementChartData] = TypeAdapter(ChartData)


def parse_chart_data(raw: dict[str, Any] | None) -> TableChartData | MeasurementChartData:
    """Validate a chart payload, accepting the admin UI's ``isMeasurementTemplate`` flag."""
    data = dict(raw or {})
    legacy_flag = data.pop("isMeasurementTemplate", None)
    if "kind" not in data:
        data["kind"] = "measurement" if legacy_flag is True else "table"
    return _chart_data_adapter.validate_python(data)


def dump_chart_data(chart: TableChartData | MeasurementChartData) -> dict[str, Any]:
    return chart.model_dump(mode="json", exclude_none=True)


class ProductAssignmentSummary(BaseModel):
    productId: str
    productTitle: str | None = None


class TemplateResponse(BaseModel):
    id: str
    shop: str
    name: str
    gender: str
    category: str | None = None
    description: str | None = None
    active: bool
    kind: Literal["table", "measurement"]
    chartData: dict[str, Any]
    productAssignments: list[ProductAssignmentSummary] = Field(default_factory=list)
    createdAt: datetime
    updatedAt: datetime


class TemplateListResponse(BaseModel):
    tableTemplates: list[TemplateResponse]
    measurementTemplates: list[TemplateResponse]
    products: list[dict[str, Any]] = Field(default_factory=list)
    productTemplateMap: dict[str, dict[str, Any]] = Field(default_factory=dict)


class AssignmentConflict(BaseModel):
    productId: str
    productTitle: str | None = None
    previousTemplateId: str
    previousTemplateName: str
    newTemplateName: str


class AssignProductsResponse(BaseModel):
    success: bool = True
    assigned: int
    removed: int
    productsWithExistingAssignments: list[AssignmentConflict] = Field(default_factory=list)


class ChartTypesResponse(BaseModel):
    hasTableTemplate: bool
    hasCustomTemplate: bool


class AppUrlResponse(BaseModel):
    appUrl: str
    detected: bool
    source: str
    warning: str | None = None
    error: str | None = None


class ThemeSettingsPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    buttonText: str = "Size Chart"
    customSizeButtonText: str = "Custom Size"
    buttonSize: str = "large"
    buttonWidth: str = "fit"
    alignment: str = "center"
    buttonType: str = "primary"
    iconType: str = "none"
    iconPosition: str = "left"
    backgroundColor: str = "#ffffff"
    borderColor: str = "#000000"
    textColor: str = "#000000"
    borderRadius: int = Field(default=0, ge=0)
    marginTop: int = 20
    marginBottom: int = 20
    marginLeft: int = 20
    marginRight: int = 20
    appUrl: str | None = None

    @field_validator("appUrl")
    @classmethod
    def blank_app_url_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class DraftOrderRequest(BaseModel):
    productId: str | int
    variantId: str | int | None = None
    measurements: dict[str, Any]
    quantity: int = 1

    @field_validator("productId")
    @classmethod
    def require_product_id(cls, value: str | int) -> str | int:
        if isinstance(value, str) and not value.strip():
            raise ValueError("Product ID is required")
        return value

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, value: Any) -> int:
        try:
            quantity = int(value)
        except (TypeError, ValueError):
            return 1
        return quantity if quantity > 0 else 1

    @field_validator("measurements")
    @classmethod
    def require_measurements(cls, value: dict[str, Any]) -> dict[str, Any]:
        if not value:
            raise ValueError("Measurements are required")
        return value


class DraftOrderResponse(BaseModel):
    success: bool = True
    invoiceUrl: str
    draftOrderId: int | str | None = None
    draftOrderName: str | None = None
    message: str | None = None


class SubscriptionUpdateRequest(BaseModel):
    planName: str = Field(min_length=1)
