from __future__ import annotations

import traceback

from size_chart_app.config import settings


class SizeChartError(RuntimeError):
    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        super().__init__(message or self.error)
        self.message = message or self.error
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict:
        return {"success": False, "error": self.message, "message": self.message}


class ValidationError(SizeChartError):
    status_code = 400
    error = "Invalid request"


class DuplicateNameError(ValidationError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f'A template with the name "{name}" already exists. Please use a different name.'
        )
        self.name = name


class NotFoundError(SizeChartError):
    status_code = 404
    error = "Not found"


class ProductNotFoundError(NotFoundError):
    error = "Product not found"


class UnauthorizedError(SizeChartError):
    status_code = 401
    error = "Unauthorized"


class ShopNotInstalledError(UnauthorizedError):
    error = "App not installed"

    def to_payload(self) -> dict:
        return {
            "success": False,
            "error": self.error,
            "message": (
                "Please ensure the Size Chart app is installed on this shop. The app needs to be "
                "installed and authorized to create custom orders."
            ),
        }


class SessionExpiredError(UnauthorizedError):
    error = "Session expired"

    def to_payload(self) -> dict:
        return {
            "success": False,
            "error": self.error,
            "message": "The app session has expired. Please reinstall the app or contact support.",
        }


class HasAssignmentsError(SizeChartError):
    status_code = 409
    error = "Template has product assignments"

    def __init__(self, *, template_name: str, assignment_count: int, product_titles: list[str]) -> None:
        shown = ", ".join(title or "Untitled product" for title in product_titles[:3])
        more = f" and {assignment_count - 3} more" if assignment_count > 3 else ""
        plural = "s" if assignment_count > 1 else ""
        super().__init__(
            f'Cannot delete template "{template_name}". It is currently assigned to '
            f"{assignment_count} product{plural}: {shown}{more}. "
            "Please remove the template from all products before deleting."
        )
        self.assignment_count = assignment_count
        self.product_titles = product_titles[:3]

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["hasAssignments"] = True
        payload["assignmentCount"] = self.assignment_count
        payload["productTitles"] = self.product_titles
        return payload


class UpstreamError(SizeChartError):
    status_code = 500
    error = "Shopify API request failed"


class InternalError(SizeChartError):
    status_code = 500


def error_payload(exc: Exception) -> dict:
    """JSON body for a failed request; stack traces are only exposed outside production."""
    if isinstance(exc, SizeChartError):
        payload = exc.to_payload()
    else:
        payload = {"success": False, "error": InternalError.error, "message": str(exc) or InternalError.error}
    if not settings.is_production:
        payload["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return payload


def error_status(exc: Exception) -> int:
    return exc.status_code if isinstance(exc, SizeChartError) else 500
