from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from size_chart_app.db import get_session
from size_chart_app.deps import get_media_storage
from size_chart_app.errors import ValidationError
from size_chart_app.media_storage import MediaStorage
from size_chart_app.security import ShopContext, require_shop_session
from size_chart_app.services import storefront

router = APIRouter(prefix="/api/measurement-template", tags=["measurement-templates"])


@router.get("")
def get_measurement_template(
    id: Optional[str] = None,
    auth: ShopContext = Depends(require_shop_session),
    session: Session = Depends(get_session),
    media_storage: MediaStorage = Depends(get_media_storage),
) -> dict[str, Any]:
    if not id or not id.strip():
        raise ValidationError("Template ID required")
    template = storefront.measurement_template(
        session,
        shop=auth.shop,
        template_id=id.strip(),
        media_storage=media_storage,
    )
    return {"template": template}
