from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select

from size_chart_app.errors import ShopNotInstalledError
from size_chart_app.identifiers import shop_variants
from size_chart_app.models import ShopSession
from size_chart_app.repositories.base import Repository


class ShopSessionsRepository(Repository):
    def latest_for_shop(self, *, shop: str) -> Optional[ShopSession]:
        """Most recently issued credential, probing each stored shop form in turn."""
        for variant in shop_variants(shop):
            stmt = (
                select(ShopSession)
                .where(ShopSession.shop == variant)
                .order_by(ShopSession.expires.desc().nulls_first(), ShopSession.created_at.desc())
            )
            record = self.session.scalars(stmt).first()
            if record is not None:
                return record
        return None

    def delete_for_shop(self, *, shop: str) -> int:
        result = self.session.execute(delete(ShopSession).where(ShopSession.shop.in_(shop_variants(shop))))
        self.session.commit()
        return result.rowcount or 0

    def require_access_token(self, *, shop: str) -> str:
        record = self.latest_for_shop(shop=shop)
        if record is None or not record.access_token:
            raise ShopNotInstalledError()
        return record.access_token
