from __future__ import annotations

import base64
import hashlib
import hmac
import json

from conftest import TEST_SHOP
from size_chart_app.config import settings
from size_chart_app.models import ProductAssignment, ShopSession, SizeChartTemplate, Subscription, ThemeSettings
from size_chart_app.repositories import TemplatesRepository
from size_chart_app.schemas import parse_chart_data
from size_chart_app.services.subscriptions import get_shop_subscription


def _signed(payload: dict, shop: str = TEST_SHOP) -> dict:
    body = json.dumps(payload).encode("utf-8")
    digest = hmac.new(settings.SHOPIFY_API_SECRET.encode("utf-8"), body, hashlib.sha256).digest()
    return {
        "content": body,
        "headers": {
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": base64.b64encode(digest).decode("utf-8"),
            "X-Shopify-Shop-Domain": shop,
        },
    }


def _seed_shop(db_session, shop: str) -> None:
    template = TemplatesRepository(db_session).create(
        shop=shop, name="Shirts", gender="male", chart=parse_chart_data({"columns": [], "sizeData": []})
    )
    db_session.add(ProductAssignment(shop=shop, template_id=template.id, product_id="1", product_title="Tee"))
    db_session.add(ThemeSettings(shop=shop))
    get_shop_subscription(db_session, shop=shop)
    db_session.add(ShopSession(id=f"offline_{shop}", shop=shop, access_token="shpat_x"))
    db_session.commit()


def test_shop_redact_removes_all_shop_data(api_client, db_session):
    _seed_shop(db_session, "acme")
    _seed_shop(db_session, "other.myshopify.com")

    response = api_client.post("/webhooks/shop/redact", **_signed({"shop_id": 1, "shop_domain": TEST_SHOP}))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    db_session.expire_all()
    for model in (ProductAssignment, SizeChartTemplate, ThemeSettings, Subscription, ShopSession):
        shops = {row.shop for row in db_session.query(model).all()}
        assert shops == {"other.myshopify.com"}


def test_shop_redact_acknowledges_even_when_deletion_fails(api_client, db_session, monkeypatch):
    def exploding_redact(_session, *, shop: str):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr("size_chart_app.routers.webhooks.redact_shop", exploding_redact)

    response = api_client.post("/webhooks/shop/redact", **_signed({"shop_domain": TEST_SHOP}))

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_shop_redact_without_shop_is_acknowledged(api_client, db_session):
    _seed_shop(db_session, TEST_SHOP)
    request = _signed({"shop_id": 1})
    del request["headers"]["X-Shopify-Shop-Domain"]

    response = api_client.post("/webhooks/shop/redact", **request)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    db_session.expire_all()
    assert db_session.query(SizeChartTemplate).count() == 1


def test_invalid_hmac_is_rejected(api_client, db_session):
    signed = _signed({"shop_domain": TEST_SHOP})
    signed["headers"]["X-Shopify-Hmac-Sha256"] = "bm90LXRoZS1yaWdodC1kaWdlc3Q="

    response = api_client.post("/webhooks/shop/redact", **signed)

    assert response.status_code == 401


def test_customer_webhooks_acknowledge(api_client, db_session):
    payload = {"shop_domain": TEST_SHOP, "customer": {"id": 7, "email": "a@example.com"}}
    for path in ("/webhooks/customers/redact", "/webhooks/customers/data_request"):
        response = api_client.post(path, **_signed(payload))
        assert response.status_code == 200
        assert response.json() == {"received": True}


def test_shop_update_acknowledges(api_client, db_session):
    response = api_client.post("/webhooks/shop/update", **_signed({"domain": "shop.acme.example"}))
    assert response.status_code == 200


def test_app_uninstalled_drops_credentials_only(api_client, db_session, shop_credential):
    _seed_shop(db_session, "acme")

    response = api_client.post("/webhooks/app/uninstalled", **_signed({"id": 1}, shop="acme.myshopify.com"))

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.query(ShopSession).count() == 0
    assert db_session.query(SizeChartTemplate).count() == 1
