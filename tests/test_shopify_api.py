from __future__ import annotations

import asyncio

import pytest

from size_chart_app.shopify_api import ShopifyApiClient, ShopifyApiError


def test_get_product_summary_normalizes_gid():
    client = ShopifyApiClient()
    seen: list[dict] = []

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        seen.append(payload)
        return {"product": {"id": "gid://shopify/Product/555", "title": "Oxford Shirt"}}

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    result = asyncio.run(
        client.get_product_summary(shop_domain="acme.myshopify.com", access_token="token", product_id="555")
    )

    assert result == {"id": "555", "title": "Oxford Shirt"}
    assert seen[0]["variables"] == {"id": "gid://shopify/Product/555"}


def test_get_product_summary_returns_none_for_missing_product():
    client = ShopifyApiClient()

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        return {"product": None}

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    result = asyncio.run(
        client.get_product_summary(shop_domain="acme.myshopify.com", access_token="token", product_id="1")
    )
    assert result is None


def test_list_products_follows_pagination():
    client = ShopifyApiClient()
    cursors: list = []

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        cursor = payload["variables"]["after"]
        cursors.append(cursor)
        if cursor is None:
            return {
                "products": {
                    "nodes": [{"id": "gid://shopify/Product/1", "title": "One"}],
                    "pageInfo": {"hasNextPage": True, "endCursor": "abc"},
                }
            }
        return {
            "products": {
                "nodes": [{"id": "gid://shopify/Product/2", "title": "Two"}],
                "pageInfo": {"hasNextPage": False, "endCursor": None},
            }
        }

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    products = asyncio.run(client.list_products(shop_domain="acme.myshopify.com", access_token="token"))

    assert [p["title"] for p in products] == ["One", "Two"]
    assert cursors == [None, "abc"]


def test_get_product_rest_raises_404_when_product_missing():
    client = ShopifyApiClient()

    async def fake_admin_rest(*, method: str, shop_domain: str, access_token: str, endpoint: str, payload=None):
        assert endpoint == "/products/42.json"
        return {}

    client._admin_rest = fake_admin_rest  # type: ignore[method-assign]

    with pytest.raises(ShopifyApiError) as excinfo:
        asyncio.run(
            client.get_product_rest(
                shop_domain="acme.myshopify.com",
                access_token="token",
                product_id="gid://shopify/Product/42",
            )
        )
    assert excinfo.value.status_code == 404


def test_create_draft_order_wraps_payload():
    client = ShopifyApiClient()
    calls: list[dict] = []

    async def fake_admin_rest(*, method: str, shop_domain: str, access_token: str, endpoint: str, payload=None):
        calls.append({"method": method, "endpoint": endpoint, "payload": payload})
        return {"draft_order": {"id": 1, "invoice_url": "https://acme.myshopify.com/invoices/1"}}

    client._admin_rest = fake_admin_rest  # type: ignore[method-assign]

    created = asyncio.run(
        client.create_draft_order(
            shop_domain="acme.myshopify.com",
            access_token="token",
            draft_order={"line_items": []},
        )
    )

    assert created["id"] == 1
    assert calls == [{"method": "POST", "endpoint": "/draft_orders.json", "payload": {"draft_order": {"line_items": []}}}]


def test_create_draft_order_requires_draft_order_in_response():
    client = ShopifyApiClient()

    async def fake_admin_rest(**_kwargs):
        return {"errors": "nope"}

    client._admin_rest = fake_admin_rest  # type: ignore[method-assign]

    with pytest.raises(ShopifyApiError, match="missing draft_order"):
        asyncio.run(
            client.create_draft_order(shop_domain="acme.myshopify.com", access_token="token", draft_order={})
        )


def test_get_order_tags_splits_string_tags_and_404s_missing_orders():
    client = ShopifyApiClient()
    responses = [{"order": {"id": "gid://shopify/Order/1", "tags": "vip, ,custom-order"}}, {"order": None}]

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        return responses.pop(0)

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    tags = asyncio.run(
        client.get_order_tags(shop_domain="acme.myshopify.com", access_token="token", order_gid="gid://shopify/Order/1")
    )
    assert tags == ["vip", "custom-order"]

    with pytest.raises(ShopifyApiError) as excinfo:
        asyncio.run(
            client.get_order_tags(
                shop_domain="acme.myshopify.com", access_token="token", order_gid="gid://shopify/Order/2"
            )
        )
    assert excinfo.value.status_code == 404


def test_update_order_tags_sends_joined_tags_and_raises_user_errors():
    client = ShopifyApiClient()
    seen: list[dict] = []
    responses = [
        {"orderUpdate": {"order": {"id": "gid://shopify/Order/1", "tags": ["vip", "ready-to-dispatch"]}, "userErrors": []}},
        {"orderUpdate": {"order": None, "userErrors": [{"field": ["tags"], "message": "Tags are invalid"}]}},
    ]

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        seen.append(payload)
        return responses.pop(0)

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    def update():
        return asyncio.run(
            client.update_order_tags(
                shop_domain="acme.myshopify.com",
                access_token="token",
                order_gid="gid://shopify/Order/1",
                tags=["vip", "ready-to-dispatch"],
            )
        )

    assert update() == ["vip", "ready-to-dispatch"]
    assert seen[0]["variables"] == {"input": {"id": "gid://shopify/Order/1", "tags": "vip, ready-to-dispatch"}}

    with pytest.raises(ShopifyApiError, match="Tags are invalid"):
        update()
