from __future__ import annotations

from typing import Any

import httpx

from size_chart_app.config import settings
from size_chart_app.identifiers import normalize_product_id, product_gid

_PRODUCTS_PAGE_SIZE = 50


class ShopifyApiError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class ShopifyApiClient:
    def __init__(self) -> None:
        self._timeout = settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS

    async def get_product_summary(
        self,
        *,
        shop_domain: str,
        access_token: str,
        product_id: str,
    ) -> dict[str, str] | None:
        query = """
        query getProduct($id: ID!) {
            product(id: $id) {
                id
                title
            }
        }
        """
        payload = {"query": query, "variables": {"id": product_gid(product_id)}}
        response = await self._admin_graphql(
            shop_domain=shop_domain,
            access_token=access_token,
            payload=payload,
        )
        product = response.get("product")
        if not isinstance(product, dict):
            return None

        found_id = product.get("id")
        title = product.get("title")
        if not isinstance(found_id, str) or not found_id:
            raise ShopifyApiError(message="Product lookup response is missing product.id")
        if not isinstance(title, str):
            raise ShopifyApiError(message="Product lookup response is missing product.title")
        return {"id": normalize_product_id(found_id), "title": title}

    async def list_products(
        self,
        *,
        shop_domain: str,
        access_token: str,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        max_products = limit or settings.LIST_PRODUCTS_LIMIT
        graphql_query = """
        query getProducts($first: Int!, $after: String) {
            products(first: $first, after: $after) {
                nodes {
                    id
                    title
                    handle
                    status
                    vendor
                    productType
                    featuredImage {
                        url
                        altText
                    }
                }
                pageInfo {
                    hasNextPage
                    endCursor
                }
            }
        }
        """

        products: list[dict[str, Any]] = []
        cursor: str | None = None
        while len(products) < max_products:
            payload = {
                "query": graphql_query,
                "variables": {"first": _PRODUCTS_PAGE_SIZE, "after": cursor},
            }
            response = await self._admin_graphql(
                shop_domain=shop_domain,
                access_token=access_token,
                payload=payload,
            )
            connection = response.get("products") or {}
            nodes = connection.get("nodes") or []
            if not isinstance(nodes, list):
                raise ShopifyApiError(message="Product list response is invalid")
            products.extend(node for node in nodes if isinstance(node, dict))

            page_info = connection.get("pageInfo") or {}
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                break

        return products[:max_products]

    async def get_product_rest(
        self,
        *,
        shop_domain: str,
        access_token: str,
        product_id: str,
    ) -> dict[str, Any]:
        numeric_id = normalize_product_id(product_id)
        response = await self._admin_rest(
            method="GET",
            shop_domain=shop_domain,
            access_token=access_token,
            endpoint=f"/products/{numeric_id}.json",
        )
        product = response.get("product")
        if not isinstance(product, dict):
            raise ShopifyApiError(message=f"Product not found for id: {numeric_id}", status_code=404)
        return product

    async def create_draft_order(
        self,
        *,
        shop_domain: str,
        access_token: str,
        draft_order: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._admin_rest(
            method="POST",
            shop_domain=shop_domain,
            access_token=access_token,
            endpoint="/draft_orders.json",
            payload={"draft_order": draft_order},
        )
        created = response.get("draft_order")
        if not isinstance(created, dict):
            raise ShopifyApiError(message="Draft order response is missing draft_order")
        return created

    async def get_order_tags(
        self,
        *,
        shop_domain: str,
        access_token: str,
        order_gid: str,
    ) -> list[str]:
        query = """
        query getOrder($id: ID!) {
            order(id: $id) {
                id
                tags
            }
        }
        """
        response = await self._admin_graphql(
            shop_domain=shop_domain,
            access_token=access_token,
            payload={"query": query, "variables": {"id": order_gid}},
        )
        order = response.get("order")
        if not isinstance(order, dict):
            raise ShopifyApiError(message=f"Order not found for id: {order_gid}", status_code=404)

        tags = order.get("tags") or []
        if isinstance(tags, str):
            tags = tags.split(",")
        return [str(tag).strip() for tag in tags if str(tag).strip()]

    async def update_order_tags(
        self,
        *,
        shop_domain: str,
        access_token: str,
        order_gid: str,
        tags: list[str],
    ) -> list[str]:
        mutation = """
        mutation orderUpdate($input: OrderInput!) {
            orderUpdate(input: $input) {
                order {
                    id
                    tags
                }
                userErrors {
                    field
                    message
                }
            }
        }
        """
        response = await self._admin_graphql(
            shop_domain=shop_domain,
            access_token=access_token,
            payload={"query": mutation, "variables": {"input": {"id": order_gid, "tags": ", ".join(tags)}}},
        )
        result = response.get("orderUpdate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            messages = "; ".join(str(error.get("message")) for error in user_errors if isinstance(error, dict))
            raise ShopifyApiError(message=f"Failed to update order tags: {messages}")
        order = result.get("order")
        if not isinstance(order, dict):
            raise ShopifyApiError(message="Order update response is missing order")
        return list(order.get("tags") or [])

    async def _admin_graphql(
        self,
        *,
        shop_domain: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"https://{shop_domain}/admin/api/{settings.SHOPIFY_ADMIN_API_VERSION}/graphql.json"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": access_token,
        }
        response = await self._request_json(method="POST", url=url, payload=payload, headers=headers)
        data = response.get("data")
        errors = response.get("errors")
        if errors:
            raise ShopifyApiError(message=f"Admin GraphQL errors: {errors}")
        if not isinstance(data, dict):
            raise ShopifyApiError(message="Admin GraphQL response is missing data")
        return data

    async def _admin_rest(
        self,
        *,
        method: str,
        shop_domain: str,
        access_token: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"https://{shop_domain}/admin/api/{settings.SHOPIFY_ADMIN_API_VERSION}{endpoint}"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": access_token,
        }
        return await self._request_json(method=method, url=url, payload=payload, headers=headers)

    async def _request_json(
        self,
        *,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(method, url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise ShopifyApiError(message=f"Network error while calling Shopify: {exc}") from exc

        if response.status_code >= 400:
            raise ShopifyApiError(
                message=f"Shopify API call failed ({response.status_code}): {response.text}",
                status_code=404 if response.status_code == 404 else 502,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ShopifyApiError(message="Shopify API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise ShopifyApiError(message="Shopify API response must be a JSON object")
        return body
