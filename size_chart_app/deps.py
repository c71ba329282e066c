from __future__ import annotations

from fastapi import Request

from size_chart_app.media_storage import MediaStorage
from size_chart_app.shopify_api import ShopifyApiClient


def get_shopify_api(request: Request) -> ShopifyApiClient:
    return request.app.state.shopify_api


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media_storage
