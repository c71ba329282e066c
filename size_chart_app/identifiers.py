"""Shop and product identifier normalization.

Historical rows were written with either the bare shop handle
(``acme``) or the full domain (``acme.myshopify.com``), and product ids arrive
either as Admin API GIDs or as bare numeric strings. Everything stored or
compared goes through these helpers.
"""

from __future__ import annotations

from typing import Any

SHOP_DOMAIN_SUFFIX = ".myshopify.com"
_PRODUCT_GID_PREFIX = "gid://shopify/Product/"
_ORDER_GID_PREFIX = "gid://shopify/Order/"


def shop_variants(shop: str) -> list[str]:
    cleaned = shop.strip()
    if "." in cleaned:
        handle = cleaned.split(".")[0]
        return [cleaned] if handle == cleaned else [cleaned, handle]
    return [cleaned, f"{cleaned}{SHOP_DOMAIN_SUFFIX}"]


def canonical_shop_domain(shop: str) -> str:
    cleaned = shop.strip().lower()
    if "." in cleaned:
        return cleaned
    return f"{cleaned}{SHOP_DOMAIN_SUFFIX}"


def _last_segment(value: Any) -> str:
    text = str(value)
    if "/" in text:
        return text.split("/")[-1]
    return text


def normalize_product_id(value: Any) -> str:
    return _last_segment(value)


def normalize_variant_id(value: Any) -> str:
    return _last_segment(value)


def product_gid(product_id: Any) -> str:
    return f"{_PRODUCT_GID_PREFIX}{normalize_product_id(product_id)}"


def order_gid(order_id: Any) -> str | None:
    """``#1001``, ``1001`` or an Order GID -> Order GID; None when no digits remain."""
    text = str(order_id).strip()
    if text.startswith("gid://"):
        return text
    digits = "".join(ch for ch in text.lstrip("#") if ch.isdigit())
    return f"{_ORDER_GID_PREFIX}{digits}" if digits else None
