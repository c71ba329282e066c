from size_chart_app.identifiers import (
    canonical_shop_domain,
    normalize_product_id,
    normalize_variant_id,
    order_gid,
    product_gid,
    shop_variants,
)


def test_shop_variants_for_bare_handle_adds_domain():
    assert shop_variants("acme") == ["acme", "acme.myshopify.com"]


def test_shop_variants_for_domain_adds_handle():
    assert shop_variants("acme.myshopify.com") == ["acme.myshopify.com", "acme"]


def test_canonical_shop_domain():
    assert canonical_shop_domain("Acme") == "acme.myshopify.com"
    assert canonical_shop_domain("acme.myshopify.com") == "acme.myshopify.com"


def test_normalize_product_id_extracts_last_segment():
    assert normalize_product_id("gid://shopify/Product/8123") == "8123"
    assert normalize_product_id(8123) == "8123"
    assert normalize_product_id("8123") == "8123"


def test_normalize_passes_malformed_input_through():
    assert normalize_product_id("not-a-gid") == "not-a-gid"
    assert normalize_variant_id("gid://shopify/ProductVariant/77") == "77"


def test_product_gid_round_trips_numeric_and_gid_input():
    assert product_gid("8123") == "gid://shopify/Product/8123"
    assert product_gid("gid://shopify/Product/8123") == "gid://shopify/Product/8123"


def test_order_gid_accepts_order_names_and_gids():
    assert order_gid("#1001") == "gid://shopify/Order/1001"
    assert order_gid(1001) == "gid://shopify/Order/1001"
    assert order_gid("gid://shopify/Order/1001") == "gid://shopify/Order/1001"
    assert order_gid("#abc") is None
