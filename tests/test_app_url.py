from __future__ import annotations

from size_chart_app.config import settings
from size_chart_app.services.app_url import RequestFacts, normalize_app_url, resolve_app_url

STOREFRONT_URL = "https://acme.myshopify.com/apps/size-chart/api/app-url/public"


def _facts(headers: dict[str, str] | None = None, url: str | None = STOREFRONT_URL, **kwargs) -> RequestFacts:
    return RequestFacts(url=url, headers=headers or {}, **kwargs)


def test_environment_override_wins(monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_APP_URL", "app.example.dev/")
    result = resolve_app_url(_facts({"x-forwarded-host": "tunnel.example.dev"}, saved_app_url="https://saved.dev"))
    assert (result.app_url, result.source, result.detected) == ("https://app.example.dev", "environment", True)


def test_placeholder_environment_value_is_ignored(monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_APP_URL", "https://example.com")
    result = resolve_app_url(_facts(saved_app_url="https://saved.dev/"))
    assert (result.app_url, result.source) == ("https://saved.dev", "shop_settings")


def test_forwarded_headers_beat_request_url():
    result = resolve_app_url(
        _facts(
            {"x-forwarded-host": "tunnel.example.dev", "x-forwarded-proto": "http"},
            url="https://internal.example.dev/api/app-url/public",
        )
    )
    assert (result.app_url, result.source) == ("http://tunnel.example.dev", "forwarded_headers")


def test_platform_hosts_are_skipped_in_favour_of_origin():
    result = resolve_app_url(
        _facts(
            {
                "x-forwarded-host": "acme.myshopify.com",
                "host": "acme.myshopify.com",
                "origin": "https://widgets.example.dev/",
            }
        )
    )
    assert (result.app_url, result.source) == ("https://widgets.example.dev", "origin_header")


def test_referer_origin_is_used():
    result = resolve_app_url(
        _facts({"host": "cdn.shopify.com", "referer": "https://admin.example.dev/some/page?x=1"})
    )
    assert (result.app_url, result.source) == ("https://admin.example.dev", "referer")


def test_request_url_host_is_used_for_direct_calls():
    result = resolve_app_url(_facts(url="https://sizes.example.dev/api/app-url/public"))
    assert (result.app_url, result.source) == ("https://sizes.example.dev", "request_url")


def test_app_proxy_fallback_when_only_platform_hosts_seen():
    result = resolve_app_url(_facts({"host": "acme.myshopify.com"}, shop="acme"))
    assert result.app_url == "https://acme.myshopify.com/apps/size-chart"
    assert result.detected is False
    assert result.source == "app_proxy_fallback"
    assert result.warning


def test_nothing_found_without_shop():
    result = resolve_app_url(_facts(url=None))
    assert result.to_payload() == {
        "appUrl": "",
        "detected": False,
        "source": "none",
        "error": "Could not detect app URL. Please set SHOPIFY_APP_URL environment variable.",
    }


def test_normalize_app_url_adds_scheme_and_strips_slash():
    assert normalize_app_url("sizes.example.dev/") == "https://sizes.example.dev"
    assert normalize_app_url("http://sizes.example.dev") == "http://sizes.example.dev"
