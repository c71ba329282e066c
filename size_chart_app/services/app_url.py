from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional
from urllib.parse import urlparse

from size_chart_app.config import settings
from size_chart_app.identifiers import canonical_shop_domain

logger = logging.getLogger(__name__)

_PLATFORM_HOST_MARKERS = ("myshopify.com", "cdn.shopify.com")
_MISSING_URL_MESSAGE = "Could not detect app URL. Please set SHOPIFY_APP_URL environment variable."
_PROXY_WARNING = "App proxy may not be configured. Please set SHOPIFY_APP_URL environment variable."


@dataclass
class AppUrlResolution:
    app_url: str
    detected: bool
    source: str
    warning: Optional[str] = None
    error: Optional[str] = None

    def to_payload(self) -> dict:
        payload: dict = {"appUrl": self.app_url, "detected": self.detected, "source": self.source}
        if self.warning:
            payload["warning"] = self.warning
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class RequestFacts:
    """The parts of an inbound request that URL detection looks at."""

    url: Optional[str]
    headers: Mapping[str, str]
    shop: Optional[str] = None
    saved_app_url: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name) or self.headers.get(name.lower())
        return value.strip() if isinstance(value, str) and value.strip() else None


def is_platform_host(value: str) -> bool:
    lowered = value.lower()
    return any(marker in lowered for marker in _PLATFORM_HOST_MARKERS)


def normalize_app_url(value: str) -> str:
    url = value.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"
    return url.rstrip("/")


def _from_environment(facts: RequestFacts) -> Optional[str]:
    return settings.configured_app_url


def _from_shop_settings(facts: RequestFacts) -> Optional[str]:
    return facts.saved_app_url


def _from_forwarded_headers(facts: RequestFacts) -> Optional[str]:
    host = facts.header("x-forwarded-host")
    if not host:
        return None
    host = host.split(",")[0].strip()
    proto = facts.header("x-forwarded-proto") or facts.header("x-forwarded-protocol") or "https"
    return f"{proto.split(',')[0].strip()}://{host}"


def _from_request_url(facts: RequestFacts) -> Optional[str]:
    if not facts.url:
        return None
    parsed = urlparse(facts.url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def _from_host_header(facts: RequestFacts) -> Optional[str]:
    host = facts.header("host")
    if not host:
        return None
    proto = facts.header("x-forwarded-proto")
    if not proto:
        proto = "https" if (facts.url or "").startswith("https") else "http"
    return f"{proto}://{host}"


def _from_origin_header(facts: RequestFacts) -> Optional[str]:
    return facts.header("origin")


def _from_referer(facts: RequestFacts) -> Optional[str]:
    referer = facts.header("referer")
    if not referer:
        return None
    parsed = urlparse(referer)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


_STRATEGIES: list[tuple[str, Callable[[RequestFacts], Optional[str]]]] = [
    ("environment", _from_environment),
    ("shop_settings", _from_shop_settings),
    ("forwarded_headers", _from_forwarded_headers),
    ("request_url", _from_request_url),
    ("host_header", _from_host_header),
    ("origin_header", _from_origin_header),
    ("referer", _from_referer),
]


def resolve_app_url(facts: RequestFacts) -> AppUrlResolution:
    """
    Return the first usable app base URL for a storefront request.

    Candidates pointing back at the platform's own hosts are skipped. When no
    candidate survives, an app proxy URL on the shop domain is returned as an
    undetected guess; without a shop the result is empty.
    """
    for source, strategy in _STRATEGIES:
        candidate = strategy(facts)
        if not candidate or is_platform_host(candidate):
            continue
        app_url = normalize_app_url(candidate)
        logger.debug("Resolved app URL", extra={"source": source, "app_url": app_url})
        return AppUrlResolution(app_url=app_url, detected=True, source=source)

    if facts.shop:
        proxy_url = f"https://{canonical_shop_domain(facts.shop)}/apps/{settings.APP_PROXY_SUBPATH}"
        logger.warning(
            "Falling back to app proxy URL",
            extra={"shop": facts.shop, "app_url": proxy_url},
        )
        return AppUrlResolution(
            app_url=proxy_url,
            detected=False,
            source="app_proxy_fallback",
            warning=_PROXY_WARNING,
        )

    return AppUrlResolution(app_url="", detected=False, source="none", error=_MISSING_URL_MESSAGE)
