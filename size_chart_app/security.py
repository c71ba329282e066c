from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import JWTError

from size_chart_app.config import settings
from size_chart_app.errors import UnauthorizedError
from size_chart_app.identifiers import canonical_shop_domain

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


@dataclass
class ShopContext:
    shop: str
    user_id: str | None = None


def verify_webhook_hmac(*, body: bytes, supplied_hmac: str | None) -> bool:
    if not supplied_hmac:
        return False
    digest = hmac.new(
        settings.SHOPIFY_API_SECRET.encode("utf-8"),
        body,
        hashlib.sha256,
    ).digest()
    encoded = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(encoded, supplied_hmac)


def decode_session_token(token: str) -> dict:
    """Verify an App Bridge session token (HS256, signed with the app secret)."""
    try:
        return jwt.decode(
            token,
            settings.SHOPIFY_API_SECRET,
            algorithms=["HS256"],
            audience=settings.SHOPIFY_API_KEY,
        )
    except JWTError as exc:
        raise UnauthorizedError(f"Invalid session token: {exc}") from exc


def _shop_from_claims(claims: dict) -> str:
    dest = claims.get("dest")
    if not isinstance(dest, str) or not dest:
        raise UnauthorizedError("Session token is missing dest claim")
    host = urlparse(dest).hostname or dest
    issuer = claims.get("iss")
    if isinstance(issuer, str) and issuer:
        issuer_host = urlparse(issuer).hostname
        if issuer_host and issuer_host != host:
            raise UnauthorizedError("Session token issuer does not match destination shop")
    return canonical_shop_domain(host)


def require_shop_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> ShopContext:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer session token")

    claims = decode_session_token(credentials.credentials)
    shop = _shop_from_claims(claims)
    logger.debug("Resolved shop from session token", extra={"shop": shop})
    return ShopContext(shop=shop, user_id=claims.get("sub"))
