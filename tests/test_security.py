from __future__ import annotations

import base64
import hashlib
import hmac

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from conftest import make_session_token
from size_chart_app.errors import UnauthorizedError
from size_chart_app.security import decode_session_token, require_shop_session, verify_webhook_hmac


def _webhook_hmac(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def test_verify_webhook_hmac_accepts_valid_signature():
    body = b'{"shop_domain": "acme.myshopify.com"}'
    assert verify_webhook_hmac(body=body, supplied_hmac=_webhook_hmac(body, "test_secret"))


def test_verify_webhook_hmac_rejects_missing_or_invalid_signature():
    body = b"{}"
    assert not verify_webhook_hmac(body=body, supplied_hmac=None)
    assert not verify_webhook_hmac(body=body, supplied_hmac="invalid")


def test_decode_session_token_accepts_app_signed_token():
    claims = decode_session_token(make_session_token())
    assert claims["dest"] == "https://acme.myshopify.com"


def test_decode_session_token_rejects_other_audience():
    with pytest.raises(UnauthorizedError):
        decode_session_token(make_session_token(aud="someone_else"))


def test_require_shop_session_resolves_shop_from_dest_claim():
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=make_session_token("Acme.myshopify.com"))
    context = require_shop_session(credentials)
    assert context.shop == "acme.myshopify.com"
    assert context.user_id == "42"


def test_require_shop_session_rejects_mismatched_issuer():
    token = make_session_token(iss="https://other.myshopify.com/admin")
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
    with pytest.raises(UnauthorizedError):
        require_shop_session(credentials)


def test_require_shop_session_requires_credentials():
    with pytest.raises(UnauthorizedError):
        require_shop_session(None)
