import os
import sys
import time
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("SHOPIFY_API_KEY", "test_key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test_secret")
os.environ.setdefault("SHOPIFY_APP_URL", "")
os.environ.setdefault("SIZE_CHART_DB_URL", "sqlite:///./test_size_chart_app.db")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_S3_BUCKET_NAME", "size-chart-test")

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import delete  # noqa: E402

import size_chart_app.main as main_module  # noqa: E402
from size_chart_app.config import settings  # noqa: E402
from size_chart_app.db import SessionLocal, init_db  # noqa: E402
from size_chart_app.models import (  # noqa: E402
    Plan,
    ProductAssignment,
    ShopSession,
    SizeChartTemplate,
    Subscription,
    ThemeSettings,
)

TEST_SHOP = "acme.myshopify.com"

_CLEANUP_ORDER = (ProductAssignment, SizeChartTemplate, ThemeSettings, Subscription, Plan, ShopSession)


def _clear(session) -> None:
    for model in _CLEANUP_ORDER:
        session.execute(delete(model))
    session.commit()


def make_session_token(shop: str = TEST_SHOP, **overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": f"https://{shop}/admin",
        "dest": f"https://{shop}",
        "aud": settings.SHOPIFY_API_KEY,
        "sub": "42",
        "exp": now + 60,
        "nbf": now - 5,
        "iat": now - 5,
        "jti": "test-jti",
        "sid": "test-sid",
    }
    claims.update(overrides)
    return jwt.encode(claims, settings.SHOPIFY_API_SECRET, algorithm="HS256")


class FakeS3Client:
    def __init__(self) -> None:
        self.put_calls: list[dict] = []
        self.deleted_keys: list[str] = []

    def put_object(self, **kwargs) -> dict:
        self.put_calls.append(kwargs)
        return {}

    def delete_object(self, *, Bucket: str, Key: str) -> dict:
        self.deleted_keys.append(Key)
        return {}


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    _clear(session)
    try:
        yield session
    finally:
        session.rollback()
        _clear(session)
        session.close()


@pytest.fixture()
def api_client():
    with TestClient(main_module.app) as client:
        yield client


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {make_session_token()}"}


@pytest.fixture()
def fake_s3(monkeypatch):
    client = FakeS3Client()
    monkeypatch.setattr(main_module.media_storage, "_client", client)
    return client


@pytest.fixture()
def shop_credential(db_session):
    record = ShopSession(
        id=f"offline_{TEST_SHOP}",
        shop=TEST_SHOP,
        access_token="shpat_test",
        scope="read_products,write_draft_orders",
        expires=None,
        is_online=False,
    )
    db_session.add(record)
    db_session.commit()
    return record
