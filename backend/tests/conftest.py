"""
Pytest fixtures and configuration for Sports Nation BD backend tests

This file provides shared fixtures that can be used across all test modules.
Environment defaults are set before the application modules are imported so
the cached settings pick them up.
"""
import os
import time
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

os.environ.setdefault("AUTH_SECRET", "test-auth-secret")
os.environ.setdefault("PATHAO_MOCK_MODE", "true")
os.environ.setdefault("SMS_PROVIDER", "bulksmsbd")
os.environ.setdefault("SMS_API_KEY", "test-sms-key")
os.environ.setdefault("EMAIL_PROVIDER", "console")

import psycopg2
from psycopg2.extras import RealDictCursor
from jose import jwt

from sportsnation.core.rate_limit import rate_limiter


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Each test starts with empty rate limit windows"""
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture(scope="session")
def database_url():
    """
    Provides the database URL for integration tests

    Scope: session (created once per test session)
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not configured")
    return url


@pytest.fixture(scope="function")
def db_cursor(database_url):
    """
    Real database cursor (RealDictCursor), rolled back after the test
    """
    conn = psycopg2.connect(database_url)
    cursor = conn.cursor(cursor_factory=RealDictCursor)
    yield cursor
    cursor.close()
    conn.rollback()
    conn.close()


@pytest.fixture
def mock_db():
    """
    MagicMock connection and cursor pair

    Usage:
        mock_get_conn.return_value = mock_db.conn
        mock_db.cursor.fetchone.return_value = {...}
    """
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value = cursor

    class MockDb:
        pass

    db = MockDb()
    db.conn = conn
    db.cursor = cursor
    return db


@pytest.fixture
def sample_order_row():
    """Row as returned by the orders query (orders JOIN users)"""
    return {
        'id': 'ord_1',
        'order_number': 'SNB-1001',
        'user_id': 'usr_1',
        'status': 'processing',
        'payment_status': 'pending',
        'total': Decimal('2450.00'),
        'shipping_address': {
            'name': 'Rahim Uddin',
            'phone': '01712345678',
            'address': 'House 12, Road 5',
            'area': 'Dhanmondi',
            'city': 'Dhaka',
            'country': 'Bangladesh',
        },
        'courier_service': None,
        'courier_tracking_id': None,
        'tracking_number': None,
        'courier_order_id': None,
        'courier_invoice_id': None,
        'created_at': datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        'updated_at': datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        'customer_name': 'Rahim',
        'customer_email': 'rahim@example.com',
        'customer_phone': '01812345678',
    }


@pytest.fixture
def sample_item_rows():
    return [
        {
            'id': 1,
            'order_id': 'ord_1',
            'product_id': 10,
            'product_name': 'Football Jersey',
            'quantity': 2,
            'price': Decimal('850.00'),
            'weight': Decimal('0.3'),
        },
        {
            'id': 2,
            'order_id': 'ord_1',
            'product_id': 11,
            'product_name': 'Cricket Ball',
            'quantity': 1,
            'price': Decimal('750.00'),
            'weight': None,
        },
    ]


@pytest.fixture
def make_token():
    """Build a signed session token for a role"""
    def _make(role: str = "admin", expires_in: int = 3600, **claims):
        payload = {
            "sub": f"{role}_user",
            "id": f"{role}_user",
            "email": f"{role}@sportsnationbd.com",
            "name": role.title(),
            "role": role,
            "exp": int(time.time()) + expires_in,
        }
        payload.update(claims)
        return jwt.encode(payload, os.environ["AUTH_SECRET"], algorithm="HS256")
    return _make


@pytest.fixture
def admin_headers(make_token):
    return {"Authorization": f"Bearer {make_token('admin')}"}


@pytest.fixture
def customer_headers(make_token):
    return {"Authorization": f"Bearer {make_token('customer')}"}


@pytest.fixture
def client():
    """FastAPI test client with dependency overrides cleared afterwards"""
    from fastapi.testclient import TestClient
    from sportsnation.main import app

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
