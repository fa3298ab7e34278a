"""
Tests for the admin analytics endpoints
"""
from unittest.mock import MagicMock

import psycopg2
import pytest

from sportsnation.api.analytics import get_analytics_service
from sportsnation.main import app
from sportsnation.services.analytics_service import AnalyticsService


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.get_revenue.return_value = {'total': 5400.0, 'daily': [], 'monthly': []}
    repo.get_dashboard_totals.return_value = {
        'totalOrders': 12,
        'totalProducts': 40,
        'totalCustomers': 9,
        'totalRevenue': 5400.0,
    }
    app.dependency_overrides[get_analytics_service] = lambda: AnalyticsService(repo)
    return repo


def test_requires_admin(client, repository, customer_headers):
    assert client.get("/api/v1/admin/analytics").status_code == 401
    assert client.get("/api/v1/admin/analytics", headers=customer_headers).status_code == 403


def test_revenue_metric(client, repository, admin_headers):
    response = client.get("/api/v1/admin/analytics?period=7d&metric=revenue", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body['period'] == '7d'
    assert body['metric'] == 'revenue'
    assert body['data']['total'] == 5400.0
    assert 'start' in body['dateRange']


def test_database_down_returns_fallback(client, repository, admin_headers):
    repository.get_revenue.side_effect = psycopg2.OperationalError("connection refused")

    response = client.get("/api/v1/admin/analytics?metric=revenue", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()['fallback'] is True
    assert response.json()['data']['total'] == 0


def test_dashboard_stats(client, repository, admin_headers):
    response = client.get("/api/v1/admin/dashboard-stats", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()['data']['totalOrders'] == 12
