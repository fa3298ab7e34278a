"""
Tests for customer order tracking
"""
from unittest.mock import MagicMock

import pytest

from sportsnation.api import courier as courier_api
from sportsnation.connectors.pathao_connector import PathaoConnector
from sportsnation.domain.order import Order
from sportsnation.main import app
from sportsnation.services.courier_service import CourierService


@pytest.fixture
def repository(sample_order_row, sample_item_rows):
    order = Order(**{**sample_order_row, 'user_id': 'customer_user', 'tracking_number': 'SNB-T-1'},
                  items=sample_item_rows)
    repo = MagicMock()
    repo.find_for_user.side_effect = lambda user_id, order_id=None, tracking_number=None: (
        order if user_id == order.user_id else None
    )
    return repo


@pytest.fixture(autouse=True)
def service(repository):
    service = CourierService(
        order_repository=repository,
        connector=PathaoConnector(mock_mode=True),
        notifications=MagicMock(),
    )
    app.dependency_overrides[courier_api.get_courier_service] = lambda: service
    return service


def test_track_own_order_by_id(client, customer_headers, repository):
    response = client.get("/api/v1/tracking?orderId=ord_1", headers=customer_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["order"]["order_number"] == "SNB-1001"
    assert body["tracking_updates"] == []
    assert body["courier_tracking"] is None
    repository.find_for_user.assert_called_once_with('customer_user', order_id='ord_1', tracking_number=None)


def test_track_by_tracking_number(client, customer_headers, repository):
    response = client.get("/api/v1/tracking?trackingNumber=SNB-T-1", headers=customer_headers)

    assert response.status_code == 200
    repository.find_for_user.assert_called_once_with('customer_user', order_id=None, tracking_number='SNB-T-1')


def test_lookup_key_required(client, customer_headers):
    response = client.get("/api/v1/tracking", headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Order ID or tracking number required"


def test_other_customers_order_is_not_found(client, make_token):
    headers = {"Authorization": f"Bearer {make_token('customer', id='someone_else', sub='someone_else')}"}

    response = client.get("/api/v1/tracking?orderId=ord_1", headers=headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Order not found"


def test_sign_in_required(client):
    response = client.get("/api/v1/tracking?orderId=ord_1")

    assert response.status_code == 401
