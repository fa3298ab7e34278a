"""
Tests for the courier endpoints

Pathao runs in mock mode and the order repository is mocked, so no
database or network is needed.
"""
from unittest.mock import AsyncMock, MagicMock

import psycopg2
import pytest

from sportsnation.api import courier as courier_api
from sportsnation.connectors.pathao_connector import PathaoConnector, PathaoError
from sportsnation.connectors.sms_connector import SmsResult
from sportsnation.core.config import settings
from sportsnation.domain.order import Order
from sportsnation.main import app
from sportsnation.services.courier_service import CourierService


@pytest.fixture
def order(sample_order_row, sample_item_rows):
    return Order(**sample_order_row, items=sample_item_rows)


@pytest.fixture
def repository(order):
    repo = MagicMock()
    repo.find_by_id.return_value = order
    repo.find_by_tracking_code.return_value = order
    repo.assign_courier.return_value = True
    repo.find_courier_orders.return_value = [order]
    return repo


@pytest.fixture
def notifications():
    service = MagicMock()
    service.send_courier_status_update = AsyncMock(return_value=SmsResult(success=True))
    return service


@pytest.fixture
def overrides(repository, notifications):
    connector = PathaoConnector(mock_mode=True)
    service = CourierService(order_repository=repository, connector=connector, notifications=notifications)
    app.dependency_overrides[courier_api.get_connector] = lambda: connector
    app.dependency_overrides[courier_api.get_courier_service] = lambda: service
    return service


class TestAuthorization:

    def test_requires_token(self, client, overrides):
        response = client.get("/api/v1/courier/pathao/stores")

        assert response.status_code == 401

    def test_customers_are_forbidden(self, client, overrides, customer_headers):
        response = client.get("/api/v1/courier/pathao/stores", headers=customer_headers)

        assert response.status_code == 403

    def test_expired_token(self, client, overrides, make_token):
        headers = {"Authorization": f"Bearer {make_token('admin', expires_in=-60)}"}

        response = client.get("/api/v1/courier/pathao/stores", headers=headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"


def test_create_shipment(client, overrides, admin_headers, repository):
    response = client.post(
        "/api/v1/courier/pathao/shipments",
        json={"order_id": "ord_1", "recipient_city": 1, "recipient_zone": 1070},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["consignment_id"].startswith("MOCK-")
    assert data["amount_to_collect"] == 2450
    assert repository.save_pathao_order.call_args[0][2] == "admin_user"


def test_create_shipment_for_unknown_order(client, overrides, admin_headers, repository):
    repository.find_by_id.return_value = None

    response = client.post("/api/v1/courier/pathao/shipments", json={"order_id": "nope"}, headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Order not found"


def test_manual_order_action(client, overrides, admin_headers):
    response = client.post(
        "/api/v1/courier/pathao/orders",
        json={
            "action": "create",
            "data": {
                "merchant_order_id": "MANUAL-1",
                "recipient_name": "Karim Ahmed",
                "recipient_phone": "8801912345678",
                "recipient_address": "Road 7, Banani, Dhaka",
                "recipient_city": 1,
                "recipient_zone": 1067,
                "item_weight": 1,
                "amount_to_collect": 900,
            },
        },
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["merchant_order_id"] == "MANUAL-1"
    assert body["data"]["is_mock"] is True


def test_manual_order_requires_data(client, overrides, admin_headers):
    response = client.post("/api/v1/courier/pathao/orders", json={"action": "create"}, headers=admin_headers)

    assert response.status_code == 400


def test_bulk_without_orders(client, overrides, admin_headers):
    response = client.post("/api/v1/courier/pathao/orders", json={"action": "create-bulk"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "No orders provided"


@pytest.mark.parametrize("query, expected_first", [
    ("type=cities", {"city_id": 1, "city_name": "Dhaka"}),
    ("type=zones&city_id=1", {"zone_id": 298, "zone_name": "Uttara"}),
])
def test_locations(client, overrides, admin_headers, query, expected_first):
    response = client.get(f"/api/v1/courier/pathao/locations?{query}", headers=admin_headers)

    assert response.status_code == 200
    first = response.json()["data"][0]
    for key, value in expected_first.items():
        assert first[key] == value


def test_zones_need_city(client, overrides, admin_headers):
    response = client.get("/api/v1/courier/pathao/locations?type=zones", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "City ID is required for zones"


def test_locations_invalid_type(client, overrides, admin_headers):
    response = client.get("/api/v1/courier/pathao/locations?type=countries", headers=admin_headers)

    assert response.status_code == 400


def test_delivery_cost(client, overrides, admin_headers):
    response = client.post(
        "/api/v1/courier/pathao/cost",
        json={"city_id": 1, "zone_id": 1070, "weight": 0.5},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["normal"]["price"] == 60
    assert data["on_demand"]["price"] == 100


STORE_BODY = {
    "name": "Sports Nation Mirpur",
    "contact_name": "Store Manager",
    "contact_number": "01712345678",
    "address": "Shop 4, Mirpur 10, Dhaka",
    "city_id": 1,
    "zone_id": 1066,
    "area_id": 37,
}


def test_create_store(client, overrides, admin_headers):
    response = client.post("/api/v1/courier/pathao/stores", json=STORE_BODY, headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["data"]["store_name"] == "Sports Nation Mirpur"


def test_create_store_validates_body(client, overrides, admin_headers):
    response = client.post(
        "/api/v1/courier/pathao/stores",
        json={"name": "Missing fields"},
        headers=admin_headers,
    )

    assert response.status_code == 422


def test_create_store_rejected_by_pathao(client, overrides, admin_headers):
    overrides.connector.create_store = AsyncMock(side_effect=PathaoError("Store name already taken", 422))

    response = client.post("/api/v1/courier/pathao/stores", json=STORE_BODY, headers=admin_headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Pathao error: Store name already taken"


def test_create_store_is_admin_only(client, overrides, customer_headers):
    response = client.post("/api/v1/courier/pathao/stores", json=STORE_BODY, headers=customer_headers)

    assert response.status_code == 403


def test_settings_hide_secret(client, overrides, admin_headers):
    response = client.get("/api/v1/courier/pathao/settings", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert "clientSecret" not in data
    assert "password" not in data
    assert data["mockMode"] is True


def test_save_settings_writes_env_file(client, admin_headers, tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    monkeypatch.setattr(courier_api, "ENV_FILE_PATH", env_file)
    for key in ("PATHAO_ENVIRONMENT", "PATHAO_SANDBOX_CLIENT_ID", "PATHAO_SANDBOX_CLIENT_SECRET",
                "PATHAO_SANDBOX_USERNAME", "PATHAO_SANDBOX_PASSWORD", "PATHAO_SANDBOX_BASE_URL"):
        monkeypatch.setattr(settings, key, getattr(settings, key))

    response = client.post(
        "/api/v1/courier/pathao/settings",
        json={
            "environment": "sandbox",
            "client_id": "sandbox-id",
            "client_secret": "sandbox-secret",
            "username": "merchant@example.com",
            "password": "hunter2",
        },
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["environment"] == "sandbox"
    content = env_file.read_text()
    assert "PATHAO_SANDBOX_CLIENT_ID='sandbox-id'" in content
    assert "PATHAO_ENVIRONMENT='sandbox'" in content
    assert settings.PATHAO_SANDBOX_CLIENT_ID == "sandbox-id"


class TestWebhook:

    def test_webhook_needs_no_token(self, client, overrides, repository):
        response = client.post(
            "/api/v1/courier/pathao/webhook",
            json={"order_id": "SNB-1001", "tracking_code": "DL1234", "status": "out_for_delivery"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "out_for_delivery"
        repository.update_status.assert_called_once_with("ord_1", "out_for_delivery")

    def test_missing_fields(self, client, overrides):
        response = client.post("/api/v1/courier/pathao/webhook", json={"status": "delivered"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields"

    def test_signature_checked_when_secret_configured(self, client, overrides, monkeypatch):
        monkeypatch.setattr(settings, "PATHAO_WEBHOOK_SECRET", "s3cret")
        body = {"order_id": "SNB-1001", "tracking_code": "DL1234", "status": "delivered"}

        rejected = client.post("/api/v1/courier/pathao/webhook", json=body)
        accepted = client.post(
            "/api/v1/courier/pathao/webhook", json=body, headers={"X-Pathao-Signature": "s3cret"}
        )

        assert rejected.status_code == 401
        assert accepted.status_code == 200

    def test_challenge_echo(self, client):
        response = client.get("/api/v1/courier/pathao/webhook?challenge=abc123")

        assert response.json() == {"challenge": "abc123"}


def test_dashboard(client, overrides, admin_headers):
    response = client.get("/api/v1/courier/pathao/dashboard?range=30d", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["range"] == "30d"
    assert body["stats"]["totalOrders"] == 1
    assert body["orders"][0]["orderNumber"] == "SNB-1001"


def test_get_order_courier_info(client, overrides, admin_headers):
    response = client.get("/api/v1/courier/orders/ord_1", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["order"]["order_number"] == "SNB-1001"
    assert body["courier_tracking"] is None


def test_assign_courier(client, overrides, admin_headers, repository):
    response = client.put(
        "/api/v1/courier/orders/ord_1",
        json={"courier_service": "sundarban", "courier_tracking_id": "SB-1"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Courier information updated successfully"
    assert repository.assign_courier.call_args.kwargs["courier_service"] == "sundarban"


def test_assign_unknown_courier(client, overrides, admin_headers):
    response = client.put(
        "/api/v1/courier/orders/ord_1",
        json={"courier_service": "redx", "courier_tracking_id": "RX-1"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid courier service. Must be sundarban or pathao"


class TestOrderManagement:

    def test_lists_orders_waiting_for_courier(self, client, overrides, admin_headers, repository, order):
        repository.find_pathao_orders.return_value = []
        repository.find_unassigned_orders.return_value = [order]

        response = client.get(
            "/api/v1/courier/pathao/orders/manage?status=processing&limit=20&offset=40",
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["limit"] == 20
        assert data["offset"] == 40
        assert data["orders"][0]["merchantOrderId"] == "SNB-1001"
        assert data["orders"][0]["source"] == "ecommerce"
        repository.find_unassigned_orders.assert_called_once_with(status="processing", limit=20, offset=40)

    def test_database_outage(self, client, overrides, admin_headers, repository):
        repository.find_pathao_orders.side_effect = psycopg2.OperationalError("down")

        response = client.get("/api/v1/courier/pathao/orders/manage", headers=admin_headers)

        assert response.status_code == 503

    def test_limit_is_bounded(self, client, overrides, admin_headers):
        response = client.get("/api/v1/courier/pathao/orders/manage?limit=0", headers=admin_headers)

        assert response.status_code == 422

    def test_admin_only(self, client, overrides, customer_headers):
        response = client.get("/api/v1/courier/pathao/orders/manage", headers=customer_headers)

        assert response.status_code == 403
