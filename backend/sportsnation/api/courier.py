"""
Courier API Endpoints
Pathao consignments, locations, pricing, webhook and the admin courier dashboard,
plus manual courier assignment for any order
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from dotenv import set_key
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field

from sportsnation.connectors.pathao_connector import (
    PathaoConnector,
    PathaoError,
    get_pathao_connector,
    reset_pathao_connector,
)
from sportsnation.core.auth import TokenUser, require_admin
from sportsnation.core.config import PATHAO_PRODUCTION_URL, PATHAO_SANDBOX_URL, settings
from sportsnation.domain.courier import PathaoStoreRequest
from sportsnation.services.courier_service import CourierError, CourierService, verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/courier", tags=["Courier"])

ENV_FILE_PATH = Path(__file__).resolve().parent.parent.parent / ".env"


# =============================================================================
# Pydantic Models
# =============================================================================

class PathaoOrderAction(BaseModel):
    action: Literal["create", "create-bulk", "calculate-price"]
    data: Optional[Dict[str, Any]] = None
    orders: Optional[List[Dict[str, Any]]] = None


class ShipmentRequest(BaseModel):
    order_id: str
    store_id: Optional[int] = None
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    recipient_secondary_phone: Optional[str] = None
    recipient_address: Optional[str] = None
    recipient_city: Optional[int] = None
    recipient_zone: Optional[int] = None
    recipient_area: Optional[int] = None
    delivery_type: Optional[int] = None
    item_type: Optional[int] = None
    item_weight: Optional[float] = None
    special_instruction: Optional[str] = None
    amount_to_collect: Optional[int] = None


class DeliveryCostRequest(BaseModel):
    city_id: int
    zone_id: int
    area_id: Optional[int] = None
    weight: float = Field(0.5, gt=0, le=10)
    store_id: Optional[int] = None


class PathaoSettingsUpdate(BaseModel):
    environment: Literal["sandbox", "production"]
    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class CourierAssignment(BaseModel):
    courier_service: str
    courier_tracking_id: str
    tracking_number: Optional[str] = None


# =============================================================================
# Dependencies & helpers
# =============================================================================

def get_connector() -> PathaoConnector:
    return get_pathao_connector()


def get_courier_service(connector: PathaoConnector = Depends(get_connector)) -> CourierService:
    return CourierService(connector=connector)


def _raise_http(error: CourierError):
    raise HTTPException(status_code=error.status_code, detail=error.message)


# =============================================================================
# Pathao orders
# =============================================================================

@router.post("/pathao/orders")
async def pathao_orders(
    request: PathaoOrderAction,
    user: TokenUser = Depends(require_admin),
    service: CourierService = Depends(get_courier_service)
):
    """
    Pathao order actions (admin only)

    - create: one consignment from `data`
    - create-bulk: several consignments from `orders`
    - calculate-price: price plan for `data`
    """
    try:
        if request.action == "create":
            if not request.data:
                raise HTTPException(status_code=400, detail="Order data is required")
            result = await service.create_manual_pathao_order(request.data, user_id=user.id)

        elif request.action == "create-bulk":
            result = await service.create_bulk_pathao_orders(request.orders or [])

        else:
            if not request.data:
                raise HTTPException(status_code=400, detail="Price data is required")
            result = await service.calculate_price(request.data)

        return {"success": True, "data": result}

    except CourierError as e:
        _raise_http(e)


@router.get("/pathao/orders")
async def get_pathao_order(
    consignment_id: str = Query(..., description="Pathao consignment id"),
    user: TokenUser = Depends(require_admin),
    service: CourierService = Depends(get_courier_service)
):
    try:
        info = await service.get_pathao_order_info(consignment_id)
        return {"success": True, "data": info}
    except CourierError as e:
        _raise_http(e)


@router.get("/pathao/orders/manage")
async def manage_pathao_orders(
    status: Optional[str] = Query(None, description="Filter by status, 'all' for every status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(require_admin),
    service: CourierService = Depends(get_courier_service)
):
    """Stored Pathao consignments plus orders that still need a courier (admin only)"""
    try:
        data = service.list_pathao_orders(status=status, limit=limit, offset=offset)
    except CourierError as e:
        _raise_http(e)

    return {"success": True, "data": data}


@router.post("/pathao/shipments")
async def create_shipment(
    request: ShipmentRequest,
    user: TokenUser = Depends(require_admin),
    service: CourierService = Depends(get_courier_service)
):
    """Ship an existing order with Pathao (admin only)"""
    courier_data = request.model_dump(exclude={"order_id"}, exclude_none=True)

    try:
        result = await service.create_pathao_shipment(request.order_id, courier_data, user_id=user.id)
    except CourierError as e:
        _raise_http(e)

    return {"success": True, "message": "Pathao order created successfully", "data": result}


# =============================================================================
# Locations, pricing, stores
# =============================================================================

@router.get("/pathao/locations")
async def get_locations(
    type: str = Query(..., description="cities, zones or areas"),
    city_id: Optional[int] = Query(None),
    zone_id: Optional[int] = Query(None),
    user: TokenUser = Depends(require_admin),
    connector: PathaoConnector = Depends(get_connector)
):
    try:
        if type == "cities":
            data = await connector.get_cities()
        elif type == "zones":
            if city_id is None:
                raise HTTPException(status_code=400, detail="City ID is required for zones")
            data = await connector.get_zones(city_id)
        elif type == "areas":
            if zone_id is None:
                raise HTTPException(status_code=400, detail="Zone ID is required for areas")
            data = await connector.get_areas(zone_id)
        else:
            raise HTTPException(status_code=400, detail="Invalid type. Must be cities, zones, or areas")

    except PathaoError as e:
        raise HTTPException(status_code=502, detail=f"Pathao error: {e.message}")

    return {"success": True, "data": [item.model_dump() for item in data]}


@router.post("/pathao/cost")
async def calculate_delivery_cost(
    request: DeliveryCostRequest,
    user: TokenUser = Depends(require_admin),
    connector: PathaoConnector = Depends(get_connector)
):
    """Normal and on-demand delivery prices for a destination"""
    try:
        costs = await connector.calculate_delivery_cost(
            request.city_id,
            request.zone_id,
            weight=request.weight,
            store_id=request.store_id
        )
    except PathaoError as e:
        raise HTTPException(status_code=502, detail=f"Failed to calculate delivery cost: {e.message}")

    return {
        "success": True,
        "data": {name: price.model_dump() for name, price in costs.items()},
    }


@router.get("/pathao/stores")
async def get_stores(
    user: TokenUser = Depends(require_admin),
    connector: PathaoConnector = Depends(get_connector)
):
    try:
        stores = await connector.get_stores()
    except PathaoError as e:
        raise HTTPException(status_code=502, detail=f"Pathao error: {e.message}")

    return {"success": True, "data": [store.model_dump() for store in stores]}


@router.post("/pathao/stores")
async def create_store(
    request: PathaoStoreRequest,
    user: TokenUser = Depends(require_admin),
    connector: PathaoConnector = Depends(get_connector)
):
    """Register a new pickup store with Pathao (admin only)"""
    try:
        result = await connector.create_store(request)
    except PathaoError as e:
        raise HTTPException(status_code=502, detail=f"Pathao error: {e.message}")

    logger.info(f"Pathao store '{request.name}' created by {user.email}")

    return {"success": True, "data": result}


# =============================================================================
# Settings
# =============================================================================

@router.get("/pathao/settings")
async def get_pathao_settings(user: TokenUser = Depends(require_admin)):
    """Active Pathao configuration without secrets"""
    creds = settings.get_pathao_credentials()
    return {
        "success": True,
        "data": {
            "environment": creds["environment"],
            "clientId": creds["client_id"],
            "username": creds["username"],
            "baseUrl": creds["base_url"],
            "mockMode": get_pathao_connector().is_mock,
        },
    }


@router.post("/pathao/settings")
async def save_pathao_settings(
    request: PathaoSettingsUpdate,
    user: TokenUser = Depends(require_admin)
):
    """Write Pathao credentials to the backend .env and apply them to this process"""
    if request.environment == "production":
        values = {
            "PATHAO_ENVIRONMENT": "production",
            "PATHAO_CLIENT_ID": request.client_id,
            "PATHAO_CLIENT_SECRET": request.client_secret,
            "PATHAO_USERNAME": request.username,
            "PATHAO_PASSWORD": request.password,
            "PATHAO_BASE_URL": PATHAO_PRODUCTION_URL,
        }
    else:
        values = {
            "PATHAO_ENVIRONMENT": "sandbox",
            "PATHAO_SANDBOX_CLIENT_ID": request.client_id,
            "PATHAO_SANDBOX_CLIENT_SECRET": request.client_secret,
            "PATHAO_SANDBOX_USERNAME": request.username,
            "PATHAO_SANDBOX_PASSWORD": request.password,
            "PATHAO_SANDBOX_BASE_URL": PATHAO_SANDBOX_URL,
        }

    try:
        ENV_FILE_PATH.touch(exist_ok=True)
        for key, value in values.items():
            set_key(str(ENV_FILE_PATH), key, value)
    except OSError as e:
        logger.error(f"Could not write Pathao settings: {e}")
        raise HTTPException(status_code=500, detail="Failed to save settings")

    for key, value in values.items():
        setattr(settings, key, value)
    reset_pathao_connector()

    logger.info(f"Pathao settings updated by {user.email} ({request.environment})")

    return {"success": True, "message": "Settings saved successfully", "environment": request.environment}


# =============================================================================
# Webhook
# =============================================================================

@router.post("/pathao/webhook")
async def pathao_webhook(
    request: Request,
    x_pathao_signature: Optional[str] = Header(None),
    service: CourierService = Depends(get_courier_service)
):
    """Status push from Pathao"""
    if not verify_webhook_signature(x_pathao_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    try:
        return await service.handle_pathao_webhook(payload)
    except CourierError as e:
        _raise_http(e)


@router.get("/pathao/webhook")
async def pathao_webhook_verification(challenge: Optional[str] = Query(None)):
    if challenge:
        return {"challenge": challenge}

    return {
        "message": "Pathao webhook endpoint is active",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# =============================================================================
# Dashboard & order courier info
# =============================================================================

@router.get("/pathao/dashboard")
async def pathao_dashboard(
    range: str = Query("7d", description="1d, 7d, 30d or 90d"),
    user: TokenUser = Depends(require_admin),
    service: CourierService = Depends(get_courier_service)
):
    try:
        return service.get_dashboard(range)
    except Exception as e:
        logger.exception("Pathao dashboard error")
        raise HTTPException(status_code=500, detail=f"Error building courier dashboard: {str(e)}")


@router.get("/orders/{order_id}")
async def get_order_courier_info(
    order_id: str,
    user: TokenUser = Depends(require_admin),
    service: CourierService = Depends(get_courier_service)
):
    try:
        return await service.get_courier_info(order_id)
    except CourierError as e:
        _raise_http(e)


@router.put("/orders/{order_id}")
async def assign_order_courier(
    order_id: str,
    request: CourierAssignment,
    user: TokenUser = Depends(require_admin),
    service: CourierService = Depends(get_courier_service)
):
    """Attach a courier tracking code to an order and mark it shipped"""
    try:
        order = service.assign_courier(
            order_id,
            request.courier_service,
            request.courier_tracking_id,
            request.tracking_number
        )
    except CourierError as e:
        _raise_http(e)

    return {"order": order, "message": "Courier information updated successfully"}
