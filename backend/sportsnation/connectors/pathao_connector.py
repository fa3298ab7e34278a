"""
Pathao Courier API Connector
Handles all interactions with the Pathao merchant REST API (aladdin v1)

Token Management:
- Access tokens are cached in memory until shortly before they expire
- Expired tokens are refreshed with the refresh token, falling back to a
  fresh password grant when the refresh is rejected
- A 401 on an authorized call drops the cached token and retries once

Mock Mode:
- Enabled with PATHAO_MOCK_MODE=true, or automatically when credentials are
  not configured
- Returns deterministic sample data without touching the network, so the
  admin courier screens keep working in development
"""
import asyncio
import logging
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from sportsnation.core.config import settings
from sportsnation.domain.courier import (
    DELIVERY_TYPE_NORMAL,
    DELIVERY_TYPE_ON_DEMAND,
    ITEM_TYPE_PARCEL,
    PathaoArea,
    PathaoCity,
    PathaoOrderRequest,
    PathaoOrderResponse,
    PathaoPriceRequest,
    PathaoPriceResponse,
    PathaoStore,
    PathaoStoreRequest,
    PathaoToken,
    PathaoZone,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/aladdin/api/v1"

# Seconds shaved off the token lifetime so it is never used right at expiry
TOKEN_EXPIRY_BUFFER = 60


class PathaoError(Exception):
    """Pathao API call failed"""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


# ==================== MOCK DATA ====================

MOCK_CITIES = [
    {'city_id': 1, 'city_name': 'Dhaka'},
    {'city_id': 2, 'city_name': 'Chittagong'},
    {'city_id': 3, 'city_name': 'Sylhet'},
    {'city_id': 4, 'city_name': 'Rajshahi'},
    {'city_id': 5, 'city_name': 'Khulna'},
]

MOCK_ZONES = {
    1: [
        {'zone_id': 298, 'zone_name': 'Uttara'},
        {'zone_id': 1066, 'zone_name': 'Gulshan'},
        {'zone_id': 1067, 'zone_name': 'Banani'},
        {'zone_id': 1068, 'zone_name': 'Mirpur'},
        {'zone_id': 1070, 'zone_name': 'Dhanmondi'},
    ],
    2: [
        {'zone_id': 501, 'zone_name': 'Agrabad'},
        {'zone_id': 502, 'zone_name': 'Panchlaish'},
    ],
}

MOCK_STORES = [
    {
        'store_id': 1,
        'store_name': 'Sports Nation BD Warehouse',
        'store_address': 'Dhanmondi, Dhaka',
        'is_active': 1,
        'city_id': 1,
        'zone_id': 1070,
        'hub_id': 1,
        'is_default_store': True,
        'is_default_return_store': True,
    }
]

# Base delivery fee (BDT) by (inside Dhaka, delivery type)
MOCK_BASE_FEES = {
    (True, DELIVERY_TYPE_NORMAL): 60,
    (True, DELIVERY_TYPE_ON_DEMAND): 100,
    (False, DELIVERY_TYPE_NORMAL): 110,
    (False, DELIVERY_TYPE_ON_DEMAND): 150,
}
MOCK_EXTRA_KG_FEE = 15
MOCK_COD_PERCENTAGE = 1.0
DHAKA_CITY_ID = 1


def mock_price(city_id: int, delivery_type: int, item_weight: float) -> PathaoPriceResponse:
    """Fee table used in mock mode: base fee plus a charge per started kg above 1 kg"""
    inside_dhaka = city_id == DHAKA_CITY_ID
    price = MOCK_BASE_FEES.get((inside_dhaka, delivery_type), MOCK_BASE_FEES[(inside_dhaka, DELIVERY_TYPE_NORMAL)])
    extra_kg = max(0, math.ceil(item_weight - 1))
    additional_charge = extra_kg * MOCK_EXTRA_KG_FEE
    return PathaoPriceResponse(
        price=price,
        discount=0,
        promo_discount=0,
        plan_id=1 if inside_dhaka else 2,
        cod_enabled=1,
        cod_percentage=MOCK_COD_PERCENTAGE,
        additional_charge=additional_charge,
        final_price=price + additional_charge,
    )


class PathaoConnector:
    """
    Connector for the Pathao courier API

    Handles:
    - OAuth token issue/refresh with in-memory caching
    - Stores, cities, zones and areas
    - Price plans
    - Order creation (single and bulk) and order info
    """

    def __init__(
        self,
        base_url: str = None,
        client_id: str = None,
        client_secret: str = None,
        username: str = None,
        password: str = None,
        mock_mode: Optional[bool] = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize Pathao connector

        Args:
            base_url: API base URL (defaults to the active environment's URL)
            client_id / client_secret / username / password: merchant credentials
            mock_mode: Force mock mode on/off (default: PATHAO_MOCK_MODE, or on
                when credentials are missing)
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests)
            clock: Time source in epoch seconds (tests)
        """
        creds = settings.get_pathao_credentials()

        self.environment = creds['environment']
        self.base_url = (base_url or creds['base_url']).rstrip('/')
        self.client_id = client_id or creds['client_id']
        self.client_secret = client_secret or creds['client_secret']
        self.username = username or creds['username']
        self.password = password or creds['password']
        self.timeout = timeout or settings.PATHAO_TIMEOUT

        self._transport = transport
        self._clock = clock
        self._token: Optional[PathaoToken] = None
        self._token_lock = asyncio.Lock()

        has_credentials = all([self.client_id, self.client_secret, self.username, self.password])
        if mock_mode is None:
            mock_mode = settings.PATHAO_MOCK_MODE or not has_credentials
            if not has_credentials:
                logger.warning("Pathao credentials not configured - connector running in mock mode")

        self.mock_mode = mock_mode

        logger.info(f"Pathao connector initialized ({self.environment}, mock={self.mock_mode})")

    @property
    def is_mock(self) -> bool:
        return self.mock_mode

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport
        )

    # ==================== TOKEN MANAGEMENT ====================

    def _token_is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._token.expires_at

    def _store_token(self, data: Dict[str, Any]):
        expires_in = int(data.get('expires_in', 3600))
        self._token = PathaoToken(
            access_token=data['access_token'],
            token_type=data.get('token_type', 'Bearer'),
            expires_in=expires_in,
            refresh_token=data.get('refresh_token') or (self._token.refresh_token if self._token else None),
            expires_at=self._clock() + expires_in - TOKEN_EXPIRY_BUFFER,
        )

    async def _post_token(self, body: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            try:
                response = await client.post(
                    f"{API_PREFIX}/issue-token",
                    json=body,
                    headers={'Content-Type': 'application/json', 'Accept': 'application/json'}
                )
            except httpx.RequestError as e:
                raise PathaoError(f"Pathao token request failed: {e}") from e

        if response.is_error:
            raise PathaoError(
                f"Failed to issue token: {response.text}",
                status_code=response.status_code,
                payload=response.text
            )
        return response.json()

    async def issue_token(self) -> PathaoToken:
        """Request a new access token with the password grant"""
        data = await self._post_token({
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'grant_type': 'password',
            'username': self.username,
            'password': self.password,
        })
        self._store_token(data)
        logger.info("Pathao access token issued")
        return self._token

    async def refresh_access_token(self) -> PathaoToken:
        """Exchange the refresh token for a new access token"""
        if not self._token or not self._token.refresh_token:
            raise PathaoError("No refresh token available")

        data = await self._post_token({
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'grant_type': 'refresh_token',
            'refresh_token': self._token.refresh_token,
        })
        self._store_token(data)
        logger.info("Pathao access token refreshed")
        return self._token

    async def get_access_token(self) -> str:
        """
        Return a valid access token, refreshing or issuing one when needed

        Returns:
            Bearer access token
        """
        if self.mock_mode:
            return "mock-access-token"

        async with self._token_lock:
            if self._token_is_valid():
                return self._token.access_token

            if self._token and self._token.refresh_token:
                try:
                    await self.refresh_access_token()
                    return self._token.access_token
                except PathaoError as e:
                    logger.warning(f"Failed to refresh Pathao token, issuing a new one: {e}")

            await self.issue_token()
            return self._token.access_token

    def invalidate_token(self):
        self._token = None

    # ==================== HTTP ====================

    async def _request(self, method: str, path: str, json: Optional[Dict] = None, retry_on_401: bool = True) -> Dict:
        """
        Make an authenticated request to the Pathao API

        Args:
            method: HTTP method
            path: Path below the aladdin API prefix (e.g. '/city-list')
            json: JSON body

        Returns:
            Decoded JSON response

        Raises:
            PathaoError: On network failure or non-2xx response
        """
        token = await self.get_access_token()
        headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'Authorization': f'Bearer {token}',
        }

        async with self._client() as client:
            try:
                response = await client.request(method, f"{API_PREFIX}{path}", json=json, headers=headers)
            except httpx.RequestError as e:
                logger.error(f"Pathao request error on {method} {path}: {e}")
                raise PathaoError(f"Pathao request failed: {e}") from e

        if response.status_code == 401 and retry_on_401:
            logger.warning("Pathao token rejected, retrying with a new token...")
            self.invalidate_token()
            return await self._request(method, path, json=json, retry_on_401=False)

        if response.is_error:
            try:
                payload = response.json()
                message = payload.get('message') or response.text
            except ValueError:
                payload = response.text
                message = response.text
            logger.error(f"Pathao API error {response.status_code} on {method} {path}: {message}")
            raise PathaoError(str(message), status_code=response.status_code, payload=payload)

        return response.json()

    @staticmethod
    def _unwrap_list(data: Dict) -> List[Dict]:
        return (data.get('data') or {}).get('data') or []

    @staticmethod
    def _unwrap(data: Dict) -> Dict:
        return data.get('data') or {}

    # ==================== STORES & LOCATIONS ====================

    async def get_stores(self) -> List[PathaoStore]:
        if self.mock_mode:
            return [PathaoStore(**store) for store in MOCK_STORES]

        data = await self._request("GET", "/stores")
        return [PathaoStore(**store) for store in self._unwrap_list(data)]

    async def create_store(self, store: PathaoStoreRequest) -> Dict:
        if self.mock_mode:
            return {
                'message': 'Store created successfully (mock)',
                'data': {'store_name': store.name},
            }

        return await self._request("POST", "/stores", json=store.model_dump(exclude_none=True))

    async def resolve_store_id(self, store_id: Optional[int] = None) -> int:
        """
        Pick the pickup store: explicit id, PATHAO_STORE_ID, or the account's default store
        """
        if store_id:
            return store_id
        if settings.PATHAO_STORE_ID:
            return settings.PATHAO_STORE_ID

        stores = await self.get_stores()
        if not stores:
            raise PathaoError("No Pathao store configured for this merchant account")
        default = next((store for store in stores if store.is_default_store), stores[0])
        return default.store_id

    async def get_cities(self) -> List[PathaoCity]:
        if self.mock_mode:
            return [PathaoCity(**city) for city in MOCK_CITIES]

        data = await self._request("GET", "/city-list")
        return [PathaoCity(**city) for city in self._unwrap_list(data)]

    async def get_zones(self, city_id: int) -> List[PathaoZone]:
        if self.mock_mode:
            zones = MOCK_ZONES.get(city_id, [{'zone_id': city_id * 1000 + 1, 'zone_name': 'Sadar'}])
            return [PathaoZone(**zone) for zone in zones]

        data = await self._request("GET", f"/cities/{city_id}/zone-list")
        return [PathaoZone(**zone) for zone in self._unwrap_list(data)]

    async def get_areas(self, zone_id: int) -> List[PathaoArea]:
        if self.mock_mode:
            return [
                PathaoArea(area_id=zone_id * 10 + 1, area_name='Block A'),
                PathaoArea(area_id=zone_id * 10 + 2, area_name='Block B', pickup_available=False),
            ]

        data = await self._request("GET", f"/zones/{zone_id}/area-list")
        return [PathaoArea(**area) for area in self._unwrap_list(data)]

    # ==================== PRICING ====================

    async def calculate_price(self, request: PathaoPriceRequest) -> PathaoPriceResponse:
        if self.mock_mode:
            return mock_price(request.recipient_city, request.delivery_type, request.item_weight)

        data = await self._request("POST", "/merchant/price-plan", json=request.model_dump())
        return PathaoPriceResponse(**self._unwrap(data))

    async def calculate_delivery_cost(
        self,
        city_id: int,
        zone_id: int,
        weight: float = 0.5,
        store_id: Optional[int] = None
    ) -> Dict[str, PathaoPriceResponse]:
        """
        Price a parcel for both normal and on-demand delivery

        Returns:
            {'normal': PathaoPriceResponse, 'on_demand': PathaoPriceResponse}
        """
        resolved_store_id = await self.resolve_store_id(store_id)
        weight = max(weight, 0.5)

        normal, on_demand = await asyncio.gather(
            self.calculate_price(PathaoPriceRequest(
                store_id=resolved_store_id,
                item_type=ITEM_TYPE_PARCEL,
                delivery_type=DELIVERY_TYPE_NORMAL,
                item_weight=weight,
                recipient_city=city_id,
                recipient_zone=zone_id,
            )),
            self.calculate_price(PathaoPriceRequest(
                store_id=resolved_store_id,
                item_type=ITEM_TYPE_PARCEL,
                delivery_type=DELIVERY_TYPE_ON_DEMAND,
                item_weight=weight,
                recipient_city=city_id,
                recipient_zone=zone_id,
            )),
        )
        return {'normal': normal, 'on_demand': on_demand}

    # ==================== ORDERS ====================

    async def create_order(self, order: PathaoOrderRequest) -> PathaoOrderResponse:
        """
        Create a delivery order at Pathao

        Returns:
            PathaoOrderResponse with the consignment id and delivery fee
        """
        if self.mock_mode:
            fee = mock_price(order.recipient_city or DHAKA_CITY_ID, order.delivery_type, order.item_weight)
            consignment_id = f"MOCK-{uuid.uuid4().hex[:10].upper()}"
            logger.info(f"Mock Pathao order {consignment_id} for {order.merchant_order_id}")
            return PathaoOrderResponse(
                consignment_id=consignment_id,
                merchant_order_id=order.merchant_order_id,
                order_status='Pending',
                delivery_fee=fee.final_price,
            )

        data = await self._request("POST", "/orders", json=order.to_payload())
        result = PathaoOrderResponse(**self._unwrap(data))
        logger.info(f"Pathao order {result.consignment_id} created for {order.merchant_order_id}")
        return result

    async def create_bulk_orders(self, orders: List[PathaoOrderRequest]) -> Dict:
        if self.mock_mode:
            return {
                'message': 'Your bulk order creation request is accepted (mock)',
                'type': 'success',
                'code': 202,
                'data': True,
                'count': len(orders),
            }

        return await self._request("POST", "/orders/bulk", json={'orders': [order.to_payload() for order in orders]})

    async def get_order_info(self, consignment_id: str) -> Dict:
        """Current status of a consignment"""
        if self.mock_mode:
            return {
                'consignment_id': consignment_id,
                'merchant_order_id': None,
                'order_status': 'Pending',
                'order_status_slug': 'Pending',
                'updated_at': datetime.now(timezone.utc).isoformat(),
                'invoice_id': None,
            }

        data = await self._request("GET", f"/orders/{consignment_id}/info")
        return self._unwrap(data)


_pathao_connector: Optional[PathaoConnector] = None


def get_pathao_connector() -> PathaoConnector:
    """Shared connector so the token cache survives across requests"""
    global _pathao_connector
    if _pathao_connector is None:
        _pathao_connector = PathaoConnector()
    return _pathao_connector


def reset_pathao_connector():
    """Drop the shared connector (after credentials change)"""
    global _pathao_connector
    _pathao_connector = None
