"""
Courier Domain Models

Request/response shapes of the Pathao merchant API (aladdin v1) and the
courier tracking view shown to admins.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime


DELIVERY_TYPE_NORMAL = 48
DELIVERY_TYPE_ON_DEMAND = 12

ITEM_TYPE_DOCUMENT = 1
ITEM_TYPE_PARCEL = 2


class PathaoToken(BaseModel):
    """OAuth token issued by Pathao, with absolute expiry (epoch seconds)"""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: Optional[str] = None
    expires_at: float

    model_config = ConfigDict(extra="ignore")


class PathaoStore(BaseModel):
    store_id: int
    store_name: str
    store_address: Optional[str] = None
    is_active: int = 1
    city_id: Optional[int] = None
    zone_id: Optional[int] = None
    hub_id: Optional[int] = None
    is_default_store: bool = False
    is_default_return_store: bool = False

    model_config = ConfigDict(extra="ignore")


class PathaoCity(BaseModel):
    city_id: int
    city_name: str

    model_config = ConfigDict(extra="ignore")


class PathaoZone(BaseModel):
    zone_id: int
    zone_name: str

    model_config = ConfigDict(extra="ignore")


class PathaoArea(BaseModel):
    area_id: int
    area_name: str
    home_delivery_available: bool = True
    pickup_available: bool = True

    model_config = ConfigDict(extra="ignore")


class PathaoStoreRequest(BaseModel):
    name: str
    contact_name: str
    contact_number: str
    secondary_contact: Optional[str] = None
    address: str
    city_id: int
    zone_id: int
    area_id: int


class PathaoOrderRequest(BaseModel):
    """
    Payload for creating a Pathao delivery order

    delivery_type: 48 for Normal, 12 for On Demand
    item_type: 1 for Document, 2 for Parcel
    item_weight: kg, Pathao accepts 0.5 to 10
    """

    store_id: int
    merchant_order_id: Optional[str] = None
    recipient_name: str = Field(..., min_length=3, max_length=100)
    recipient_phone: str = Field(..., min_length=11, max_length=14)
    recipient_secondary_phone: Optional[str] = None
    recipient_address: str = Field(..., min_length=10, max_length=220)
    recipient_city: Optional[int] = None
    recipient_zone: Optional[int] = None
    recipient_area: Optional[int] = None
    delivery_type: int = DELIVERY_TYPE_NORMAL
    item_type: int = ITEM_TYPE_PARCEL
    special_instruction: Optional[str] = None
    item_quantity: int = Field(1, ge=1)
    item_weight: float = Field(0.5, ge=0.5, le=10)
    item_description: Optional[str] = None
    amount_to_collect: int = Field(0, ge=0)

    @field_validator('delivery_type')
    @classmethod
    def check_delivery_type(cls, value):
        if value not in (DELIVERY_TYPE_NORMAL, DELIVERY_TYPE_ON_DEMAND):
            raise ValueError("delivery_type must be 48 (normal) or 12 (on demand)")
        return value

    @field_validator('item_type')
    @classmethod
    def check_item_type(cls, value):
        if value not in (ITEM_TYPE_DOCUMENT, ITEM_TYPE_PARCEL):
            raise ValueError("item_type must be 1 (document) or 2 (parcel)")
        return value

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class PathaoOrderResponse(BaseModel):
    consignment_id: str
    merchant_order_id: Optional[str] = None
    order_status: str = "Pending"
    delivery_fee: float = 0

    model_config = ConfigDict(extra="ignore")

    @field_validator('consignment_id', mode='before')
    @classmethod
    def coerce_consignment_id(cls, value):
        return str(value)


class PathaoPriceRequest(BaseModel):
    store_id: int
    item_type: int = ITEM_TYPE_PARCEL
    delivery_type: int = DELIVERY_TYPE_NORMAL
    item_weight: float = Field(0.5, ge=0.5, le=10)
    recipient_city: int
    recipient_zone: int


class PathaoPriceResponse(BaseModel):
    price: float
    discount: float = 0
    promo_discount: float = 0
    plan_id: Optional[int] = None
    cod_enabled: int = 1
    cod_percentage: float = 0
    additional_charge: float = 0
    final_price: float

    model_config = ConfigDict(extra="ignore")


class TrackingEvent(BaseModel):
    status: str
    location: Optional[str] = None
    timestamp: datetime
    description: Optional[str] = None


class CourierTracking(BaseModel):
    """Live tracking snapshot for an order handed to a courier"""

    service: str
    tracking_id: str
    status: Optional[str] = None
    location: Optional[str] = None
    updates: List[TrackingEvent] = Field(default_factory=list)
    estimated_delivery: Optional[datetime] = None
    last_updated: datetime
    is_simulated: bool = False
