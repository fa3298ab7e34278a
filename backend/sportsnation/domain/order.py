"""
Order Domain Models

Represents order-related entities of the storefront: orders, their line
items and the courier tracking timeline.
"""
import json
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal


ORDER_STATUSES = (
    "pending",
    "processing",
    "shipped",
    "out_for_delivery",
    "completed",
    "cancelled",
)

COURIER_SERVICES = ("sundarban", "pathao")

# Weight assumed for products without a recorded weight (kg)
DEFAULT_ITEM_WEIGHT = 0.5
MIN_PARCEL_WEIGHT = 0.5


class OrderItem(BaseModel):
    """
    Order Item domain model - a line item in an order

    Fields:
        id: Order item ID
        order_id: Parent order ID
        product_id: Reference to product catalog
        product_name: Product name (from catalog JOIN)
        quantity: Number of units ordered
        price: Unit price at order time
        weight: Product weight in kg (optional)
    """

    id: int = Field(..., description="Order item ID")
    order_id: str = Field(..., description="Parent order ID")
    product_id: Optional[int] = Field(None, description="Product catalog ID")
    product_name: str = Field("Product", description="Product name")
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    price: Decimal = Field(..., description="Unit price", ge=0)
    weight: Optional[float] = Field(None, description="Product weight (kg)", ge=0)

    model_config = ConfigDict(from_attributes=True)

    @property
    def line_weight(self) -> float:
        return (self.weight or DEFAULT_ITEM_WEIGHT) * self.quantity

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['price'] = float(self.price)
        return data


class TrackingUpdate(BaseModel):
    """A single event in an order's delivery timeline"""

    id: Optional[int] = None
    order_id: str
    status: str
    location: Optional[str] = None
    description: Optional[str] = None
    courier_data: Optional[Dict[str, Any]] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['timestamp'] = self.timestamp.isoformat()
        return data


class Order(BaseModel):
    """
    Order domain model - a customer order

    Fields:
        id: Order ID (primary key)
        order_number: Human-readable order number (used as merchant order id)
        user_id: Customer who placed the order
        status: Order status (see ORDER_STATUSES)
        payment_status: pending, paid, failed, refunded
        total: Final order total in BDT
        shipping_address: Parsed shipping address (name, phone, address, area, city, country)

        # Courier
        courier_service: sundarban or pathao
        courier_tracking_id: Tracking code / consignment id at the courier
        tracking_number: Customer-facing tracking number
        courier_order_id: Order id at the courier
        courier_invoice_id: Invoice id at the courier

        # Related data (optional, from JOINs)
        customer_name, customer_email, customer_phone
        items: Line items
        tracking_updates: Delivery timeline
    """

    id: str = Field(..., description="Order ID")
    order_number: str = Field(..., description="Order number")
    user_id: Optional[str] = Field(None, description="Customer user ID")
    status: str = Field("pending", description="Order status")
    payment_status: Optional[str] = Field(None, description="Payment status")
    total: Decimal = Field(..., description="Order total", ge=0)
    shipping_address: Dict[str, Any] = Field(default_factory=dict)

    courier_service: Optional[str] = None
    courier_tracking_id: Optional[str] = None
    tracking_number: Optional[str] = None
    courier_order_id: Optional[str] = None
    courier_invoice_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None

    items: List[OrderItem] = Field(default_factory=list)
    tracking_updates: List[TrackingUpdate] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator('shipping_address', mode='before')
    @classmethod
    def parse_shipping_address(cls, value):
        """Addresses may arrive as JSON text from older rows"""
        if value is None:
            return {}
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except (json.JSONDecodeError, ValueError):
                return {}
            return parsed if isinstance(parsed, dict) else {}
        return value

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_weight(self) -> float:
        """Parcel weight in kg, never below the courier minimum"""
        weight = sum(item.line_weight for item in self.items)
        return max(round(weight, 2), MIN_PARCEL_WEIGHT)

    @property
    def item_description(self) -> str:
        return ", ".join(f"{item.product_name} (Qty: {item.quantity})" for item in self.items)

    @property
    def recipient_name(self) -> str:
        return self.shipping_address.get('name') or self.customer_name or 'Customer'

    @property
    def recipient_phone(self) -> Optional[str]:
        return self.shipping_address.get('phone') or self.customer_phone

    @property
    def formatted_address(self) -> str:
        parts = [
            self.shipping_address.get('address'),
            self.shipping_address.get('area'),
            self.shipping_address.get('city'),
            self.shipping_address.get('country'),
        ]
        return ", ".join(part for part in parts if part) or 'N/A'

    @property
    def is_paid(self) -> bool:
        return self.payment_status == 'paid'

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal and datetime made JSON friendly"""
        data = self.model_dump(exclude={'items', 'tracking_updates'})
        data['total'] = float(self.total)
        for field in ('created_at', 'updated_at'):
            if data.get(field) is not None:
                data[field] = data[field].isoformat()
        data['items'] = [item.to_dict() for item in self.items]
        data['tracking_updates'] = [update.to_dict() for update in self.tracking_updates]
        return data
