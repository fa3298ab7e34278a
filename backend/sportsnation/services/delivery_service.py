"""
Delivery Service
Checkout delivery policy for Bangladesh: shipping charge, free-shipping
threshold, estimated delivery date and partial (advance) payment
"""
import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel


class DeliveryPolicy(BaseModel):
    delivery_time: str = "2-5 days"
    min_delivery_days: int = 2
    max_delivery_days: int = 5
    free_shipping_threshold: float = 2000
    shipping_cost: float = 110
    money_back_days: int = 7
    partial_payment_percentage: float = 20


class DeliveryQuote(BaseModel):
    currency: str = "BDT"
    order_total: float
    shipping_cost: float
    is_free_shipping: bool
    amount_for_free_shipping: float
    total_with_shipping: float
    delivery_time: str
    estimated_delivery_date: datetime
    free_shipping_threshold: float
    partial_payment_percentage: float
    partial_payment_amount: float
    money_back_days: int


def format_currency(amount: Optional[float]) -> str:
    """Format an amount in whole taka with no grouping, e.g. ৳1234 (halves round up)"""
    if amount is None:
        return "৳0"
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return "৳0"
    if not math.isfinite(value):
        return "৳0"
    rounded = Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"৳{rounded}"


class DeliveryService:

    def __init__(self, policy: Optional[DeliveryPolicy] = None):
        self.policy = policy or DeliveryPolicy()

    def shipping_cost(self, order_total: float) -> float:
        if order_total >= self.policy.free_shipping_threshold:
            return 0
        return self.policy.shipping_cost

    def calculate(self, order_total: float, now: Optional[datetime] = None) -> DeliveryQuote:
        """
        Quote shipping for a cart total

        The delivery estimate uses the upper bound of the delivery window.
        """
        now = now or datetime.now()
        shipping = self.shipping_cost(order_total)
        total = order_total + shipping

        return DeliveryQuote(
            order_total=order_total,
            shipping_cost=shipping,
            is_free_shipping=shipping == 0,
            amount_for_free_shipping=max(self.policy.free_shipping_threshold - order_total, 0),
            total_with_shipping=total,
            delivery_time=self.policy.delivery_time,
            estimated_delivery_date=now + timedelta(days=self.policy.max_delivery_days),
            free_shipping_threshold=self.policy.free_shipping_threshold,
            partial_payment_percentage=self.policy.partial_payment_percentage,
            partial_payment_amount=round(total * self.policy.partial_payment_percentage / 100, 2),
            money_back_days=self.policy.money_back_days,
        )
