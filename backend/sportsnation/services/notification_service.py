"""
Notification Service
Customer-facing SMS: order confirmation, courier status updates and the
admin SMS tools
"""
import logging
from typing import Dict, List, Optional

from sportsnation.connectors.sms_connector import SmsConnector, SmsResult
from sportsnation.core.config import settings

logger = logging.getLogger(__name__)

# Courier statuses that trigger a customer SMS
NOTIFIABLE_STATUSES = ("delivered", "out_for_delivery", "cancelled")


def render_order_confirmation(
    order_number: str,
    customer_name: str,
    total_amount: float,
    delivery_address: str,
    items: List[Dict]
) -> str:
    item_lines = ", ".join(
        f"{item.get('name', 'Product')} (Qty: {item.get('quantity', 1)})" for item in items
    ) or "N/A"

    # Sections are separated by a blank line
    return "\n\n".join([
        f"Dear {customer_name},",
        f"Your order #{order_number} has been confirmed!",
        "\n".join([
            f"Items: {item_lines}",
            f"Total: ৳{float(total_amount):.2f}",
            f"Delivery: {delivery_address}",
        ]),
        "We'll prepare your order and notify you once it's shipped.",
        f"Thank you for choosing {settings.STORE_NAME}!",
        f"For support: {settings.SUPPORT_PHONE}",
    ])


def render_status_update(order_number: str, status: str, estimated_delivery_time: Optional[str] = None) -> Optional[str]:
    """SMS text for a courier status, None for statuses customers are not told about"""
    if status == "delivered":
        return (
            f"Your order {order_number} has been delivered successfully. "
            f"Thank you for choosing {settings.STORE_NAME}!"
        )
    if status == "out_for_delivery":
        return (
            f"Your order {order_number} is out for delivery. "
            f"Expected delivery time: {estimated_delivery_time or 'Today'}."
        )
    if status == "cancelled":
        return (
            f"Your order {order_number} has been cancelled. "
            "Please contact customer support for assistance."
        )
    return None


class NotificationService:

    def __init__(self, sms_connector: Optional[SmsConnector] = None):
        self.sms = sms_connector or SmsConnector()

    async def send_order_confirmation(
        self,
        phone: str,
        order_number: str,
        customer_name: str,
        total_amount: float,
        delivery_address: str,
        items: List[Dict]
    ) -> SmsResult:
        message = render_order_confirmation(order_number, customer_name, total_amount, delivery_address, items)
        return await self.sms.send(phone, message)

    async def send_courier_status_update(
        self,
        phone: str,
        order_number: str,
        status: str,
        estimated_delivery_time: Optional[str] = None
    ) -> Optional[SmsResult]:
        message = render_status_update(order_number, status, estimated_delivery_time)
        if message is None:
            logger.debug(f"No customer SMS for status '{status}' on order {order_number}")
            return None
        return await self.sms.send(phone, message)

    async def send_test_sms(self, phone: str) -> SmsResult:
        """Confirmation SMS for a sample order, used to check the provider setup"""
        return await self.send_order_confirmation(
            phone=phone,
            order_number="TEST-001",
            customer_name="Test Customer",
            total_amount=1000,
            delivery_address="Test Address, Dhaka",
            items=[{'name': 'Test Product', 'quantity': 1}],
        )

    async def send_custom_sms(self, phone: str, message: str) -> SmsResult:
        return await self.sms.send(phone, message)
