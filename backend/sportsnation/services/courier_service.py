"""
Courier Service
Order shipping workflow around the Pathao connector

Handles:
- Creating Pathao consignments for existing orders (and manual ones)
- Manual courier assignment (Sundarban / Pathao tracking codes)
- Live tracking lookup, including customer self-service tracking
- Listing stored Pathao consignments next to orders awaiting a courier
- Pathao webhook status updates with customer SMS
- Courier dashboard statistics
"""
import hmac
import logging
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import psycopg2
from pydantic import ValidationError

from sportsnation.connectors.pathao_connector import PathaoConnector, PathaoError, get_pathao_connector
from sportsnation.core.config import settings
from sportsnation.core.database import DatabaseNotConfigured
from sportsnation.domain.courier import (
    DELIVERY_TYPE_NORMAL,
    ITEM_TYPE_PARCEL,
    CourierTracking,
    PathaoOrderRequest,
    PathaoPriceRequest,
    TrackingEvent,
)
from sportsnation.domain.order import COURIER_SERVICES, Order
from sportsnation.repositories.order_repository import OrderRepository
from sportsnation.services.notification_service import NOTIFIABLE_STATUSES, NotificationService

logger = logging.getLogger(__name__)

# Pathao webhook status -> order status
WEBHOOK_STATUS_MAP = {
    'pending': 'processing',
    'picked_up': 'shipped',
    'in_transit': 'shipped',
    'out_for_delivery': 'out_for_delivery',
    'delivered': 'completed',
    'cancelled': 'cancelled',
    'failed': 'cancelled',
}

SHIPPED_STATUSES = ('shipped', 'out_for_delivery', 'completed')
IN_TRANSIT_STATUSES = ('shipped', 'in_transit', 'out_for_delivery')
PENDING_STATUSES = ('pending', 'processing')

DASHBOARD_RANGES = {'1d': 1, '7d': 7, '30d': 30, '90d': 90}
DEFAULT_DASHBOARD_RANGE = '7d'

OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class CourierError(Exception):
    """Workflow error carrying the HTTP status the API should answer with"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def to_local_phone(phone: Optional[str]) -> Optional[str]:
    """Pathao wants 11-digit local numbers (01XXXXXXXXX)"""
    if not phone:
        return None
    digits = re.sub(r'\D', '', phone)
    if digits.startswith('880'):
        return '0' + digits[3:]
    if not digits.startswith('0'):
        return '0' + digits
    return digits


def verify_webhook_signature(signature: Optional[str], secret: Optional[str] = None) -> bool:
    """
    Check the X-Pathao-Signature header

    Without PATHAO_WEBHOOK_SECRET configured every request is accepted.
    """
    secret = secret if secret is not None else settings.PATHAO_WEBHOOK_SECRET
    if not secret:
        return True
    if not signature:
        return False
    return hmac.compare_digest(signature.encode(), secret.encode())


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CourierService:

    def __init__(
        self,
        order_repository: Optional[OrderRepository] = None,
        connector: Optional[PathaoConnector] = None,
        notifications: Optional[NotificationService] = None
    ):
        self.orders = order_repository or OrderRepository()
        self.connector = connector or get_pathao_connector()
        self.notifications = notifications or NotificationService()

    # ==================== PATHAO ORDERS ====================

    def build_pathao_request(self, order: Order, store_id: int, courier_data: Dict[str, Any]) -> PathaoOrderRequest:
        """Map an order (plus admin overrides) onto a Pathao order payload"""
        phone = to_local_phone(courier_data.get('recipient_phone') or order.recipient_phone)
        if not phone:
            raise CourierError("Recipient phone number is required")

        address = courier_data.get('recipient_address') or order.formatted_address
        amount_to_collect = courier_data.get('amount_to_collect')
        if amount_to_collect is None:
            amount_to_collect = 0 if order.is_paid else int(round(float(order.total)))

        try:
            return PathaoOrderRequest(
                store_id=store_id,
                merchant_order_id=order.order_number,
                recipient_name=courier_data.get('recipient_name') or order.recipient_name,
                recipient_phone=phone,
                recipient_secondary_phone=to_local_phone(courier_data.get('recipient_secondary_phone')),
                recipient_address=address,
                recipient_city=courier_data.get('recipient_city'),
                recipient_zone=courier_data.get('recipient_zone'),
                recipient_area=courier_data.get('recipient_area'),
                delivery_type=courier_data.get('delivery_type') or DELIVERY_TYPE_NORMAL,
                item_type=courier_data.get('item_type') or ITEM_TYPE_PARCEL,
                special_instruction=courier_data.get('special_instruction'),
                item_quantity=max(order.total_quantity, 1),
                item_weight=courier_data.get('item_weight') or order.total_weight,
                item_description=order.item_description or None,
                amount_to_collect=amount_to_collect,
            )
        except ValidationError as e:
            raise CourierError(f"Invalid shipment data: {e.errors()[0]['msg']}") from e

    def _save_pathao_order(self, request, response, user_id: Optional[str]):
        try:
            self.orders.save_pathao_order(request, response, user_id)
        except (psycopg2.Error, DatabaseNotConfigured) as e:
            logger.error(f"Could not store Pathao order {response.consignment_id}: {e}")

    async def create_pathao_shipment(
        self,
        order_id: str,
        courier_data: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Ship an existing order with Pathao

        Raises:
            CourierError: 404 unknown order, 409 already shipped, 400 bad data,
                502 Pathao rejected the order
        """
        courier_data = courier_data or {}

        order = self.orders.find_by_id(order_id)
        if order is None:
            raise CourierError("Order not found", status_code=404)

        if order.courier_service and order.courier_tracking_id and order.status in SHIPPED_STATUSES:
            raise CourierError(
                f"Order already shipped with {order.courier_service} ({order.courier_tracking_id})",
                status_code=409
            )

        try:
            store_id = await self.connector.resolve_store_id(courier_data.get('store_id'))
            request = self.build_pathao_request(order, store_id, courier_data)
            response = await self.connector.create_order(request)
        except PathaoError as e:
            raise CourierError(f"Pathao error: {e.message}", status_code=502) from e

        self.orders.assign_courier(
            order.id,
            courier_service='pathao',
            courier_tracking_id=response.consignment_id,
            status='shipped',
            courier_order_id=response.consignment_id,
        )
        self.orders.add_tracking_update(
            order.id,
            status='shipped',
            location='Pathao pickup',
            description=f"Consignment {response.consignment_id} created with Pathao",
            courier_data={
                'service': 'pathao',
                'consignment_id': response.consignment_id,
                'delivery_fee': response.delivery_fee,
                'is_mock': self.connector.is_mock,
            }
        )
        self._save_pathao_order(request, response, user_id)

        logger.info(f"Order {order.order_number} shipped with Pathao ({response.consignment_id})")

        return {
            'order_id': order.id,
            'order_number': order.order_number,
            'consignment_id': response.consignment_id,
            'order_status': response.order_status,
            'delivery_fee': response.delivery_fee,
            'amount_to_collect': request.amount_to_collect,
            'is_mock': self.connector.is_mock,
        }

    async def create_manual_pathao_order(self, data: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
        """Create a consignment from admin-entered recipient data (no stored order)"""
        try:
            store_id = await self.connector.resolve_store_id(data.get('store_id'))
            payload = {**data, 'store_id': store_id}
            payload['recipient_phone'] = to_local_phone(payload.get('recipient_phone'))
            request = PathaoOrderRequest(**payload)
            response = await self.connector.create_order(request)
        except ValidationError as e:
            raise CourierError(f"Invalid order data: {e.errors()[0]['msg']}") from e
        except PathaoError as e:
            raise CourierError(f"Pathao error: {e.message}", status_code=502) from e

        self._save_pathao_order(request, response, user_id)

        return {**response.model_dump(), 'is_mock': self.connector.is_mock}

    async def create_bulk_pathao_orders(self, orders: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not orders:
            raise CourierError("No orders provided")

        try:
            store_id = await self.connector.resolve_store_id()
            requests = [
                PathaoOrderRequest(**{
                    **order,
                    'store_id': order.get('store_id') or store_id,
                    'recipient_phone': to_local_phone(order.get('recipient_phone')),
                })
                for order in orders
            ]
            return await self.connector.create_bulk_orders(requests)
        except ValidationError as e:
            raise CourierError(f"Invalid order data: {e.errors()[0]['msg']}") from e
        except PathaoError as e:
            raise CourierError(f"Pathao error: {e.message}", status_code=502) from e

    async def calculate_price(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            store_id = await self.connector.resolve_store_id(data.get('store_id'))
            request = PathaoPriceRequest(**{**data, 'store_id': store_id})
            price = await self.connector.calculate_price(request)
        except ValidationError as e:
            raise CourierError(f"Invalid price request: {e.errors()[0]['msg']}") from e
        except PathaoError as e:
            raise CourierError(f"Pathao error: {e.message}", status_code=502) from e
        return price.model_dump()

    async def get_pathao_order_info(self, consignment_id: str) -> Dict[str, Any]:
        try:
            return await self.connector.get_order_info(consignment_id)
        except PathaoError as e:
            status_code = 404 if e.status_code == 404 else 502
            raise CourierError(f"Pathao error: {e.message}", status_code=status_code) from e

    # ==================== MANUAL ASSIGNMENT & TRACKING ====================

    def assign_courier(
        self,
        order_id: str,
        courier_service: str,
        tracking_id: str,
        tracking_number: Optional[str] = None
    ) -> Dict[str, Any]:
        """Record a courier tracking code entered by an admin and mark the order shipped"""
        if not courier_service or not tracking_id:
            raise CourierError("Courier service and tracking ID are required")
        if courier_service not in COURIER_SERVICES:
            raise CourierError("Invalid courier service. Must be sundarban or pathao")

        updated = self.orders.assign_courier(
            order_id,
            courier_service=courier_service,
            courier_tracking_id=tracking_id,
            tracking_number=tracking_number,
            status='shipped',
        )
        if not updated:
            raise CourierError("Order not found", status_code=404)

        self.orders.add_tracking_update(
            order_id,
            status='picked_up',
            location='Warehouse',
            description=f"Package picked up by {courier_service} courier service",
            courier_data={
                'service': courier_service,
                'trackingId': tracking_id,
                'assignedAt': datetime.now(timezone.utc).isoformat(),
            }
        )

        order = self.orders.find_by_id(order_id)
        return order.to_dict() if order else {'id': order_id}

    def _simulated_tracking(self, order: Order, now: datetime) -> CourierTracking:
        """Timeline built from the order dates, for couriers without a live API"""
        picked_up_at = _as_utc(order.updated_at or order.created_at) or now
        in_transit_at = picked_up_at + timedelta(hours=12)

        updates = [TrackingEvent(
            status='picked_up',
            location='Warehouse',
            timestamp=picked_up_at,
            description='Package picked up from warehouse',
        )]
        if now >= in_transit_at:
            updates.append(TrackingEvent(
                status='in_transit',
                location='Dhaka Hub',
                timestamp=in_transit_at,
                description='Package in transit to destination',
            ))

        latest = updates[-1]
        return CourierTracking(
            service=order.courier_service,
            tracking_id=order.courier_tracking_id,
            status=latest.status,
            location=latest.location,
            updates=updates,
            estimated_delivery=picked_up_at + timedelta(days=3),
            last_updated=now,
            is_simulated=True,
        )

    async def get_live_tracking(self, order: Order) -> Optional[CourierTracking]:
        if not order.courier_service or not order.courier_tracking_id:
            return None

        now = datetime.now(timezone.utc)

        if order.courier_service != 'pathao' or self.connector.is_mock:
            return self._simulated_tracking(order, now)

        info = await self.connector.get_order_info(order.courier_tracking_id)
        status = info.get('order_status_slug') or info.get('order_status')
        updated_at = _parse_timestamp(info.get('updated_at')) or now

        return CourierTracking(
            service='pathao',
            tracking_id=order.courier_tracking_id,
            status=status,
            updates=[TrackingEvent(status=status or 'unknown', timestamp=updated_at)],
            last_updated=now,
        )

    async def get_courier_info(self, order_id: str) -> Dict[str, Any]:
        order = self.orders.find_by_id(order_id)
        if order is None:
            raise CourierError("Order not found", status_code=404)

        return await self._tracking_response(order)

    async def get_customer_tracking(
        self,
        user_id: str,
        order_id: Optional[str] = None,
        tracking_number: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Tracking for one of the signed-in customer's orders

        Raises:
            CourierError: 400 without a lookup key, 404 when the order is missing
                or belongs to someone else
        """
        if not order_id and not tracking_number:
            raise CourierError("Order ID or tracking number required")

        order = self.orders.find_for_user(user_id, order_id=order_id, tracking_number=tracking_number)
        if order is None:
            raise CourierError("Order not found", status_code=404)

        return await self._tracking_response(order)

    async def _tracking_response(self, order: Order) -> Dict[str, Any]:
        try:
            tracking = await self.get_live_tracking(order)
        except PathaoError as e:
            logger.warning(f"Live tracking unavailable for order {order.order_number}: {e}")
            tracking = None

        order_data = order.to_dict()
        return {
            'order': order_data,
            'tracking_updates': order_data['tracking_updates'],
            'courier_tracking': tracking.model_dump(mode='json') if tracking else None,
        }

    # ==================== ORDER MANAGEMENT ====================

    def list_pathao_orders(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Dict[str, Any]:
        """
        Stored Pathao consignments together with orders still waiting for a courier

        Both sources are paged with the same limit/offset, merged newest first
        and cut back to `limit` rows.
        """
        if status in ('', 'all'):
            status = None

        try:
            stored = self.orders.find_pathao_orders(status=status, limit=limit, offset=offset)
            unassigned = self.orders.find_unassigned_orders(status=status, limit=limit, offset=offset)
        except (psycopg2.Error, DatabaseNotConfigured) as e:
            logger.error(f"Could not load Pathao orders: {e}")
            raise CourierError("Orders are unavailable right now", status_code=503) from e

        rows = [(row.get('created_at'), self._stored_pathao_row(row)) for row in stored]
        rows += [(order.created_at, self._unassigned_row(order)) for order in unassigned]
        rows.sort(key=lambda pair: _as_utc(pair[0]) or OLDEST, reverse=True)

        return {
            'orders': [row for _, row in rows[:limit]],
            'total': len(stored) + len(unassigned),
            'limit': limit,
            'offset': offset,
        }

    @staticmethod
    def _stored_pathao_row(row: Dict[str, Any]) -> Dict[str, Any]:
        created_at = row.get('created_at')
        delivery_fee = row.get('delivery_fee')
        return {
            'id': row['id'],
            'consignmentId': row['consignment_id'],
            'merchantOrderId': row.get('merchant_order_id'),
            'storeId': row.get('store_id'),
            'recipientName': row.get('recipient_name'),
            'recipientPhone': row.get('recipient_phone'),
            'recipientSecondaryPhone': row.get('recipient_secondary_phone'),
            'recipientAddress': row.get('recipient_address'),
            'recipientCity': row.get('recipient_city'),
            'recipientZone': row.get('recipient_zone'),
            'recipientArea': row.get('recipient_area'),
            'deliveryType': row.get('delivery_type'),
            'itemType': row.get('item_type'),
            'specialInstruction': row.get('special_instruction'),
            'itemQuantity': row.get('item_quantity'),
            'itemWeight': float(row['item_weight']) if row.get('item_weight') is not None else None,
            'itemDescription': row.get('item_description'),
            'amountToCollect': row.get('amount_to_collect'),
            'orderStatus': row.get('order_status'),
            'deliveryFee': float(delivery_fee) if delivery_fee is not None else None,
            'createdAt': created_at.isoformat() if created_at else None,
            'user': {
                'id': row['user_id'],
                'name': row.get('user_name'),
                'email': row.get('user_email'),
            } if row.get('user_id') else None,
            'source': 'pathao',
        }

    @staticmethod
    def _unassigned_row(order: Order) -> Dict[str, Any]:
        if order.items:
            description = order.items[0].product_name
            if len(order.items) > 1:
                description += f" +{len(order.items) - 1} more"
        else:
            description = 'Multiple items'

        return {
            'id': f"ecommerce-{order.id}",
            'consignmentId': f"ECO-{order.order_number}",
            'merchantOrderId': order.order_number,
            'storeId': settings.PATHAO_STORE_ID,
            'recipientName': order.recipient_name,
            'recipientPhone': order.recipient_phone or 'N/A',
            'recipientAddress': order.formatted_address,
            'itemQuantity': order.total_quantity,
            'itemWeight': order.total_weight,
            'itemDescription': description,
            'amountToCollect': 0 if order.is_paid else float(order.total),
            'orderStatus': order.status.replace('_', ' ').title(),
            'createdAt': order.created_at.isoformat() if order.created_at else None,
            'user': {
                'id': order.user_id,
                'name': order.customer_name,
                'email': order.customer_email,
            } if order.user_id else None,
            'source': 'ecommerce',
            'originalOrderId': order.id,
        }

    # ==================== WEBHOOK ====================

    async def handle_pathao_webhook(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a Pathao status push to the matching order

        Required fields: order_id, tracking_code, status
        """
        tracking_code = payload.get('tracking_code')
        courier_status = payload.get('status')
        if not payload.get('order_id') or not tracking_code or not courier_status:
            raise CourierError("Missing required fields")

        order = self.orders.find_by_tracking_code(str(tracking_code), courier_service='pathao')
        if order is None:
            logger.error(f"Order not found for tracking code: {tracking_code}")
            raise CourierError("Order not found", status_code=404)

        courier_status = str(courier_status).lower()
        order_status = WEBHOOK_STATUS_MAP.get(courier_status, order.status)

        if order_status != order.status:
            self.orders.update_status(order.id, order_status)

        self.orders.add_tracking_update(
            order.id,
            status=order_status,
            location=payload.get('current_location') or 'Unknown',
            description=payload.get('status_description') or f"Order {courier_status}",
            courier_data=payload,
            timestamp=_parse_timestamp(payload.get('timestamp')),
        )

        phone = order.customer_phone or order.recipient_phone
        if phone and courier_status in NOTIFIABLE_STATUSES:
            result = await self.notifications.send_courier_status_update(
                phone,
                order.order_number,
                courier_status,
                payload.get('estimated_delivery_time'),
            )
            if result is not None and not result.success:
                logger.error(f"Status SMS for order {order.order_number} failed: {result.error}")

        logger.info(f"Pathao webhook: order {order.order_number} {order.status} -> {order_status}")

        return {
            'success': True,
            'message': 'Webhook processed successfully',
            'orderId': order.id,
            'status': order_status,
        }

    # ==================== DASHBOARD ====================

    def get_dashboard(self, range_code: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Pathao shipping statistics for the admin courier dashboard"""
        if range_code not in DASHBOARD_RANGES:
            range_code = DEFAULT_DASHBOARD_RANGE

        now = now or datetime.now(timezone.utc)
        start_date = now - timedelta(days=DASHBOARD_RANGES[range_code])
        orders = self.orders.find_courier_orders('pathao', start_date, now)

        total_orders = len(orders)
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)

        completed = [order for order in orders if order.status == 'completed']
        delivered_today = sum(
            1 for order in completed
            if order.updated_at and _as_utc(order.updated_at) >= today
        )
        in_transit = sum(1 for order in orders if order.status in IN_TRANSIT_STATUSES)
        pending = sum(1 for order in orders if order.status in PENDING_STATUSES)
        total_revenue = sum(float(order.total) for order in orders)

        delivery_hours = [
            (_as_utc(order.updated_at) - _as_utc(order.created_at)).total_seconds() / 3600
            for order in completed
            if order.updated_at and order.created_at
        ]
        average_delivery_time = sum(delivery_hours) / len(delivery_hours) if delivery_hours else 0
        success_rate = len(completed) / total_orders * 100 if total_orders else 0

        daily_orders = []
        for days_ago in range(6, -1, -1):
            day_start = today - timedelta(days=days_ago)
            day_end = day_start + timedelta(days=1)
            day_orders = [
                order for order in orders
                if order.created_at and day_start <= _as_utc(order.created_at) < day_end
            ]
            daily_orders.append({
                'date': day_start.date().isoformat(),
                'orders': len(day_orders),
                'revenue': sum(float(order.total) for order in day_orders),
            })

        status_counts = Counter(order.status for order in orders)
        status_distribution = [
            {
                'status': status,
                'count': count,
                'percentage': count / total_orders * 100 if total_orders else 0,
            }
            for status, count in status_counts.most_common()
        ]

        area_counts = Counter(
            order.shipping_address.get('area') or order.shipping_address.get('city') or 'Unknown'
            for order in orders
        )
        top_delivery_areas = [
            {'area': area, 'orders': count} for area, count in area_counts.most_common(5)
        ]

        return {
            'success': True,
            'range': range_code,
            'orders': [self._dashboard_row(order) for order in orders],
            'stats': {
                'totalOrders': total_orders,
                'deliveredToday': delivered_today,
                'inTransit': in_transit,
                'pending': pending,
                'totalRevenue': total_revenue,
                'averageDeliveryTime': round(average_delivery_time, 2),
                'successRate': round(success_rate, 2),
            },
            'analytics': {
                'dailyOrders': daily_orders,
                'statusDistribution': status_distribution,
                'topDeliveryAreas': top_delivery_areas,
            },
        }

    @staticmethod
    def _dashboard_row(order: Order) -> Dict[str, Any]:
        return {
            'id': order.id,
            'orderNumber': order.order_number,
            'courierTrackingId': order.courier_tracking_id or '',
            'status': order.status,
            'customerName': order.customer_name or order.recipient_name,
            'customerPhone': order.customer_phone or order.recipient_phone or 'N/A',
            'deliveryAddress': order.formatted_address,
            'total': float(order.total),
            'createdAt': order.created_at.isoformat() if order.created_at else None,
            'lastUpdate': order.updated_at.isoformat() if order.updated_at else None,
        }
