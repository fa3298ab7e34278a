"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders, their items, courier fields and
tracking timeline. Returns Order domain models.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from psycopg2.extras import Json

from sportsnation.core.database import get_db_connection_dict_with_retry
from sportsnation.domain.courier import PathaoOrderRequest, PathaoOrderResponse
from sportsnation.domain.order import Order, OrderItem, TrackingUpdate

logger = logging.getLogger(__name__)


ORDER_COLUMNS = """
    o.id, o.order_number, o.user_id, o.status, o.payment_status, o.total,
    o.shipping_address,
    o.courier_service, o.courier_tracking_id, o.tracking_number,
    o.courier_order_id, o.courier_invoice_id,
    o.created_at, o.updated_at,
    u.name as customer_name,
    u.email as customer_email,
    u.phone as customer_phone
"""


class OrderRepository:
    """
    Repository for Order data access

    All SQL queries for orders are centralized here.
    """

    def find_by_id(self, order_id: str) -> Optional[Order]:
        """
        Find order by ID with customer, items and tracking updates

        Args:
            order_id: Order ID

        Returns:
            Order with related data or None if not found
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON o.user_id = u.id
                WHERE o.id = %s
            """, (order_id,))

            row = cursor.fetchone()
            if not row:
                return None

            return self._with_related(cursor, row)

        finally:
            cursor.close()
            conn.close()

    def find_for_user(
        self,
        user_id: str,
        order_id: Optional[str] = None,
        tracking_number: Optional[str] = None
    ) -> Optional[Order]:
        """
        Find one of a customer's own orders by ID or, failing that, tracking number

        Orders belonging to other users are reported as not found.
        """
        if order_id:
            condition, key = "o.id = %s", order_id
        elif tracking_number:
            condition, key = "o.tracking_number = %s", tracking_number
        else:
            return None

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON o.user_id = u.id
                WHERE {condition}
                AND o.user_id = %s
                LIMIT 1
            """, (key, user_id))

            row = cursor.fetchone()
            if not row:
                return None

            return self._with_related(cursor, row)

        finally:
            cursor.close()
            conn.close()

    def _with_related(self, cursor, row) -> Order:
        """Load items and tracking timeline for an order row"""
        order_id = row['id']

        cursor.execute("""
            SELECT
                oi.id, oi.order_id, oi.product_id,
                COALESCE(p.name, 'Product') as product_name,
                oi.quantity, oi.price, p.weight
            FROM order_items oi
            LEFT JOIN products p ON oi.product_id = p.id
            WHERE oi.order_id = %s
            ORDER BY oi.id
        """, (order_id,))
        items = cursor.fetchall()

        cursor.execute("""
            SELECT id, order_id, status, location, description, courier_data, timestamp
            FROM tracking_updates
            WHERE order_id = %s
            ORDER BY timestamp DESC
        """, (order_id,))
        updates = cursor.fetchall()

        order_dict = dict(row)
        order_dict['items'] = [OrderItem(**item) for item in items]
        order_dict['tracking_updates'] = [TrackingUpdate(**update) for update in updates]

        return Order(**order_dict)

    def find_by_tracking_code(self, tracking_code: str, courier_service: Optional[str] = None) -> Optional[Order]:
        """Find the order handed to a courier under this tracking code"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = ["o.courier_tracking_id = %s"]
            params = [tracking_code]

            if courier_service:
                conditions.append("o.courier_service = %s")
                params.append(courier_service)

            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON o.user_id = u.id
                WHERE {" AND ".join(conditions)}
                LIMIT 1
            """, params)

            row = cursor.fetchone()
            return Order(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_courier_orders(
        self,
        courier_service: str,
        start_date: datetime,
        end_date: datetime
    ) -> List[Order]:
        """
        Orders shipped with a courier, created within [start_date, end_date]

        Returns:
            Orders sorted newest first (items not loaded)
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON o.user_id = u.id
                WHERE o.courier_service = %s
                AND o.created_at >= %s
                AND o.created_at <= %s
                ORDER BY o.created_at DESC
            """, (courier_service, start_date, end_date))

            return [Order(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_unassigned_orders(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Order]:
        """
        Orders not yet handed to any courier, newest first, with their items

        Args:
            status: Only orders in this status ('all' or None for every status)
            limit: Page size
            offset: Rows to skip
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = [
                "o.courier_service IS NULL",
                "COALESCE(o.courier_tracking_id, '') = ''",
            ]
            params = []

            if status and status != 'all':
                conditions.append("o.status = %s")
                params.append(status)

            params.extend([limit, offset])

            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON o.user_id = u.id
                WHERE {" AND ".join(conditions)}
                ORDER BY o.created_at DESC
                LIMIT %s OFFSET %s
            """, params)
            rows = cursor.fetchall()
            if not rows:
                return []

            cursor.execute("""
                SELECT
                    oi.id, oi.order_id, oi.product_id,
                    COALESCE(p.name, 'Product') as product_name,
                    oi.quantity, oi.price, p.weight
                FROM order_items oi
                LEFT JOIN products p ON oi.product_id = p.id
                WHERE oi.order_id = ANY(%s)
                ORDER BY oi.id
            """, ([row['id'] for row in rows],))

            items_by_order = {}
            for item in cursor.fetchall():
                items_by_order.setdefault(item['order_id'], []).append(OrderItem(**item))

            return [
                Order(**row, items=items_by_order.get(row['id'], []))
                for row in rows
            ]

        finally:
            cursor.close()
            conn.close()

    def find_pathao_orders(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[dict]:
        """
        Locally stored Pathao consignments, newest first

        Returns:
            pathao_orders rows with the creating user's name and email
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            where = ""
            params = []

            if status:
                where = "WHERE po.order_status = %s"
                params.append(status)

            params.extend([limit, offset])

            cursor.execute(f"""
                SELECT
                    po.id, po.consignment_id, po.merchant_order_id, po.store_id,
                    po.recipient_name, po.recipient_phone, po.recipient_secondary_phone,
                    po.recipient_address, po.recipient_city, po.recipient_zone, po.recipient_area,
                    po.delivery_type, po.item_type, po.special_instruction,
                    po.item_quantity, po.item_weight, po.item_description,
                    po.amount_to_collect, po.order_status, po.delivery_fee,
                    po.user_id, po.created_at,
                    u.name as user_name,
                    u.email as user_email
                FROM pathao_orders po
                LEFT JOIN users u ON po.user_id = u.id
                {where}
                ORDER BY po.created_at DESC
                LIMIT %s OFFSET %s
            """, params)

            return [dict(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def assign_courier(
        self,
        order_id: str,
        courier_service: str,
        courier_tracking_id: str,
        tracking_number: Optional[str] = None,
        status: str = "shipped",
        courier_order_id: Optional[str] = None,
        courier_invoice_id: Optional[str] = None
    ) -> bool:
        """
        Store courier information on an order and move it to `status`

        Returns:
            True if the order exists and was updated
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE orders
                SET courier_service = %s,
                    courier_tracking_id = %s,
                    tracking_number = %s,
                    courier_order_id = COALESCE(%s, courier_order_id),
                    courier_invoice_id = COALESCE(%s, courier_invoice_id),
                    status = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING id
            """, (
                courier_service,
                courier_tracking_id,
                tracking_number or courier_tracking_id,
                courier_order_id,
                courier_invoice_id,
                status,
                order_id
            ))
            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update_status(self, order_id: str, status: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE orders
                SET status = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING id
            """, (status, order_id))
            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def add_tracking_update(
        self,
        order_id: str,
        status: str,
        location: Optional[str] = None,
        description: Optional[str] = None,
        courier_data: Optional[dict] = None,
        timestamp: Optional[datetime] = None
    ) -> TrackingUpdate:
        """Append an event to the order's delivery timeline"""
        timestamp = timestamp or datetime.now(timezone.utc)

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO tracking_updates (
                    order_id, status, location, description, courier_data, timestamp
                ) VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id, order_id, status, location, description, courier_data, timestamp
            """, (
                order_id,
                status,
                location,
                description,
                Json(courier_data) if courier_data is not None else None,
                timestamp
            ))
            row = cursor.fetchone()
            conn.commit()
            return TrackingUpdate(**row)

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def save_pathao_order(
        self,
        request: PathaoOrderRequest,
        response: PathaoOrderResponse,
        user_id: Optional[str] = None
    ) -> int:
        """
        Keep a local copy of a consignment created at Pathao

        Returns:
            ID of the pathao_orders row
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO pathao_orders (
                    consignment_id, merchant_order_id, store_id,
                    recipient_name, recipient_phone, recipient_secondary_phone,
                    recipient_address, recipient_city, recipient_zone, recipient_area,
                    delivery_type, item_type, special_instruction,
                    item_quantity, item_weight, item_description, amount_to_collect,
                    order_status, delivery_fee, user_id
                ) VALUES (
                    %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                    %s, %s, %s, %s, %s, %s, %s, %s, %s, %s
                )
                ON CONFLICT (consignment_id) DO UPDATE SET
                    order_status = EXCLUDED.order_status,
                    delivery_fee = EXCLUDED.delivery_fee
                RETURNING id
            """, (
                response.consignment_id,
                response.merchant_order_id or request.merchant_order_id,
                request.store_id,
                request.recipient_name,
                request.recipient_phone,
                request.recipient_secondary_phone,
                request.recipient_address,
                request.recipient_city,
                request.recipient_zone,
                request.recipient_area,
                request.delivery_type,
                request.item_type,
                request.special_instruction,
                request.item_quantity,
                request.item_weight,
                request.item_description,
                request.amount_to_collect,
                response.order_status,
                response.delivery_fee,
                user_id
            ))
            row = cursor.fetchone()
            conn.commit()
            return row['id']

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
