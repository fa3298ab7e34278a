"""
Analytics Repository - aggregate queries for the admin dashboard

Each public method runs all the queries for one metric on a single
connection and returns JSON-ready dicts (Decimal -> float, dates -> ISO).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from sportsnation.core.database import get_db_connection_dict_with_retry


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def serialize_rows(rows) -> List[Dict[str, Any]]:
    return [{key: _to_json_value(value) for key, value in dict(row).items()} for row in rows]


class AnalyticsRepository:

    def get_revenue(self, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
        """Completed-order revenue: total, per day, per month"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COALESCE(SUM(total), 0) as total
                FROM orders
                WHERE status = 'completed'
                AND created_at >= %s AND created_at <= %s
            """, (start_date, end_date))
            total = cursor.fetchone()['total']

            cursor.execute("""
                SELECT
                    DATE(created_at) as date,
                    SUM(total) as revenue,
                    COUNT(*) as orders
                FROM orders
                WHERE status = 'completed'
                AND created_at >= %s AND created_at <= %s
                GROUP BY DATE(created_at)
                ORDER BY date
            """, (start_date, end_date))
            daily = cursor.fetchall()

            cursor.execute("""
                SELECT
                    DATE_TRUNC('month', created_at) as month,
                    SUM(total) as revenue,
                    COUNT(*) as orders
                FROM orders
                WHERE status = 'completed'
                AND created_at >= %s AND created_at <= %s
                GROUP BY DATE_TRUNC('month', created_at)
                ORDER BY month
            """, (start_date, end_date))
            monthly = cursor.fetchall()

            return {
                'total': float(total or 0),
                'daily': serialize_rows(daily),
                'monthly': serialize_rows(monthly),
            }

        finally:
            cursor.close()
            conn.close()

    def get_orders(self, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
        """Order count, counts per status and per day"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COUNT(*) as total
                FROM orders
                WHERE created_at >= %s AND created_at <= %s
            """, (start_date, end_date))
            total = cursor.fetchone()['total']

            cursor.execute("""
                SELECT status, COUNT(*) as count
                FROM orders
                WHERE created_at >= %s AND created_at <= %s
                GROUP BY status
                ORDER BY count DESC
            """, (start_date, end_date))
            by_status = cursor.fetchall()

            cursor.execute("""
                SELECT DATE(created_at) as date, COUNT(*) as orders
                FROM orders
                WHERE created_at >= %s AND created_at <= %s
                GROUP BY DATE(created_at)
                ORDER BY date
            """, (start_date, end_date))
            daily = cursor.fetchall()

            return {
                'total': int(total or 0),
                'byStatus': serialize_rows(by_status),
                'daily': serialize_rows(daily),
            }

        finally:
            cursor.close()
            conn.close()

    def get_customers(self, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
        """
        Customer totals and segments

        Segments by lifetime order count:
            inactive: 0, new: 1, returning: 2-5, vip: more than 5
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COUNT(*) as total FROM users WHERE role = 'customer'
            """)
            total = cursor.fetchone()['total']

            cursor.execute("""
                SELECT COUNT(*) as total
                FROM users
                WHERE role = 'customer'
                AND created_at >= %s AND created_at <= %s
            """, (start_date, end_date))
            new_customers = cursor.fetchone()['total']

            cursor.execute("""
                SELECT
                    CASE
                        WHEN order_count = 0 THEN 'inactive'
                        WHEN order_count = 1 THEN 'new'
                        WHEN order_count BETWEEN 2 AND 5 THEN 'returning'
                        ELSE 'vip'
                    END as segment,
                    COUNT(*) as count,
                    COALESCE(SUM(total_spent), 0) as revenue
                FROM (
                    SELECT
                        u.id,
                        COUNT(o.id) as order_count,
                        COALESCE(SUM(o.total), 0) as total_spent
                    FROM users u
                    LEFT JOIN orders o ON u.id = o.user_id
                    WHERE u.role = 'customer'
                    GROUP BY u.id
                ) customer_stats
                GROUP BY segment
                ORDER BY segment
            """)
            segments = cursor.fetchall()

            return {
                'total': int(total or 0),
                'new': int(new_customers or 0),
                'segments': serialize_rows(segments),
            }

        finally:
            cursor.close()
            conn.close()

    def get_products(self, start_date: datetime, end_date: datetime, top_limit: int = 10) -> Dict[str, Any]:
        """Active product count, best sellers and revenue per category"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COUNT(*) as total FROM products WHERE is_active = TRUE
            """)
            total = cursor.fetchone()['total']

            cursor.execute("""
                SELECT
                    p.id,
                    p.name,
                    p.price,
                    SUM(oi.quantity) as sales,
                    SUM(oi.quantity * oi.price) as revenue
                FROM products p
                JOIN order_items oi ON p.id = oi.product_id
                JOIN orders o ON oi.order_id = o.id
                WHERE o.status = 'completed'
                AND o.created_at >= %s AND o.created_at <= %s
                GROUP BY p.id, p.name, p.price
                ORDER BY sales DESC
                LIMIT %s
            """, (start_date, end_date, top_limit))
            top_products = cursor.fetchall()

            cursor.execute("""
                SELECT
                    c.name as category,
                    COUNT(DISTINCT p.id) as product_count,
                    COALESCE(SUM(oi.quantity * oi.price) FILTER (WHERE o.id IS NOT NULL), 0) as revenue
                FROM categories c
                LEFT JOIN products p ON c.id = p.category_id
                LEFT JOIN order_items oi ON p.id = oi.product_id
                LEFT JOIN orders o ON oi.order_id = o.id
                    AND o.status = 'completed'
                    AND o.created_at >= %s AND o.created_at <= %s
                GROUP BY c.id, c.name
                ORDER BY revenue DESC
            """, (start_date, end_date))
            categories = cursor.fetchall()

            return {
                'total': int(total or 0),
                'topProducts': serialize_rows(top_products),
                'categoryDistribution': serialize_rows(categories),
            }

        finally:
            cursor.close()
            conn.close()

    def get_dashboard_totals(self) -> Dict[str, Any]:
        """Store-wide counters for the admin landing page"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    (SELECT COUNT(*) FROM orders) as total_orders,
                    (SELECT COUNT(*) FROM products) as total_products,
                    (SELECT COUNT(*) FROM users WHERE role = 'customer') as total_customers,
                    (SELECT COALESCE(SUM(total), 0) FROM orders WHERE status = 'completed') as total_revenue
            """)
            row = cursor.fetchone()

            return {
                'totalOrders': int(row['total_orders']),
                'totalProducts': int(row['total_products']),
                'totalCustomers': int(row['total_customers']),
                'totalRevenue': float(row['total_revenue']),
            }

        finally:
            cursor.close()
            conn.close()
