"""
Analytics Service
Admin analytics over orders, customers and products

When the database is unreachable (or not configured) each metric degrades to
a zero-shaped result flagged with fallback=True, so the admin dashboard still
renders.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import psycopg2

from sportsnation.core.database import DatabaseNotConfigured
from sportsnation.repositories.analytics_repository import AnalyticsRepository

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
}
DEFAULT_PERIOD = '30d'

METRICS = ('revenue', 'orders', 'customers', 'products')

EMPTY_METRICS = {
    'revenue': lambda: {'total': 0.0, 'daily': [], 'monthly': []},
    'orders': lambda: {'total': 0, 'byStatus': [], 'daily': []},
    'customers': lambda: {'total': 0, 'new': 0, 'segments': []},
    'products': lambda: {'total': 0, 'topProducts': [], 'categoryDistribution': []},
}

EMPTY_DASHBOARD = {
    'totalOrders': 0,
    'totalProducts': 0,
    'totalCustomers': 0,
    'totalRevenue': 0.0,
}

# Failures that mean "no database", as opposed to a bug in a query
DATABASE_ERRORS = (psycopg2.Error, DatabaseNotConfigured)


def resolve_period(period: Optional[str], now: Optional[datetime] = None) -> Tuple[str, datetime, datetime]:
    """
    Turn a period code into a date range ending now

    Unknown codes fall back to 30d.

    Returns:
        (period, start_date, end_date)
    """
    if period not in PERIOD_DAYS:
        period = DEFAULT_PERIOD
    end_date = now or datetime.now(timezone.utc)
    start_date = end_date - timedelta(days=PERIOD_DAYS[period])
    return period, start_date, end_date


class AnalyticsService:

    def __init__(self, repository: Optional[AnalyticsRepository] = None):
        self.repository = repository or AnalyticsRepository()

    def _metric_loader(self, metric: str) -> Callable[[datetime, datetime], Dict[str, Any]]:
        return {
            'revenue': self.repository.get_revenue,
            'orders': self.repository.get_orders,
            'customers': self.repository.get_customers,
            'products': self.repository.get_products,
        }[metric]

    def _load_metric(self, metric: str, start_date: datetime, end_date: datetime) -> Tuple[Dict[str, Any], bool]:
        try:
            return self._metric_loader(metric)(start_date, end_date), False
        except DATABASE_ERRORS as e:
            logger.warning(f"Analytics '{metric}' unavailable, returning empty data: {e}")
            return EMPTY_METRICS[metric](), True

    def get_analytics(self, period: Optional[str] = None, metric: Optional[str] = None) -> Dict[str, Any]:
        """
        Analytics for one metric, or all four when metric is missing/unknown

        Returns:
            {success, period, metric, data[, fallback]}
        """
        period, start_date, end_date = resolve_period(period)
        selected = [metric] if metric in METRICS else list(METRICS)

        fallback = False
        if len(selected) == 1:
            data, fallback = self._load_metric(metric, start_date, end_date)
        else:
            data = {}
            for name in selected:
                data[name], used_fallback = self._load_metric(name, start_date, end_date)
                fallback = fallback or used_fallback

        result = {
            'success': True,
            'period': period,
            'metric': metric if metric in METRICS else 'all',
            'dateRange': {
                'start': start_date.isoformat(),
                'end': end_date.isoformat(),
            },
            'data': data,
        }
        if fallback:
            result['fallback'] = True
        return result

    def get_dashboard_stats(self) -> Dict[str, Any]:
        try:
            return {'success': True, 'data': self.repository.get_dashboard_totals()}
        except DATABASE_ERRORS as e:
            logger.warning(f"Dashboard stats unavailable, returning empty data: {e}")
            return {'success': True, 'data': dict(EMPTY_DASHBOARD), 'fallback': True}
