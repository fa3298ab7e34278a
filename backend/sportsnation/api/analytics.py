"""
Admin Analytics API
Revenue, order, customer and product analytics for the admin dashboard
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from sportsnation.core.auth import TokenUser, require_admin
from sportsnation.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/api/v1/admin", tags=["Analytics"])


def get_analytics_service() -> AnalyticsService:
    return AnalyticsService()


@router.get("/analytics")
async def get_analytics(
    period: str = Query("30d", description="7d, 30d, 90d or 1y"),
    metric: Optional[str] = Query(None, description="revenue, orders, customers or products (default: all)"),
    user: TokenUser = Depends(require_admin),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Get analytics for a period

    When the database is unavailable the response carries zero data and
    `fallback: true` instead of failing.
    """
    try:
        return service.get_analytics(period, metric)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching analytics: {str(e)}")


@router.get("/dashboard-stats")
async def get_dashboard_stats(
    user: TokenUser = Depends(require_admin),
    service: AnalyticsService = Depends(get_analytics_service)
):
    try:
        return service.get_dashboard_stats()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching dashboard stats: {str(e)}")
