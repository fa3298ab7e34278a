"""
Tracking API
Customers follow their own orders by order ID or tracking number
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from sportsnation.api.courier import get_courier_service
from sportsnation.core.auth import TokenUser, get_current_user
from sportsnation.services.courier_service import CourierError, CourierService

router = APIRouter(prefix="/api/v1/tracking", tags=["Tracking"])


@router.get("")
async def track_order(
    order_id: Optional[str] = Query(None, alias="orderId"),
    tracking_number: Optional[str] = Query(None, alias="trackingNumber"),
    user: TokenUser = Depends(get_current_user),
    service: CourierService = Depends(get_courier_service)
):
    """Order, delivery timeline and live courier status for the signed-in customer"""
    try:
        return await service.get_customer_tracking(
            user.id,
            order_id=order_id,
            tracking_number=tracking_number
        )
    except CourierError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
