"""
Notification API endpoints (admin SMS tools)
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from sportsnation.connectors.sms_connector import is_valid_bd_mobile
from sportsnation.core.auth import TokenUser, require_admin
from sportsnation.services.notification_service import NotificationService

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


class TestSmsRequest(BaseModel):
    phone: str


class SendSmsRequest(BaseModel):
    phone: str
    message: str = Field(..., min_length=1, max_length=1000)


def get_notification_service() -> NotificationService:
    return NotificationService()


def _check_phone(phone: str):
    if not is_valid_bd_mobile(phone):
        raise HTTPException(status_code=400, detail="Invalid phone number format")


@router.post("/sms/test")
async def send_test_sms(
    request: TestSmsRequest,
    user: TokenUser = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service)
):
    """Send a sample order confirmation to check the SMS provider setup"""
    _check_phone(request.phone)

    result = await service.send_test_sms(request.phone)
    if not result.success:
        raise HTTPException(status_code=502, detail=f"Failed to send SMS: {result.error}")

    return {"success": True, "message": "Test SMS sent successfully", "messageId": result.message_id}


@router.post("/sms/send")
async def send_sms(
    request: SendSmsRequest,
    user: TokenUser = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service)
):
    _check_phone(request.phone)

    result = await service.send_custom_sms(request.phone, request.message)
    if not result.success:
        raise HTTPException(status_code=502, detail=f"Failed to send SMS: {result.error}")

    return {"success": True, "message": "SMS sent successfully", "messageId": result.message_id}
