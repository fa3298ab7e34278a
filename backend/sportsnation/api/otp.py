"""
OTP API endpoints
Phone / email verification codes used during signup
"""
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from sportsnation.core.rate_limit import otp_rate_limit
from sportsnation.services.otp_service import OtpService


router = APIRouter(prefix="/api/v1/otp", tags=["OTP"])


class OtpSendRequest(BaseModel):
    identifier: str = Field(..., min_length=3, max_length=254)
    type: Literal["phone", "email"]


class OtpVerifyRequest(BaseModel):
    identifier: str = Field(..., min_length=3, max_length=254)
    otp: str = Field(..., min_length=4, max_length=10)


def get_otp_service() -> OtpService:
    return OtpService()


@router.post("/send", dependencies=[Depends(otp_rate_limit)])
async def send_otp(
    request: OtpSendRequest,
    service: OtpService = Depends(get_otp_service)
):
    """Send a verification code by SMS or email"""
    if request.type == "phone":
        result = await service.send_phone_otp(request.identifier)
    else:
        result = await service.send_email_otp(request.identifier)

    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)

    return result.model_dump()


@router.post("/verify", dependencies=[Depends(otp_rate_limit)])
async def verify_otp(
    request: OtpVerifyRequest,
    service: OtpService = Depends(get_otp_service)
):
    result = service.verify_otp(request.identifier, request.otp)

    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)

    return result.model_dump()
