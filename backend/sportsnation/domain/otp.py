"""
OTP Domain Models

One active one-time password per identifier (normalized phone number or
email address). Only a hash of the code is persisted.
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime, timezone


OTP_TYPES = ("phone", "email")


class OtpRecord(BaseModel):
    identifier: str
    code_hash: str
    type: str
    expires_at: datetime
    attempts: int = 0
    is_verified: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now


class OtpResult(BaseModel):
    """Outcome returned to the client for send/verify"""

    success: bool
    message: str
