"""
OTP Service
Phone and email verification codes for customer signup

Flow:
1. send_*_otp validates and normalizes the identifier, enforces the resend
   cooldown, stores a hashed code and delivers it by SMS or email
2. verify_otp checks expiry and attempt count before comparing the code

Codes are hashed with passlib; the plain code only ever leaves the process
in the SMS / email body.
"""
import logging
import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from passlib.context import CryptContext

from sportsnation.connectors.email_connector import EmailConnector, render_otp_email
from sportsnation.connectors.sms_connector import SmsConnector, format_phone_number, is_valid_bd_mobile
from sportsnation.core.config import settings
from sportsnation.domain.otp import OtpResult
from sportsnation.repositories.otp_repository import OtpRepository

logger = logging.getLogger(__name__)

otp_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

GENERIC_ERROR = "An error occurred. Please try again."
SEND_FAILED = "Failed to send OTP. Please try again."


def generate_otp(length: int = 6) -> str:
    """Random numeric code that never starts with zero"""
    first = secrets.choice(string.digits[1:])
    rest = ''.join(secrets.choice(string.digits) for _ in range(length - 1))
    return first + rest


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ''))


def normalize_identifier(identifier: str) -> str:
    """Phones become 880..., emails are lowercased"""
    identifier = (identifier or '').strip()
    if '@' in identifier:
        return identifier.lower()
    return format_phone_number(identifier)


class OtpService:

    def __init__(
        self,
        repository: Optional[OtpRepository] = None,
        sms_connector: Optional[SmsConnector] = None,
        email_connector: Optional[EmailConnector] = None
    ):
        self.repository = repository or OtpRepository()
        self.sms = sms_connector or SmsConnector()
        self.email = email_connector or EmailConnector()

    def _in_cooldown(self, identifier: str, now: datetime) -> bool:
        since = now - timedelta(seconds=settings.OTP_RESEND_COOLDOWN_SECONDS)
        return self.repository.has_recent(identifier, since)

    def _issue(self, identifier: str, otp_type: str, now: datetime) -> str:
        code = generate_otp(settings.OTP_LENGTH)
        expires_at = now + timedelta(minutes=settings.OTP_TTL_MINUTES)
        self.repository.upsert(identifier, otp_context.hash(code), otp_type, expires_at)
        return code

    async def send_phone_otp(self, phone: str) -> OtpResult:
        if not is_valid_bd_mobile(phone):
            return OtpResult(success=False, message="Invalid phone number format")

        identifier = format_phone_number(phone)

        try:
            now = datetime.now(timezone.utc)
            if self._in_cooldown(identifier, now):
                return OtpResult(success=False, message="Please wait 1 minute before requesting another OTP")

            code = self._issue(identifier, 'phone', now)
            message = (
                f"Your {settings.STORE_NAME} verification code is: {code}. "
                f"Valid for {settings.OTP_TTL_MINUTES} minutes."
            )
            result = await self.sms.send(identifier, message)

        except Exception as e:
            logger.exception(f"Error sending phone OTP: {e}")
            return OtpResult(success=False, message=GENERIC_ERROR)

        if not result.success:
            return OtpResult(success=False, message=SEND_FAILED)

        return OtpResult(success=True, message="OTP sent successfully to your phone")

    async def send_email_otp(self, email: str) -> OtpResult:
        if not is_valid_email(email):
            return OtpResult(success=False, message="Invalid email format")

        identifier = email.strip().lower()

        try:
            now = datetime.now(timezone.utc)
            if self._in_cooldown(identifier, now):
                return OtpResult(success=False, message="Please wait 1 minute before requesting another OTP")

            code = self._issue(identifier, 'email', now)
            subject, html_body, text_body = render_otp_email(code)
            sent = await self.email.send(identifier, subject, html_body, text_body)

        except Exception as e:
            logger.exception(f"Error sending email OTP: {e}")
            return OtpResult(success=False, message=GENERIC_ERROR)

        if not sent:
            return OtpResult(success=False, message=SEND_FAILED)

        return OtpResult(success=True, message="OTP sent successfully to your email")

    def verify_otp(self, identifier: str, code: str) -> OtpResult:
        """
        Check a code against the stored hash

        A wrong code counts as an attempt; once OTP_MAX_ATTEMPTS is reached the
        code can no longer be verified and a new one must be requested.
        """
        identifier = normalize_identifier(identifier)

        try:
            record = self.repository.find(identifier)

            if record is None:
                return OtpResult(success=False, message="OTP not found. Please request a new one.")

            if record.is_verified:
                return OtpResult(success=False, message="OTP already used. Please request a new one.")

            if record.is_expired():
                return OtpResult(success=False, message="OTP expired. Please request a new one.")

            if record.attempts >= settings.OTP_MAX_ATTEMPTS:
                return OtpResult(success=False, message="Too many failed attempts. Please request a new OTP.")

            if not otp_context.verify((code or '').strip(), record.code_hash):
                self.repository.increment_attempts(identifier)
                return OtpResult(success=False, message="Invalid OTP. Please try again.")

            self.repository.mark_verified(identifier)

        except Exception as e:
            logger.exception(f"Error verifying OTP: {e}")
            return OtpResult(success=False, message=GENERIC_ERROR)

        return OtpResult(success=True, message="OTP verified successfully")

    def cleanup_expired_otps(self) -> int:
        deleted = self.repository.delete_expired(datetime.now(timezone.utc))
        logger.info(f"Deleted {deleted} expired OTPs")
        return deleted
