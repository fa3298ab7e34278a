"""
SMS Connector
Sends text messages through the configured Bangladeshi / international gateway

Providers (SMS_PROVIDER):
- bulksmsbd: GET https://bulksmsbd.net/api/smsapi
- smsbd: JSON POST https://api.smsbd.net/api/send
- textlocal: form POST https://api.textlocal.in/send/
- twilio: form POST to the Messages resource with basic auth
- custom: JSON POST to SMS_BASE_URL

Providers only report success or failure, so send() never raises; it returns
an SmsResult instead.
"""
import logging
import re
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from sportsnation.core.config import settings

logger = logging.getLogger(__name__)

BULKSMSBD_URL = "https://bulksmsbd.net/api/smsapi"
SMSBD_URL = "https://api.smsbd.net/api/send"
TEXTLOCAL_URL = "https://api.textlocal.in/send/"
TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

BD_MOBILE_PATTERN = re.compile(r'^(880|0)?1[3-9]\d{8}$')

BULKSMSBD_SUCCESS_MARKERS = ("SMS Sent Successfully", "SMS Submitted Successfully")


class SmsResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def format_phone_number(phone: str) -> str:
    """
    Normalize a Bangladeshi phone number to international form (880...)

    Examples:
        01712345678 -> 8801712345678
        +880 1712-345678 -> 8801712345678
        1712345678 -> 8801712345678
    """
    digits = re.sub(r'\D', '', phone or '')

    if digits.startswith('880'):
        return digits
    if digits.startswith('0'):
        return '880' + digits[1:]
    return '880' + digits


def is_valid_bd_mobile(phone: str) -> bool:
    digits = re.sub(r'\D', '', phone or '')
    return bool(BD_MOBILE_PATTERN.match(digits))


def mask_secret(value: Optional[str]) -> str:
    """Show only the last 4 characters of an API key in logs"""
    if not value:
        return '<unset>'
    return '*' * max(len(value) - 4, 0) + value[-4:]


class SmsConnector:
    """Provider-agnostic SMS sender"""

    def __init__(
        self,
        provider: str = None,
        api_key: str = None,
        sender_id: str = None,
        base_url: str = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.provider = (provider or settings.SMS_PROVIDER).lower()
        self.api_key = api_key if api_key is not None else settings.SMS_API_KEY
        self.sender_id = sender_id or settings.SMS_SENDER_ID
        self.base_url = base_url or settings.SMS_BASE_URL
        self.timeout = timeout
        self._transport = transport

        self.twilio_sid = settings.TWILIO_ACCOUNT_SID
        self.twilio_token = settings.TWILIO_AUTH_TOKEN
        self.twilio_from = settings.TWILIO_PHONE_NUMBER

        logger.debug(f"SMS connector using {self.provider} (key {mask_secret(self.api_key)})")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _is_configured(self) -> bool:
        if self.provider == 'twilio':
            return bool(self.twilio_sid and self.twilio_token and self.twilio_from)
        if self.provider == 'custom':
            return bool(self.base_url)
        return bool(self.api_key)

    async def send(self, phone: str, message: str) -> SmsResult:
        """
        Send an SMS

        Args:
            phone: Recipient phone number (any Bangladeshi format)
            message: Text to send

        Returns:
            SmsResult(success, message_id, error)
        """
        if not self._is_configured():
            logger.error(f"SMS provider '{self.provider}' is not configured")
            return SmsResult(success=False, error="SMS service not configured")

        number = format_phone_number(phone)

        handlers = {
            'bulksmsbd': self._send_bulksmsbd,
            'smsbd': self._send_smsbd,
            'textlocal': self._send_textlocal,
            'twilio': self._send_twilio,
            'custom': self._send_custom,
        }
        handler = handlers.get(self.provider)
        if handler is None:
            return SmsResult(success=False, error=f"Unsupported SMS provider: {self.provider}")

        try:
            result = await handler(number, message)
        except httpx.RequestError as e:
            logger.error(f"SMS network error via {self.provider}: {e}")
            return SmsResult(success=False, error=f"Network error: {e}")

        if result.success:
            logger.info(f"SMS sent to {number} via {self.provider}")
        else:
            logger.warning(f"SMS to {number} via {self.provider} failed: {result.error}")
        return result

    async def _send_bulksmsbd(self, number: str, message: str) -> SmsResult:
        # httpx encodes query params; pass the message unencoded
        params = {
            'api_key': self.api_key,
            'type': 'text',
            'number': number,
            'senderid': self.sender_id,
            'message': message,
        }
        async with self._client() as client:
            response = await client.get(BULKSMSBD_URL, params=params)

        body = response.text
        if any(marker in body for marker in BULKSMSBD_SUCCESS_MARKERS):
            return SmsResult(success=True, message_id=self._message_id(response, 'message_id'))

        if self._json_field(response, 'response_code') in (202, '202'):
            return SmsResult(success=True, message_id=self._message_id(response, 'message_id'))

        return SmsResult(success=False, error=body or f"HTTP {response.status_code}")

    async def _send_smsbd(self, number: str, message: str) -> SmsResult:
        async with self._client() as client:
            response = await client.post(SMSBD_URL, json={
                'api_key': self.api_key,
                'sender_id': self.sender_id,
                'to': number,
                'message': message,
            })

        if self._json_field(response, 'status') == 'success':
            return SmsResult(success=True, message_id=self._message_id(response, 'message_id'))
        return SmsResult(success=False, error=self._json_field(response, 'message') or response.text)

    async def _send_textlocal(self, number: str, message: str) -> SmsResult:
        async with self._client() as client:
            response = await client.post(TEXTLOCAL_URL, data={
                'apikey': self.api_key,
                'numbers': number,
                'sender': self.sender_id,
                'message': message,
            })

        if self._json_field(response, 'status') == 'success':
            return SmsResult(success=True, message_id=self._message_id(response, 'batch_id'))

        errors = self._json_field(response, 'errors')
        return SmsResult(success=False, error=str(errors) if errors else response.text)

    async def _send_twilio(self, number: str, message: str) -> SmsResult:
        async with self._client() as client:
            response = await client.post(
                TWILIO_URL.format(sid=self.twilio_sid),
                data={'To': f'+{number}', 'From': self.twilio_from, 'Body': message},
                auth=(self.twilio_sid, self.twilio_token)
            )

        if response.is_success:
            return SmsResult(success=True, message_id=self._message_id(response, 'sid'))
        return SmsResult(success=False, error=self._json_field(response, 'message') or response.text)

    async def _send_custom(self, number: str, message: str) -> SmsResult:
        async with self._client() as client:
            response = await client.post(self.base_url, json={
                'api_key': self.api_key,
                'sender_id': self.sender_id,
                'to': number,
                'message': message,
            })

        if self._json_field(response, 'success') is True or self._json_field(response, 'status') == 'success':
            return SmsResult(success=True, message_id=self._message_id(response, 'message_id'))
        return SmsResult(success=False, error=self._json_field(response, 'message') or response.text)

    @classmethod
    def _message_id(cls, response: httpx.Response, field: str) -> Optional[str]:
        value = cls._json_field(response, field)
        return str(value) if value is not None else None

    @staticmethod
    def _json_field(response: httpx.Response, field: str) -> Any:
        """Read a top-level field from a JSON body; None when the body is not JSON"""
        try:
            data: Dict[str, Any] = response.json()
        except ValueError:
            return None
        return data.get(field) if isinstance(data, dict) else None
