"""
Email Connector
Transactional email through Brevo, SendGrid or Mailgun (EMAIL_PROVIDER).
The 'console' provider only logs the message and is meant for development.
"""
import html
import logging
from typing import Optional, Tuple

import httpx

from sportsnation.core.config import settings

logger = logging.getLogger(__name__)

BREVO_URL = "https://api.brevo.com/v3/smtp/email"
SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
MAILGUN_URL = "https://api.mailgun.net/v3/{domain}/messages"


def render_otp_email(code: str, store_name: str = None, ttl_minutes: int = None) -> Tuple[str, str, str]:
    """
    Build the verification email

    Returns:
        (subject, html_body, text_body)
    """
    store_name = store_name or settings.STORE_NAME
    ttl_minutes = ttl_minutes or settings.OTP_TTL_MINUTES

    subject = f"{store_name} - Verification Code"
    safe_store = html.escape(store_name)

    html_body = f"""
<div style="font-family: Arial, sans-serif; max-width: 480px; margin: 0 auto;">
  <h2 style="color: #1a202c;">{safe_store}</h2>
  <p>Your verification code is:</p>
  <p style="font-size: 32px; font-weight: bold; letter-spacing: 6px; color: #e53e3e;">{html.escape(code)}</p>
  <p>This code is valid for {ttl_minutes} minutes.</p>
  <p style="color: #718096; font-size: 12px;">If you did not request this code, you can ignore this email.</p>
</div>
""".strip()

    text_body = (
        f"Your {store_name} verification code is: {code}. "
        f"Valid for {ttl_minutes} minutes.\n\n"
        "If you did not request this code, you can ignore this email."
    )

    return subject, html_body, text_body


class EmailConnector:

    def __init__(
        self,
        provider: str = None,
        from_address: str = None,
        from_name: str = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.provider = (provider or settings.EMAIL_PROVIDER).lower()
        self.from_address = from_address or settings.EMAIL_FROM_ADDRESS
        self.from_name = from_name or settings.EMAIL_FROM_NAME
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def send(self, to: str, subject: str, html_body: str, text_body: str = None) -> bool:
        """
        Send an email

        Returns:
            True if the provider accepted the message
        """
        try:
            if self.provider == 'brevo':
                sent = await self._send_brevo(to, subject, html_body, text_body)
            elif self.provider == 'sendgrid':
                sent = await self._send_sendgrid(to, subject, html_body, text_body)
            elif self.provider == 'mailgun':
                sent = await self._send_mailgun(to, subject, html_body, text_body)
            elif self.provider == 'console':
                logger.info(f"[console email] to={to} subject={subject!r}\n{text_body or html_body}")
                sent = True
            else:
                logger.error(f"Unsupported email provider: {self.provider}")
                return False
        except httpx.RequestError as e:
            logger.error(f"Email network error via {self.provider}: {e}")
            return False

        if sent:
            logger.info(f"Email sent to {to} via {self.provider}")
        return sent

    async def _send_brevo(self, to: str, subject: str, html_body: str, text_body: Optional[str]) -> bool:
        if not settings.BREVO_API_KEY:
            logger.error("BREVO_API_KEY not configured")
            return False

        payload = {
            'sender': {'name': self.from_name, 'email': self.from_address},
            'to': [{'email': to}],
            'subject': subject,
            'htmlContent': html_body,
        }
        if text_body:
            payload['textContent'] = text_body

        async with self._client() as client:
            response = await client.post(
                BREVO_URL,
                json=payload,
                headers={'api-key': settings.BREVO_API_KEY, 'Accept': 'application/json'}
            )

        if response.is_error:
            logger.error(f"Brevo error {response.status_code}: {response.text}")
        return response.is_success

    async def _send_sendgrid(self, to: str, subject: str, html_body: str, text_body: Optional[str]) -> bool:
        if not settings.SENDGRID_API_KEY:
            logger.error("SENDGRID_API_KEY not configured")
            return False

        content = []
        if text_body:
            content.append({'type': 'text/plain', 'value': text_body})
        content.append({'type': 'text/html', 'value': html_body})

        async with self._client() as client:
            response = await client.post(
                SENDGRID_URL,
                json={
                    'personalizations': [{'to': [{'email': to}]}],
                    'from': {'email': self.from_address, 'name': self.from_name},
                    'subject': subject,
                    'content': content,
                },
                headers={'Authorization': f'Bearer {settings.SENDGRID_API_KEY}'}
            )

        if response.is_error:
            logger.error(f"SendGrid error {response.status_code}: {response.text}")
        return response.is_success

    async def _send_mailgun(self, to: str, subject: str, html_body: str, text_body: Optional[str]) -> bool:
        if not settings.MAILGUN_API_KEY or not settings.MAILGUN_DOMAIN:
            logger.error("MAILGUN_API_KEY / MAILGUN_DOMAIN not configured")
            return False

        data = {
            'from': f'{self.from_name} <{self.from_address}>',
            'to': to,
            'subject': subject,
            'html': html_body,
        }
        if text_body:
            data['text'] = text_body

        async with self._client() as client:
            response = await client.post(
                MAILGUN_URL.format(domain=settings.MAILGUN_DOMAIN),
                data=data,
                auth=('api', settings.MAILGUN_API_KEY)
            )

        if response.is_error:
            logger.error(f"Mailgun error {response.status_code}: {response.text}")
        return response.is_success
