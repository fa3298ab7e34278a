"""
Tests for OtpService
"""
import re
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from sportsnation.connectors.sms_connector import SmsResult
from sportsnation.domain.otp import OtpRecord
from sportsnation.services.otp_service import (
    OtpService,
    generate_otp,
    normalize_identifier,
    otp_context,
)


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.has_recent.return_value = False
    return repo


@pytest.fixture
def sms():
    connector = MagicMock()
    connector.send = AsyncMock(return_value=SmsResult(success=True, message_id='1'))
    return connector


@pytest.fixture
def email():
    connector = MagicMock()
    connector.send = AsyncMock(return_value=True)
    return connector


@pytest.fixture
def service(repository, sms, email):
    return OtpService(repository=repository, sms_connector=sms, email_connector=email)


def make_record(code='123456', **overrides):
    data = {
        'identifier': '8801712345678',
        'code_hash': otp_context.hash(code),
        'type': 'phone',
        'expires_at': datetime.now(timezone.utc) + timedelta(minutes=5),
        'attempts': 0,
        'is_verified': False,
        'created_at': datetime.now(timezone.utc),
    }
    data.update(overrides)
    return OtpRecord(**data)


def test_generate_otp_is_six_digits_without_leading_zero():
    for _ in range(50):
        code = generate_otp(6)
        assert len(code) == 6
        assert code.isdigit()
        assert code[0] != '0'


def test_normalize_identifier():
    assert normalize_identifier('01712345678') == '8801712345678'
    assert normalize_identifier(' Buyer@Example.COM ') == 'buyer@example.com'


class TestSendOtp:

    async def test_send_phone_otp_stores_hash_and_sends_code(self, service, repository, sms):
        result = await service.send_phone_otp('01712345678')

        assert result.success is True
        assert result.message == "OTP sent successfully to your phone"

        identifier, code_hash, otp_type, expires_at = repository.upsert.call_args[0]
        assert identifier == '8801712345678'
        assert otp_type == 'phone'

        phone, message = sms.send.call_args[0]
        assert phone == '8801712345678'
        assert message.startswith("Your Sports Nation BD verification code is: ")
        assert message.endswith("Valid for 10 minutes.")
        code = re.search(r'(\d{6})', message).group(1)
        # only the hash is stored
        assert code not in code_hash
        assert otp_context.verify(code, code_hash)

        remaining = expires_at - datetime.now(timezone.utc)
        assert timedelta(minutes=9) < remaining <= timedelta(minutes=10)

    async def test_invalid_phone(self, service, repository):
        result = await service.send_phone_otp('12345')

        assert result.success is False
        assert result.message == "Invalid phone number format"
        repository.upsert.assert_not_called()

    async def test_cooldown_blocks_resend(self, service, repository, sms):
        repository.has_recent.return_value = True

        result = await service.send_phone_otp('01712345678')

        assert result.success is False
        assert result.message == "Please wait 1 minute before requesting another OTP"
        sms.send.assert_not_called()

    async def test_sms_failure(self, service, sms):
        sms.send.return_value = SmsResult(success=False, error='gateway down')

        result = await service.send_phone_otp('01712345678')

        assert result.success is False
        assert result.message == "Failed to send OTP. Please try again."

    async def test_database_error_returns_generic_message(self, service, repository):
        repository.has_recent.side_effect = RuntimeError("db down")

        result = await service.send_phone_otp('01712345678')

        assert result.success is False
        assert result.message == "An error occurred. Please try again."

    async def test_send_email_otp_lowercases_identifier(self, service, repository, email):
        result = await service.send_email_otp('Buyer@Example.com')

        assert result.success is True
        assert result.message == "OTP sent successfully to your email"
        assert repository.upsert.call_args[0][0] == 'buyer@example.com'
        to, subject = email.send.call_args[0][:2]
        assert to == 'buyer@example.com'
        assert subject == "Sports Nation BD - Verification Code"

    async def test_invalid_email(self, service):
        result = await service.send_email_otp('not-an-email')

        assert result.success is False
        assert result.message == "Invalid email format"


class TestVerifyOtp:

    def test_verify_success_marks_verified(self, service, repository):
        repository.find.return_value = make_record('654321')

        result = service.verify_otp('01712345678', '654321')

        assert result.success is True
        assert result.message == "OTP verified successfully"
        repository.find.assert_called_once_with('8801712345678')
        repository.mark_verified.assert_called_once_with('8801712345678')

    def test_not_found(self, service, repository):
        repository.find.return_value = None

        result = service.verify_otp('01712345678', '111111')

        assert result.message == "OTP not found. Please request a new one."

    def test_already_used(self, service, repository):
        repository.find.return_value = make_record(is_verified=True)

        result = service.verify_otp('01712345678', '123456')

        assert result.success is False
        assert result.message.startswith("OTP already used")

    def test_expired(self, service, repository):
        repository.find.return_value = make_record(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))

        result = service.verify_otp('01712345678', '123456')

        assert result.success is False
        assert result.message.startswith("OTP expired")

    def test_too_many_attempts(self, service, repository):
        repository.find.return_value = make_record(attempts=3)

        result = service.verify_otp('01712345678', '123456')

        assert result.message == "Too many failed attempts. Please request a new OTP."
        repository.mark_verified.assert_not_called()

    def test_wrong_code_counts_attempt(self, service, repository):
        repository.find.return_value = make_record('123456')

        result = service.verify_otp('01712345678', '000000')

        assert result.success is False
        assert result.message == "Invalid OTP. Please try again."
        repository.increment_attempts.assert_called_once_with('8801712345678')
        repository.mark_verified.assert_not_called()


def test_cleanup_expired_otps(service, repository):
    repository.delete_expired.return_value = 3

    assert service.cleanup_expired_otps() == 3
    repository.delete_expired.assert_called_once()
