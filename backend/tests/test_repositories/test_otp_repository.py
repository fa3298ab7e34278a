"""
Unit tests for OtpRepository
"""
from unittest.mock import patch
from datetime import datetime, timedelta, timezone

from sportsnation.repositories.otp_repository import OtpRepository
from sportsnation.domain.otp import OtpRecord


PATCH_TARGET = 'sportsnation.repositories.otp_repository.get_db_connection_dict_with_retry'


class TestOtpRepository:

    @patch(PATCH_TARGET)
    def test_find_returns_record(self, mock_get_conn, mock_db):
        mock_get_conn.return_value = mock_db.conn
        expires = datetime.now(timezone.utc) + timedelta(minutes=5)
        mock_db.cursor.fetchone.return_value = {
            'identifier': '8801712345678',
            'code_hash': '$pbkdf2-sha256$hash',
            'type': 'phone',
            'expires_at': expires,
            'attempts': 1,
            'is_verified': False,
            'created_at': datetime.now(timezone.utc),
        }

        record = OtpRepository().find('8801712345678')

        assert isinstance(record, OtpRecord)
        assert record.attempts == 1
        assert not record.is_expired()
        mock_db.conn.close.assert_called_once()

    @patch(PATCH_TARGET)
    def test_find_missing(self, mock_get_conn, mock_db):
        mock_get_conn.return_value = mock_db.conn
        mock_db.cursor.fetchone.return_value = None

        assert OtpRepository().find('nobody@example.com') is None

    @patch(PATCH_TARGET)
    def test_upsert_resets_created_at(self, mock_get_conn, mock_db):
        """A re-issued code restarts the resend cooldown"""
        mock_get_conn.return_value = mock_db.conn

        OtpRepository().upsert('a@b.com', 'hash', 'email', datetime.now(timezone.utc))

        query = mock_db.cursor.execute.call_args[0][0]
        assert 'ON CONFLICT (identifier) DO UPDATE' in query
        assert 'created_at = NOW()' in query
        assert 'attempts = 0' in query
        mock_db.conn.commit.assert_called_once()

    @patch(PATCH_TARGET)
    def test_has_recent(self, mock_get_conn, mock_db):
        mock_get_conn.return_value = mock_db.conn
        mock_db.cursor.fetchone.return_value = {'found': 1}

        assert OtpRepository().has_recent('a@b.com', datetime.now(timezone.utc)) is True

    @patch(PATCH_TARGET)
    def test_increment_attempts_returns_new_count(self, mock_get_conn, mock_db):
        mock_get_conn.return_value = mock_db.conn
        mock_db.cursor.fetchone.return_value = {'attempts': 2}

        assert OtpRepository().increment_attempts('a@b.com') == 2

    @patch(PATCH_TARGET)
    def test_delete_expired_returns_rowcount(self, mock_get_conn, mock_db):
        mock_get_conn.return_value = mock_db.conn
        mock_db.cursor.rowcount = 4

        assert OtpRepository().delete_expired(datetime.now(timezone.utc)) == 4
        mock_db.conn.commit.assert_called_once()
