"""
OTP Repository - Data Access Layer for one-time passwords

The otps table holds at most one row per identifier; issuing a new code
replaces the previous one.
"""
from datetime import datetime
from typing import Optional

from sportsnation.core.database import get_db_connection_dict_with_retry
from sportsnation.domain.otp import OtpRecord


class OtpRepository:

    def find(self, identifier: str) -> Optional[OtpRecord]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT identifier, code_hash, type, expires_at, attempts, is_verified, created_at
                FROM otps
                WHERE identifier = %s
            """, (identifier,))
            row = cursor.fetchone()
            return OtpRecord(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def has_recent(self, identifier: str, since: datetime) -> bool:
        """True if a code was issued for this identifier at or after `since`"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT 1 as found
                FROM otps
                WHERE identifier = %s AND created_at >= %s
            """, (identifier, since))
            return cursor.fetchone() is not None

        finally:
            cursor.close()
            conn.close()

    def upsert(self, identifier: str, code_hash: str, otp_type: str, expires_at: datetime) -> None:
        """Store a fresh code, resetting attempts, verification and created_at"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO otps (identifier, code_hash, type, expires_at, attempts, is_verified, created_at)
                VALUES (%s, %s, %s, %s, 0, FALSE, NOW())
                ON CONFLICT (identifier) DO UPDATE SET
                    code_hash = EXCLUDED.code_hash,
                    type = EXCLUDED.type,
                    expires_at = EXCLUDED.expires_at,
                    attempts = 0,
                    is_verified = FALSE,
                    created_at = NOW()
            """, (identifier, code_hash, otp_type, expires_at))
            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def increment_attempts(self, identifier: str) -> int:
        """Count a failed verification; returns the new attempt count"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE otps
                SET attempts = attempts + 1
                WHERE identifier = %s
                RETURNING attempts
            """, (identifier,))
            row = cursor.fetchone()
            conn.commit()
            return row['attempts'] if row else 0

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def mark_verified(self, identifier: str) -> None:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE otps SET is_verified = TRUE WHERE identifier = %s
            """, (identifier,))
            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete_expired(self, now: datetime) -> int:
        """Delete codes that expired before `now`; returns rows removed"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM otps WHERE expires_at < %s", (now,))
            deleted = cursor.rowcount
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
