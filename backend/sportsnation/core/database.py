"""
PostgreSQL connection helpers

Repositories use raw SQL over psycopg2. Connections are opened per call with
retry logic for intermittent network/SSL failures and must be closed by the
caller.
"""
import time
import logging

import psycopg2
from psycopg2.extras import RealDictCursor

from .config import settings

logger = logging.getLogger(__name__)


class DatabaseNotConfigured(Exception):
    """Raised when DATABASE_URL is missing"""


def _get_database_url() -> str:
    database_url = settings.DATABASE_URL
    if not database_url:
        raise DatabaseNotConfigured("DATABASE_URL not configured")
    return database_url


def _connect_with_retry(cursor_factory=None, max_retries=3, retry_delay=1.0):
    """
    Open and check a connection, backing off 1x, 2x, 4x... retry_delay

    Only OperationalError (network, SSL, server restarts) is retried.
    """
    database_url = _get_database_url()
    connect_kwargs = {'cursor_factory': cursor_factory} if cursor_factory else {}

    for attempt in range(1, max_retries + 1):
        conn = None
        try:
            conn = psycopg2.connect(database_url, **connect_kwargs)
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
            return conn

        except psycopg2.OperationalError as e:
            if conn is not None:
                conn.close()
            logger.warning(f"Database connection attempt {attempt}/{max_retries} failed: {e}")
            if attempt == max_retries:
                logger.error(f"Giving up after {max_retries} connection attempts")
                raise
            time.sleep(retry_delay * (2 ** (attempt - 1)))


def get_db_connection_with_retry(max_retries=3, retry_delay=1.0):
    """
    Get a psycopg2 connection with automatic retry on connection failures

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Returns:
        psycopg2 connection object (tuple rows)

    Raises:
        DatabaseNotConfigured: If DATABASE_URL is not set
        psycopg2.OperationalError: If all retry attempts fail
    """
    return _connect_with_retry(None, max_retries, retry_delay)


def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0):
    """
    Same as get_db_connection_with_retry but rows come back as dicts

    Example:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM orders")
        results = cursor.fetchall()  # Returns list of dicts
        cursor.close()
        conn.close()
    """
    return _connect_with_retry(RealDictCursor, max_retries, retry_delay)
