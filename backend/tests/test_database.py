"""
Tests for the psycopg2 connection helpers
"""
from unittest.mock import MagicMock, call, patch

import psycopg2
import pytest
from psycopg2.extras import RealDictCursor

from sportsnation.core import database
from sportsnation.core.config import settings


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, 'DATABASE_URL', 'postgresql://localhost/sportsnation')


def test_missing_url_raises(monkeypatch):
    monkeypatch.setattr(settings, 'DATABASE_URL', None)

    with pytest.raises(database.DatabaseNotConfigured):
        database.get_db_connection_with_retry()


@patch('sportsnation.core.database.time.sleep')
@patch('sportsnation.core.database.psycopg2.connect')
def test_retries_with_backoff(mock_connect, mock_sleep, configured):
    conn = MagicMock()
    mock_connect.side_effect = [
        psycopg2.OperationalError("SSL connection has been closed unexpectedly"),
        psycopg2.OperationalError("timeout"),
        conn,
    ]

    result = database.get_db_connection_dict_with_retry(retry_delay=0.5)

    assert result is conn
    assert mock_sleep.call_args_list == [call(0.5), call(1.0)]
    assert mock_connect.call_args.kwargs == {'cursor_factory': RealDictCursor}


@patch('sportsnation.core.database.time.sleep')
@patch('sportsnation.core.database.psycopg2.connect')
def test_gives_up_after_max_retries(mock_connect, mock_sleep, configured):
    mock_connect.side_effect = psycopg2.OperationalError("refused")

    with pytest.raises(psycopg2.OperationalError):
        database.get_db_connection_with_retry(max_retries=2)

    assert mock_connect.call_count == 2
    assert mock_sleep.call_count == 1


@patch('sportsnation.core.database.psycopg2.connect')
def test_other_errors_are_not_retried(mock_connect, configured):
    mock_connect.side_effect = psycopg2.ProgrammingError("bad dsn")

    with pytest.raises(psycopg2.ProgrammingError):
        database.get_db_connection_with_retry()

    assert mock_connect.call_count == 1


@patch('sportsnation.core.database.time.sleep')
@patch('sportsnation.core.database.psycopg2.connect')
def test_failed_check_closes_connection(mock_connect, mock_sleep, configured):
    broken = MagicMock()
    broken.cursor.return_value.__enter__.return_value.execute.side_effect = (
        psycopg2.OperationalError("server closed the connection unexpectedly")
    )
    healthy = MagicMock()
    mock_connect.side_effect = [broken, healthy]

    result = database.get_db_connection_with_retry(retry_delay=0)

    assert result is healthy
    broken.close.assert_called_once()
    healthy.close.assert_not_called()
