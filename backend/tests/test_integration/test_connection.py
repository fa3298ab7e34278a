"""
Database integration checks

Run against a migrated database: DATABASE_URL must be set, otherwise the
tests are skipped.
"""
import pytest

REQUIRED_TABLES = (
    'users',
    'products',
    'orders',
    'order_items',
    'tracking_updates',
    'pathao_orders',
    'otps',
)


def test_connection(db_cursor):
    db_cursor.execute("SELECT 1 as ok")

    assert db_cursor.fetchone()['ok'] == 1


@pytest.mark.parametrize("table", REQUIRED_TABLES)
def test_schema_has_table(db_cursor, table):
    db_cursor.execute("""
        SELECT EXISTS (
            SELECT 1 FROM information_schema.tables
            WHERE table_schema = 'public' AND table_name = %s
        ) as present
    """, (table,))

    assert db_cursor.fetchone()['present'] is True


def test_otps_keyed_by_identifier(db_cursor):
    db_cursor.execute("""
        SELECT kcu.column_name
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
            ON tc.constraint_name = kcu.constraint_name
        WHERE tc.table_name = 'otps' AND tc.constraint_type = 'PRIMARY KEY'
    """)

    assert [row['column_name'] for row in db_cursor.fetchall()] == ['identifier']
