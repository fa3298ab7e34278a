#!/usr/bin/env python3
"""
Script: run_migrations.py
Purpose: Apply pending SQL migrations in scripts/migrations

Each NNN_*.sql file runs once, in name order, inside its own transaction.
Applied files are recorded in the schema_migrations table.

Usage:
    cd backend && source venv/bin/activate
    python scripts/migrations/run_migrations.py [--dry-run]

Options:
    --dry-run    List pending migrations without applying them
"""

import os
import sys
import argparse
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

MIGRATIONS_DIR = Path(__file__).parent
BACKEND_DIR = MIGRATIONS_DIR.parent.parent

load_dotenv(BACKEND_DIR / '.env')

DATABASE_URL = os.getenv("DATABASE_URL")


def print_header(title: str):
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}\n")


def find_migration_files(directory: Path = MIGRATIONS_DIR) -> list:
    """SQL files named NNN_description.sql, sorted"""
    return sorted(
        path for path in directory.glob('*.sql')
        if path.name[:3].isdigit()
    )


def ensure_migrations_table(cursor):
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            filename TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)


def get_applied_migrations(cursor) -> set:
    cursor.execute("SELECT filename FROM schema_migrations")
    return {row[0] for row in cursor.fetchall()}


def pending_migrations(files: list, applied: set) -> list:
    return [path for path in files if path.name not in applied]


def apply_migration(conn, path: Path):
    cursor = conn.cursor()
    try:
        cursor.execute(path.read_text())
        cursor.execute(
            "INSERT INTO schema_migrations (filename) VALUES (%s)",
            (path.name,)
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()


def main():
    parser = argparse.ArgumentParser(description='Apply pending SQL migrations')
    parser.add_argument('--dry-run', action='store_true', help='Show pending migrations without applying them')
    args = parser.parse_args()

    print_header("Sports Nation BD - database migrations")

    if not DATABASE_URL:
        print("ERROR: DATABASE_URL not set")
        sys.exit(1)

    conn = psycopg2.connect(DATABASE_URL)
    cursor = conn.cursor()
    ensure_migrations_table(cursor)
    conn.commit()

    applied = get_applied_migrations(cursor)
    cursor.close()

    pending = pending_migrations(find_migration_files(), applied)

    if not pending:
        print("Database is up to date")
        conn.close()
        return

    for path in pending:
        if args.dry_run:
            print(f"  [DRY RUN] Would apply {path.name}")
            continue

        print(f"  Applying {path.name}...")
        try:
            apply_migration(conn, path)
        except psycopg2.Error as e:
            print(f"  ERROR in {path.name}: {e}")
            print("  Migration rolled back")
            conn.close()
            sys.exit(1)
        print(f"  Applied {path.name}")

    conn.close()

    if args.dry_run:
        print("\nDRY RUN COMPLETE - No changes were made")
    else:
        print(f"\nMIGRATION COMPLETE - {len(pending)} file(s) applied")


if __name__ == '__main__':
    main()
