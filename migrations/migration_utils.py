"""
Shared helpers for the CycloFit migration scripts.

The scripts connect with the application's own Settings, so a migration
always runs against the database the service uses. The ensure_* helpers
are idempotent: each one checks the live schema first and prints what it
did, so a script can be re-run safely.
"""

import os
import sys

from dotenv import load_dotenv
from sqlalchemy import inspect, text
from sqlalchemy.dialects.postgresql import JSONB

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cyclofit.shared.config.settings import Settings, validate_settings_or_exit  # noqa: E402


def get_settings() -> Settings:
    """Application settings; exits with status 1 when required variables are missing."""
    # find_dotenv walks up from this file, so the project .env is found from any cwd
    load_dotenv()
    return validate_settings_or_exit()


def get_engine():
    from cyclofit.shared.auth.database import build_engine

    engine = build_engine(get_settings())
    if engine.dialect.name != "postgresql":
        print(f"ERROR: migrations target PostgreSQL, DATABASE_URL uses {engine.dialect.name}.")
        print("SQLite databases are created by the application at startup.")
        sys.exit(1)
    return engine


def ensure_tables(connection, tables):
    """Create each {name: ddl} table that does not exist yet."""
    existing = set(inspect(connection).get_table_names())
    for name, ddl in tables.items():
        if name in existing:
            print(f"   ✓ Table '{name}' already exists.")
            continue
        connection.execute(text(ddl))
        print(f"   ✓ Created {name} table.")


def ensure_column(connection, table, column, definition, note=""):
    """ALTER TABLE ... ADD COLUMN unless the column is already there."""
    if any(c["name"] == column for c in inspect(connection).get_columns(table)):
        print(f"   ✓ Column '{table}.{column}' already exists.")
        return
    connection.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {definition}"))
    print(f"   ✓ Added {table}.{column}{f' ({note})' if note else ''}.")


def ensure_jsonb(connection, table, columns):
    """Convert plain JSON columns (from early deployments) to JSONB."""
    types = {c["name"]: c["type"] for c in inspect(connection).get_columns(table)}
    for column in columns:
        if column not in types:
            print(f"   ! Column '{table}.{column}' is missing, skipped.")
        elif isinstance(types[column], JSONB):
            print(f"   ✓ {table}.{column} is JSONB.")
        else:
            connection.execute(text(
                f"ALTER TABLE {table} ALTER COLUMN {column} TYPE JSONB USING {column}::jsonb"
            ))
            print(f"   ✓ Converted {table}.{column} from {types[column]} to JSONB.")


def ensure_indexes(connection, indexes):
    """Create each (table, name, ddl) index that does not exist yet."""
    inspector = inspect(connection)
    for table, name, ddl in indexes:
        if any(idx["name"] == name for idx in inspector.get_indexes(table)):
            continue
        connection.execute(text(ddl))
        print(f"   ✓ Created {name}.")


def run_migration(migration_name, migration_func):
    """Run one migration between banners; failures are reported and re-raised."""
    print(f"\n{'='*60}")
    print(f"Running migration: {migration_name}")
    print(f"{'='*60}")

    try:
        migration_func()
    except Exception as e:
        print(f"\n✗ Migration '{migration_name}' failed: {e}")
        raise
    print(f"\n✓ Migration '{migration_name}' completed successfully!")
