#!/usr/bin/env python3
"""
Migration script to create the CycloFit tables on an existing PostgreSQL database.

This script:
1. Creates users, analyses, contacts and newsletters tables when missing
2. Adds storage_type and duration to analyses tables created before S3 storage,
   and converts their JSON columns to JSONB
3. Creates indexes for user history, admin filtering and token lookups
"""

import sys

from migration_utils import ensure_column, ensure_indexes, ensure_jsonb, ensure_tables, get_engine, run_migration

ANALYSIS_JSON_COLUMNS = [
    "original_video", "processed_video", "keyframes",
    "max_angles", "min_angles", "body_lengths_cm", "recommendations",
]

TABLES = {
    "users": """
        CREATE TABLE users (
            id VARCHAR PRIMARY KEY,
            email VARCHAR NOT NULL UNIQUE,
            password_hash VARCHAR NOT NULL,
            first_name VARCHAR NOT NULL,
            last_name VARCHAR NOT NULL,
            role VARCHAR NOT NULL DEFAULT 'user',
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            is_email_verified BOOLEAN NOT NULL DEFAULT FALSE,
            email_verification_token VARCHAR,
            email_verification_expires TIMESTAMP,
            password_reset_token VARCHAR,
            password_reset_expires TIMESTAMP,
            height DOUBLE PRECISION,
            weight DOUBLE PRECISION,
            bike_type VARCHAR,
            experience VARCHAR,
            bio TEXT,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            last_login_at TIMESTAMP
        )
    """,
    "analyses": """
        CREATE TABLE analyses (
            id VARCHAR PRIMARY KEY,
            user_id VARCHAR NOT NULL,
            title VARCHAR NOT NULL DEFAULT 'Bike Fit Analysis',
            description TEXT NOT NULL DEFAULT '',
            storage_type VARCHAR NOT NULL DEFAULT 'local',
            original_video JSONB,
            processed_video JSONB,
            keyframes JSONB NOT NULL DEFAULT '[]'::jsonb,
            duration DOUBLE PRECISION,
            bike_type VARCHAR NOT NULL DEFAULT 'road',
            user_height_cm DOUBLE PRECISION NOT NULL,
            max_angles JSONB,
            min_angles JSONB,
            body_lengths_cm JSONB,
            recommendations JSONB,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT fk_analyses_user FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
        )
    """,
    "contacts": """
        CREATE TABLE contacts (
            id VARCHAR PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            email VARCHAR NOT NULL,
            subject VARCHAR(200) NOT NULL,
            message TEXT NOT NULL,
            status VARCHAR NOT NULL DEFAULT 'new',
            user_id VARCHAR,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "newsletters": """
        CREATE TABLE newsletters (
            id VARCHAR PRIMARY KEY,
            email VARCHAR NOT NULL UNIQUE,
            subscribed BOOLEAN NOT NULL DEFAULT TRUE,
            source VARCHAR NOT NULL DEFAULT 'other',
            subscribed_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            unsubscribed_at TIMESTAMP
        )
    """,
}

INDEXES = [
    ("users", "ix_users_role", "CREATE INDEX ix_users_role ON users(role)"),
    ("users", "ix_users_created_at", "CREATE INDEX ix_users_created_at ON users(created_at)"),
    ("users", "ix_users_email_verification_token",
     "CREATE INDEX ix_users_email_verification_token ON users(email_verification_token)"),
    ("users", "ix_users_password_reset_token",
     "CREATE INDEX ix_users_password_reset_token ON users(password_reset_token)"),
    ("analyses", "ix_analyses_user_id", "CREATE INDEX ix_analyses_user_id ON analyses(user_id)"),
    ("analyses", "ix_analyses_bike_type", "CREATE INDEX ix_analyses_bike_type ON analyses(bike_type)"),
    ("analyses", "ix_analyses_created_at", "CREATE INDEX ix_analyses_created_at ON analyses(created_at)"),
    ("analyses", "idx_analyses_user_created", "CREATE INDEX idx_analyses_user_created ON analyses(user_id, created_at)"),
    ("contacts", "idx_contacts_status_created", "CREATE INDEX idx_contacts_status_created ON contacts(status, created_at)"),
    ("newsletters", "ix_newsletters_subscribed_at",
     "CREATE INDEX ix_newsletters_subscribed_at ON newsletters(subscribed_at)"),
]


def migrate():
    engine = get_engine()
    print(f"Database: {engine.url.host}:{engine.url.port}/{engine.url.database}")

    with engine.connect() as connection:
        print("\n1. Checking tables...")
        ensure_tables(connection, TABLES)

        print("\n2. Checking analyses columns...")
        ensure_column(
            connection, "analyses", "storage_type", "VARCHAR NOT NULL DEFAULT 'local'",
            note="existing rows marked local",
        )
        ensure_column(connection, "analyses", "duration", "DOUBLE PRECISION")
        ensure_jsonb(connection, "analyses", ANALYSIS_JSON_COLUMNS)

        print("\n3. Checking indexes...")
        ensure_indexes(connection, INDEXES)

        connection.commit()


if __name__ == "__main__":
    try:
        run_migration("create CycloFit tables", migrate)
    except Exception:
        import traceback
        traceback.print_exc()
        sys.exit(1)
