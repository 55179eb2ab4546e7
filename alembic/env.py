"""
Alembic Environment Configuration for roomstay

This file configures Alembic to:
- Read DATABASE_URL from the environment (same variable as the app)
- Auto-detect model changes for migrations
- Use batch mode on SQLite
"""

import os
import sys
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy import create_engine

from alembic import context

# Make the roomstay package importable when running from the repo root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from roomstay.database import Base, normalize_database_url
from roomstay import models  # noqa: F401  (registers every table on Base.metadata)

# this is the Alembic Config object
config = context.config

# Interpret the config file for Python logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The metadata object for autogenerate support
target_metadata = Base.metadata


def get_database_url() -> str:
    """
    DATABASE_URL from the environment, falling back to local SQLite.
    postgres:// is rewritten to postgresql:// for SQLAlchemy.
    """
    database_url = os.environ.get("DATABASE_URL") or "sqlite:///./roomstay.db"
    return normalize_database_url(database_url)


def run_migrations_offline() -> None:
    """
    Run migrations in 'offline' mode: emit SQL to the script output
    without a live connection.
    """
    url = get_database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    url = get_database_url()

    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    connectable = create_engine(
        url,
        poolclass=pool.NullPool,
        connect_args=connect_args,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
            render_as_batch=url.startswith("sqlite"),  # Batch mode for SQLite
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
