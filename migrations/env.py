from __future__ import annotations

"""Alembic environment.

Usage:
    # Generate new migration after editing models
    alembic revision --autogenerate -m "<message>"

    # Apply all pending migrations
    alembic upgrade head

Alembic reads its config from `alembic.ini` (script_location = migrations).
"""

import re
from logging.config import fileConfig

from sqlalchemy import pool, create_engine
from alembic import context

from busbook.models import Base
from busbook.core import get_settings

# ---------------------------------------------------------------------------
#  Alembic Config object & logging
# ---------------------------------------------------------------------------
config = context.config

DB_DSN = get_settings().DB_DSN

# Convert async driver URL to its sync counterpart for Alembic
SYNC_DSN = re.sub(r"\+(asyncpg|aiosqlite)", "", DB_DSN, count=1)
config.set_main_option("sqlalchemy.url", SYNC_DSN)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata  # models metadata for `--autogenerate`


# ---------------------------------------------------------------------------
#  Helper: offline migration (generate SQL scripts only)
# ---------------------------------------------------------------------------

def run_migrations_offline():
    """Run migrations without DB connection (generates raw SQL)."""
    context.configure(
        url=SYNC_DSN,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


# ---------------------------------------------------------------------------
#  Helper: online migration (apply directly to DB)
# ---------------------------------------------------------------------------

def run_migrations_online() -> None:
    """Run migrations inside a synchronous transaction (avoids greenlet errors)."""

    connectable = create_engine(SYNC_DSN, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


def run():
    if context.is_offline_mode():
        run_migrations_offline()
    else:
        run_migrations_online()


run()
