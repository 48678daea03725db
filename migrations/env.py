"""Alembic environment for the EcoTrack schema.

Reads the database URL the same way the app does, so ``flask db upgrade`` and a
plain ``alembic upgrade head`` target the same database.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config import DEFAULT_SQLITE_URI, get_database_uri_from_env  # noqa: E402
from ecotrack.models import db  # noqa: E402 - importing the package registers every model

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

database_url, _ = get_database_uri_from_env(DEFAULT_SQLITE_URI)
config.set_main_option("sqlalchemy.url", database_url)

target_metadata = db.Model.metadata


def _configure_kwargs(dialect_name: str) -> dict:
    # SQLite cannot ALTER constraints in place; batch mode copies the table instead.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations_offline() -> None:
    dialect_name = database_url.split(":", 1)[0].split("+", 1)[0]
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(dialect_name),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(connection.dialect.name))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
