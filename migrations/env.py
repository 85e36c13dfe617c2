"""Alembic environment for the stock ledger schema."""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from config import Config
from stockledger import models  # noqa: F401 - registers tables on the metadata
from stockledger.extensions import db

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = db.Model.metadata


def _database_url() -> str:
    """Resolve ``sqlalchemy.url``; ``env://NAME`` reads NAME, else the app config."""

    url = config.get_main_option("sqlalchemy.url") or ""
    if url.startswith("env://"):
        return os.getenv(url[len("env://"):]) or Config.SQLALCHEMY_DATABASE_URI
    return url or Config.SQLALCHEMY_DATABASE_URI


def _context_options(url: str) -> dict:
    # SQLite cannot ALTER columns in place; batch mode rebuilds the table.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = _database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _database_url()
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = url

    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, **_context_options(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
