"""
Alembic environment. The URL comes from creatorpay.settings, so the same
.env / DATABASE_URL / PG* variables drive the API, the worker and migrations.
"""
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from creatorpay import models  # noqa: F401  registers tables on Base.metadata
from creatorpay.db import Base
from creatorpay.settings import settings

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL to stdout)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode (connect to DB)."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
