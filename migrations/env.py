"""
Alembic environment for the override engine.

The database URL comes from DATABASE_URL through the application's
settings, unless the caller has already put one on the Alembic
config (the migration tests do, to migrate a scratch database).
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from override_engine.config import get_settings
from override_engine.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Every model is registered on Base by importing override_engine.models
target_metadata = Base.metadata

if not config.get_main_option("sqlalchemy.url"):
    # ConfigParser treats % as interpolation, and passwords may contain it
    config.set_main_option(
        "sqlalchemy.url", get_settings().DATABASE_URL.replace("%", "%%")
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL for review instead of running it."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
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
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite can only alter tables by copying them
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
