"""
Alembic environment

Runs migrations over the async engine configured by DATABASE_URL. Every
model module is imported so autogenerate sees the full metadata.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from pleeno.core.config import settings
from pleeno.core.database import Base
from pleeno.modules.activity import models as activity_models  # noqa: F401
from pleeno.modules.agencies import models as agency_models  # noqa: F401
from pleeno.modules.colleges import models as college_models  # noqa: F401
from pleeno.modules.enrollments import models as enrollment_models  # noqa: F401
from pleeno.modules.payments import models as payment_models  # noqa: F401
from pleeno.modules.students import models as student_models  # noqa: F401
from pleeno.modules.users import models as user_models  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
