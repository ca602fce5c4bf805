"""Alembic environment configuration."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from afroconnect.config import settings

# Import all models so Alembic can detect them
from afroconnect.database.base import Base
from afroconnect.auth.models import User  # noqa: F401
from afroconnect.notifications.models import Notification  # noqa: F401
from afroconnect.documents.models import Document  # noqa: F401
from afroconnect.consultations.models import Consultation  # noqa: F401
from afroconnect.messaging.models import Conversation, Message, ScheduledMessage  # noqa: F401
from afroconnect.companies.models import Company  # noqa: F401
from afroconnect.spotlight.models import Spotlight  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.effective_database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
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
