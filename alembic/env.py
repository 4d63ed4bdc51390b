from alembic import context
from sqlalchemy import create_engine

from nomadpal.config import settings
from nomadpal.db import metadata

config = context.config


def run_migrations_online() -> None:
    # migrate_db() injects the URL; plain `alembic upgrade` falls back to env vars.
    url = config.get_main_option("sqlalchemy.url") or settings.database_url
    connectable = create_engine(url)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


run_migrations_online()
