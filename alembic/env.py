import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# repository root (one level above alembic/)
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Force BASE_DIR to be the FIRST entry in sys.path
sys.path = [p for p in sys.path if os.path.abspath(p) != BASE_DIR]
sys.path.insert(0, BASE_DIR)

from media_worker.core.config import settings  # noqa: E402
from media_worker.db.base import Base  # noqa: E402
from media_worker.models import MediaJob, PromptBlock, ResearchFile, ResearchItem, Swipe  # noqa: F401,E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.database_url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
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
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
