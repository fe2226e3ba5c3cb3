from logging.config import fileConfig
from sqlalchemy import pool
from alembic import context
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(PROJECT_ROOT / ".env")  # don't print secrets

from weekly_picks.database.connection import Base, build_engine, normalize_database_url  # noqa: E402
from weekly_picks.database import models  # noqa: E402,F401  registers tables on Base.metadata

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url():
    # Prefer env DATABASE_URL; fall back to ini only if not a dummy
    url = (os.getenv("DATABASE_URL") or "").strip()
    if url:
        deployment_mode = os.getenv("DEPLOYMENT_MODE", "local")
        if deployment_mode == "local" and "postgres:5432" in url:
            url = url.replace("postgres:5432", "localhost:5432")
        return normalize_database_url(url)
    cfg_url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if cfg_url and not cfg_url.startswith("driver://"):
        return normalize_database_url(cfg_url)
    raise RuntimeError("DATABASE_URL missing. Put real DSN in .env or set sqlalchemy.url (not 'driver://').")


def run_migrations_offline():
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    url = get_url()
    if url.startswith("sqlite"):
        connectable = build_engine(url)
    else:
        from sqlalchemy import create_engine
        connectable = create_engine(url, poolclass=pool.NullPool, connect_args={"options": "-c timezone=UTC"})
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
