# backend/labstore/alembic/env.py
"""
Alembic environment for the lab store schema.

Online runs reuse the application's write engine, so migrations hit the
same database the API does (DATABASE_WRITE_URL, then DATABASE_URL).
Offline runs (`alembic upgrade head --sql`) only need a URL to render
against.
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

# backend/ must be importable so `labstore` resolves when alembic is run
# from any working directory.
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from labstore.database import WRITE_DB_URL, Base, write_engine  # noqa: E402
from labstore.apps.accounts import models as accounts_models  # noqa: F401, E402
from labstore.apps.inventory import models as inventory_models  # noqa: F401, E402
from labstore.apps.audit import models as audit_models  # noqa: F401, E402

target_metadata = Base.metadata

LEDGER_TABLES = frozenset(target_metadata.tables)


def _include_object(obj, name, type_, reflected, compare_to):
    # Leave tables other tools keep in the same database alone.
    if type_ == "table" and reflected and compare_to is None:
        return name in LEDGER_TABLES
    return True


def _offline_url() -> str:
    url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if not url or url.startswith("driver://"):
        url = WRITE_DB_URL or ""
    return url


def _configure_kwargs(dialect_name: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "include_object": _include_object,
        # SQLite cannot ALTER most constraints in place.
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations_offline() -> None:
    url = _offline_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url.split(":", 1)[0].split("+", 1)[0]),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with write_engine.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(connection.dialect.name))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
