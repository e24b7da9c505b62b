from __future__ import annotations
import importlib
import os
import sys
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from taskhub.models.authz import Base  # noqa: E402

MODEL_MODULES = ('project', 'stage', 'task', 'document', 'activity', 'notification')
for name in MODEL_MODULES:
    importlib.import_module(f'taskhub.models.{name}')

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
config.set_main_option('sqlalchemy.url', os.getenv('DATABASE_URL', 'sqlite:///dev.db'))


def _migrate(**options):
    # batch mode: SQLite has no ALTER COLUMN
    context.configure(target_metadata=Base.metadata, render_as_batch=True, **options)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _migrate(url=config.get_main_option('sqlalchemy.url'), literal_binds=True)
else:
    engine = engine_from_config(config.get_section(config.config_ini_section) or {},
                                prefix='sqlalchemy.', poolclass=pool.NullPool)
    with engine.connect() as connection:
        _migrate(connection=connection)
