"""
Migration tests

The Alembic chain must build the same tables the models declare and
tear them down again.
"""
import os

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from core.database import Base

API_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _alembic_config(url):
    cfg = Config()
    cfg.set_main_option("script_location", os.path.join(API_ROOT, "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


class TestMigrations:
    """upgrade head / downgrade base on a scratch SQLite file"""

    def test_upgrade_creates_model_tables(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'migrations.db'}"

        command.upgrade(_alembic_config(url), "head")

        tables = set(inspect(create_engine(url)).get_table_names())
        assert set(Base.metadata.tables) <= tables

    def test_migrated_columns_match_models(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'migrations.db'}"
        command.upgrade(_alembic_config(url), "head")
        inspector = inspect(create_engine(url))

        for name, table in Base.metadata.tables.items():
            migrated = {column["name"] for column in inspector.get_columns(name)}
            assert migrated == set(table.columns.keys()), name

    def test_downgrade_removes_everything(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'migrations.db'}"
        cfg = _alembic_config(url)

        command.upgrade(cfg, "head")
        command.downgrade(cfg, "base")

        assert set(inspect(create_engine(url)).get_table_names()) <= {"alembic_version"}
