import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

ROOT = Path(__file__).resolve().parents[1]


def _run_migrations(database_url: str, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", database_url)
    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "migrations"))
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")
    return config


def test_migrations_apply(tmp_path: Path, monkeypatch):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'migrations.db'}"
    _run_migrations(database_url, monkeypatch)

    inspector = inspect(create_engine(database_url, future=True))
    tables = set(inspector.get_table_names())

    assert {"locations", "boxes", "transfers", "transfer_lines", "transfer_logs"} <= tables
    transfer_columns = {column["name"] for column in inspector.get_columns("transfers")}
    assert {"commit_claim", "claimed_at", "ecommerce_transfer_ref", "request_hash"} <= transfer_columns
    indexes = [index["name"] for index in inspector.get_indexes("transfers")]
    assert "ix_transfers_owner_status" in indexes


def test_migrations_downgrade(tmp_path: Path, monkeypatch):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'downgrade.db'}"
    config = _run_migrations(database_url, monkeypatch)

    command.downgrade(config, "base")

    tables = set(inspect(create_engine(database_url, future=True)).get_table_names())
    assert "transfers" not in tables
    assert os.path.exists(tmp_path / "downgrade.db")
