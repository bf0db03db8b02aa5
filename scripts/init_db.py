from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from rydercomps.db.engine import make_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def alembic_config() -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return cfg


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to ``target_revision``."""
    command.upgrade(alembic_config(), target_revision)


def list_tables() -> list[str]:
    engine = make_engine()
    try:
        return sorted(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def main(argv: list[str] | None = None) -> None:
    """Migrate the database configured by ``DB_URL`` and report its tables."""
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("revision", nargs="?", default="head")
    args = parser.parse_args(argv)

    upgrade_db(args.revision)
    print("Current tables:", ", ".join(list_tables()))


if __name__ == "__main__":
    main()
