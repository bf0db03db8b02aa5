"""Compare the live database schema against the ORM models.

Exit codes: 0 when they match, 1 when Alembic would generate operations,
2 when the comparison itself failed.
"""

from __future__ import annotations

import sys

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext

from rydercomps.db.engine import make_engine
from rydercomps.models import Base


def _flatten(ops) -> list[str]:
    lines: list[str] = []
    stack = [(op, 0) for op in reversed(list(ops))]
    while stack:
        op, depth = stack.pop()
        lines.append("  " * depth + f"- {op}")
        for child in reversed(list(getattr(op, "ops", None) or [])):
            stack.append((child, depth + 1))
    return lines


def main() -> int:
    engine = make_engine()
    url = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "compare_server_default": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url}: {exc}", file=sys.stderr)
        return 2
    finally:
        engine.dispose()

    if upgrade_ops is None or upgrade_ops.is_empty():
        print(f"Schema drift check: OK for {url}.")
        return 0
    print(f"Schema drift check: FAILED for {url}:")
    print("\n".join(_flatten(upgrade_ops.ops)))
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
