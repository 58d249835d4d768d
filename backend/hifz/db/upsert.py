"""
Dialect-aware upsert helper.

Rows keyed by a natural composite key (mastery records, daily completions,
weekly objective completions, attendance) are written with a single
INSERT ... ON CONFLICT DO UPDATE so concurrent or retried writes for the
same key simply overwrite each other.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


async def upsert(
    db: AsyncSession,
    model: type,
    key_columns: list[str],
    values: dict[str, Any],
) -> None:
    """
    Insert a row or update it in place when the natural key already exists.

    Args:
        db: Async database session.
        model: SQLAlchemy mapped class.
        key_columns: Columns of the unique constraint forming the natural key.
        values: Column values, including the key columns.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect {dialect}")

    statement = insert(model).values(**values)
    update_values = {k: v for k, v in values.items() if k not in key_columns}
    if update_values:
        statement = statement.on_conflict_do_update(
            index_elements=key_columns, set_=update_values
        )
    else:
        statement = statement.on_conflict_do_nothing(index_elements=key_columns)
    await db.execute(statement)
