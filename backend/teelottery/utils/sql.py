"""
SQL utilities for consistent handling of query results and idempotent inserts.

SQLModel/SQLAlchemy may return COUNT results as int or as a 1-tuple/Row.
Use scalar_int() to safely coerce to int everywhere.

insert_ignore() issues INSERT ... ON CONFLICT DO NOTHING for the two
dialects we run on (SQLite in dev/tests, PostgreSQL in production).
"""
from typing import Any, Dict, List, Type

from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, SQLModel

# Keeps multi-row VALUES under SQLite's bound-parameter limit
INSERT_BATCH_SIZE = 200


def scalar_int(x: Any) -> int:
    """Convert COUNT/aggregate result to int. Handles int or 1-tuple/Row."""
    try:
        return int(x[0])
    except Exception:
        return int(x)


def insert_ignore(session: Session, model: Type[SQLModel], rows: List[Dict[str, Any]]) -> int:
    """
    Bulk insert rows, silently skipping any that violate a unique/primary key.

    Returns the number of rows actually inserted. Does not commit.
    """
    if not rows:
        return 0

    dialect = session.get_bind().dialect.name.lower()
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"insert_ignore not supported for dialect '{dialect}'")

    inserted = 0
    table = model.__table__
    for start in range(0, len(rows), INSERT_BATCH_SIZE):
        batch = rows[start : start + INSERT_BATCH_SIZE]
        result = session.execute(insert(table).values(batch).on_conflict_do_nothing())
        inserted += max(result.rowcount or 0, 0)
    return inserted
