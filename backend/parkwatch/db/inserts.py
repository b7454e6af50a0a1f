"""
Dialect-aware INSERT ... ON CONFLICT DO NOTHING.

PostgreSQL in production, SQLite in tests; both support the same conflict clause.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def insert_if_absent(db: Session, model, values: dict, conflict_columns: list[str]) -> bool:
    """
    Insert one row unless a row with the same conflict_columns already exists.
    Returns True when this call inserted the row, False on conflict.
    """
    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
    result = db.execute(stmt)
    return (result.rowcount or 0) == 1
