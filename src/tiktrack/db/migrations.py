"""
Database migrations for the refresh ledger.

The first deployments stored only `last_refresh_time` in the status table.
Counter and change-flag columns are added in place when missing so existing
databases keep their last refresh timestamp.

Called automatically from get_engine() after create_all().
"""
from sqlalchemy import inspect, text


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times; checks column existence before altering.

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        _add_column_if_missing(
            conn, "refreshstatus", "refresh_count", "INTEGER NOT NULL DEFAULT 0"
        )
        _add_column_if_missing(
            conn, "refreshstatus", "data_changed", "BOOLEAN NOT NULL DEFAULT FALSE"
        )
        conn.commit()


def _add_column_if_missing(conn, table: str, column: str, col_type: str) -> None:
    """Add a column to a table if the table exists and lacks it.

    Args:
        conn: SQLAlchemy connection.
        table: Table name.
        column: Column name to add.
        col_type: Column DDL, e.g. "INTEGER NOT NULL DEFAULT 0".
    """
    inspector = inspect(conn)
    if not inspector.has_table(table):
        return
    existing_columns = {col["name"] for col in inspector.get_columns(table)}
    if column not in existing_columns:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
