"""
StatusLedger: the single refresh-status row.

The ledger is bookkeeping, not a commit log: every method swallows store
failures into a False/None return (after logging) so a broken ledger never
blocks a refresh.

The refresh counter is incremented by the database inside one upsert
statement (`refresh_count = refresh_count + 1`), never computed client-side,
so overlapping batch runs cannot lose increments.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import insert, inspect, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tiktrack.models.status import STATUS_RECORD_ID, StatusRecord
from tiktrack.models.timestamps import as_utc, utcnow

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


@dataclass(frozen=True)
class LedgerSnapshot:
    last_refresh_time: Optional[datetime]
    refresh_count: int
    data_changed: bool


class StatusLedger:
    """Reads and writes the StatusRecord with id STATUS_RECORD_ID."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
        """
        self.engine = engine

    def ensure_bootstrap(self) -> bool:
        """
        Make sure the status table exists.

        Idempotent and safe to race: a concurrent creator winning is success.
        Does not create the row; that happens on the first record_refresh().

        Returns:
            False only if the table is missing and cannot be created.
        """
        table = StatusRecord.__table__
        try:
            table.create(self.engine, checkfirst=True)
            return True
        except SQLAlchemyError as exc:
            error = exc

        # Another process may have created it between the check and CREATE
        try:
            with self.engine.connect() as conn:
                if inspect(conn).has_table(table.name):
                    return True
        except SQLAlchemyError as exc:
            error = exc
        logger.error("Could not bootstrap %s table: %s", table.name, error)
        return False

    def get_last_refresh(self) -> Optional[LedgerSnapshot]:
        """
        Read the status row.

        Returns:
            LedgerSnapshot, or None if the row is missing or unreadable.
            Callers treat None as "refresh needed".
        """
        table = StatusRecord.__table__
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    table.select().where(table.c.id == STATUS_RECORD_ID)
                ).mappings().first()
        except SQLAlchemyError as exc:
            logger.warning("Could not read refresh status: %s", exc)
            return None

        if row is None:
            return None
        return LedgerSnapshot(
            last_refresh_time=as_utc(row["last_refresh_time"]),
            refresh_count=row["refresh_count"] or 0,
            data_changed=bool(row["data_changed"]),
        )

    def record_refresh(self, data_changed: bool, now: Optional[datetime] = None) -> bool:
        """
        Upsert the status row after a completed batch.

        Args:
            data_changed: Whether any account was refreshed successfully.
            now: Refresh timestamp. Defaults to the current UTC time.

        Returns:
            True if the write committed. False means only the bookkeeping
            failed; the refresh itself may still have succeeded.
        """
        now = as_utc(now) if now else utcnow()
        self.ensure_bootstrap()
        try:
            upsert = _UPSERT_DIALECTS.get(self.engine.dialect.name)
            if upsert is not None:
                self._upsert_on_conflict(upsert, data_changed, now)
            else:
                self._update_then_insert(data_changed, now)
        except SQLAlchemyError as exc:
            logger.error("Could not record refresh: %s", exc)
            return False

        logger.info("Recorded refresh at %s (data_changed=%s)", now.isoformat(), data_changed)
        return True

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _upsert_on_conflict(self, upsert, data_changed: bool, now: datetime) -> None:
        table = StatusRecord.__table__
        stmt = upsert(table).values(
            id=STATUS_RECORD_ID,
            last_refresh_time=now,
            refresh_count=1,
            data_changed=data_changed,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.id],
            set_={
                "last_refresh_time": stmt.excluded.last_refresh_time,
                "refresh_count": table.c.refresh_count + 1,
                "data_changed": stmt.excluded.data_changed,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self.engine.begin() as conn:
            conn.execute(stmt)

    def _update_then_insert(self, data_changed: bool, now: datetime) -> None:
        """Portable path: atomic UPDATE, INSERT if no row, retry UPDATE on a lost insert race."""
        table = StatusRecord.__table__
        bump = (
            update(table)
            .where(table.c.id == STATUS_RECORD_ID)
            .values(
                last_refresh_time=now,
                refresh_count=table.c.refresh_count + 1,
                data_changed=data_changed,
                updated_at=now,
            )
        )
        with self.engine.begin() as conn:
            if conn.execute(bump).rowcount:
                return
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(table).values(
                        id=STATUS_RECORD_ID,
                        last_refresh_time=now,
                        refresh_count=1,
                        data_changed=data_changed,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            with self.engine.begin() as conn:
                conn.execute(bump)
