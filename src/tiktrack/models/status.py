"""Refresh status ledger model."""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from tiktrack.models.timestamps import utcnow

# The ledger is a single row; every reader and writer addresses it by this id.
STATUS_RECORD_ID = 1


class StatusRecord(SQLModel, table=True):
    """Tracks when the last batch refresh ran and whether it changed data."""

    __tablename__ = "refreshstatus"

    id: int = Field(default=STATUS_RECORD_ID, primary_key=True)
    last_refresh_time: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    refresh_count: int = 0
    data_changed: bool = False
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
