"""
RecordStore: keyed get/replace/delete over tracked accounts and their records.

Each write opens its own Session and commits once, so a profile and its
analytics are replaced together or not at all.
"""
import json
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from tiktrack.models.profile import ProfileAnalytics, ProfileRecord, TrackedAccount
from tiktrack.models.timestamps import utcnow

# Columns compared to decide whether a replacement changed anything
_COMPARED_FIELDS = (
    "handle",
    "display_name",
    "avatar_url",
    "bio",
    "verified",
    "followers",
    "following",
    "engagement",
    "post_count",
    "authoritative",
)


class RecordStore:
    """Point lookups and wholesale upserts keyed by account_id."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
        """
        self.engine = engine

    # ── Tracked accounts ──────────────────────────────────────────────────────

    def list_tracked_accounts(self) -> List[TrackedAccount]:
        with Session(self.engine) as s:
            return list(s.exec(select(TrackedAccount).order_by(TrackedAccount.account_id)).all())

    def add_tracked_account(self, account_id: str, handle: str) -> TrackedAccount:
        """Insert or rename a tracked account. Returns the stored row."""
        with Session(self.engine) as s:
            account = s.get(TrackedAccount, account_id)
            if account is None:
                account = TrackedAccount(account_id=account_id, handle=handle)
            else:
                account.handle = handle
            s.add(account)
            s.commit()
            s.refresh(account)
            return account

    def remove_tracked_account(self, account_id: str) -> bool:
        """Delete the account and everything cached for it. False if it was not tracked."""
        with Session(self.engine) as s:
            account = s.get(TrackedAccount, account_id)
            for model in (ProfileRecord, ProfileAnalytics):
                row = s.get(model, account_id)
                if row is not None:
                    s.delete(row)
            if account is not None:
                s.delete(account)
            s.commit()
            return account is not None

    # ── Profiles ──────────────────────────────────────────────────────────────

    def get_profile(self, account_id: str) -> Optional[ProfileRecord]:
        with Session(self.engine) as s:
            return s.get(ProfileRecord, account_id)

    def get_analytics(self, account_id: str) -> Optional[ProfileAnalytics]:
        with Session(self.engine) as s:
            return s.get(ProfileAnalytics, account_id)

    def replace_profile(
        self,
        record: ProfileRecord,
        analytics: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Replace the stored profile (and optionally its analytics) wholesale.

        Args:
            record: The complete new ProfileRecord.
            analytics: compute_analytics() output, or None to leave the
                stored analytics untouched.

        Returns:
            True if the stored identity/statistics differ from before
            (or no record existed).
        """
        with Session(self.engine) as s:
            existing = s.get(ProfileRecord, record.account_id)
            changed = existing is None or any(
                getattr(existing, f) != getattr(record, f) for f in _COMPARED_FIELDS
            )
            if existing is None:
                s.add(ProfileRecord(**record.model_dump()))
            else:
                # Every column is overwritten in the same transaction
                for k, v in record.model_dump().items():
                    setattr(existing, k, v)
                s.add(existing)

            if analytics is not None:
                fields = dict(analytics)
                fields["top_hashtags_json"] = json.dumps(fields.pop("top_hashtags", []))
                fields["calculated_at"] = utcnow()
                current = s.get(ProfileAnalytics, record.account_id)
                if current is None:
                    s.add(ProfileAnalytics(account_id=record.account_id, **fields))
                else:
                    for k, v in fields.items():
                        setattr(current, k, v)
                    s.add(current)

            s.commit()
            return changed

    def delete_profile(self, account_id: str) -> bool:
        """Delete profile and analytics for one account. False if nothing was stored."""
        with Session(self.engine) as s:
            deleted = False
            for model in (ProfileRecord, ProfileAnalytics):
                row = s.get(model, account_id)
                if row is not None:
                    s.delete(row)
                    deleted = True
            s.commit()
            return deleted
