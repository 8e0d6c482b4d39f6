"""Tracked accounts, their cached profile records, and derived analytics."""
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime
from sqlmodel import Field, SQLModel

from tiktrack.models.timestamps import utcnow


class TrackedAccount(SQLModel, table=True):
    """An upstream account someone registered interest in."""

    account_id: str = Field(primary_key=True)
    handle: str = Field(index=True)
    added_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ProfileRecord(SQLModel, table=True):
    """
    Cached identity + statistics for one tracked account.

    Always replaced wholesale by the refresher so fresh and stale statistics
    are never mixed in one row.
    """

    account_id: str = Field(primary_key=True)

    # Identity
    handle: str
    display_name: str = ""
    avatar_url: str = ""
    bio: str = ""
    verified: bool = False

    # Statistics; counts on large accounts pass 2**31
    followers: int = Field(default=0, sa_type=BigInteger)
    following: int = Field(default=0, sa_type=BigInteger)
    engagement: int = Field(default=0, sa_type=BigInteger)  # cumulative hearts across all posts
    post_count: int = 0

    # False for placeholder records built when the provider could not answer
    authoritative: bool = True
    last_updated: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class ProfileAnalytics(SQLModel, table=True):
    """Post-level analytics derived from the account's recent posts."""

    account_id: str = Field(primary_key=True)
    post_count: int = 0
    avg_views_per_post: int = Field(default=0, sa_type=BigInteger)
    avg_hours_between_posts: float = 0.0
    avg_engagement_rate: float = 0.0  # percent
    weekly_post_frequency: float = 0.0
    monthly_post_frequency: float = 0.0
    top_hashtags_json: str = "[]"
    total_likes: int = Field(default=0, sa_type=BigInteger)
    total_comments: int = Field(default=0, sa_type=BigInteger)
    total_shares: int = Field(default=0, sa_type=BigInteger)
    total_views: int = Field(default=0, sa_type=BigInteger)
    calculated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
