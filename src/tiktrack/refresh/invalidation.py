"""Per-account cache invalidation."""
import logging

from tiktrack.db.store import RecordStore

logger = logging.getLogger(__name__)


def invalidate(engine, account_id: str) -> None:
    """
    Drop the cached ProfileRecord and ProfileAnalytics for one account.

    The account stays tracked, so the next batch fetches it again. A missing
    record is a no-op. The refresh status ledger is never touched: clearing
    one account must not make the global staleness signal wrong for others.

    Args:
        engine: SQLAlchemy engine.
        account_id: Upstream account id.
    """
    deleted = RecordStore(engine).delete_profile(account_id)
    if deleted:
        logger.info("Invalidated cached records for %s", account_id)
    else:
        logger.info("Nothing cached for %s; invalidate was a no-op", account_id)
