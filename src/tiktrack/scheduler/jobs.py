"""
APScheduler jobs for background refresh.

A short interval check asks the staleness policy whether a batch is due; the
batch itself only runs when the ledger says the data is stale. max_instances=1 keeps
one process from stacking runs.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from tiktrack.config import get_settings

logger = logging.getLogger(__name__)


def build_scheduler(engine) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        engine: SQLAlchemy engine to pass to the batch refresher.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _scheduled_refresh,
        trigger="interval",
        minutes=settings.refresh_check_minutes,
        id="refresh_check",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs={"engine": engine},
    )

    return scheduler


async def _scheduled_refresh(engine) -> None:
    """Interval job: run a batch refresh if the cached data is stale."""
    from tiktrack.provider.client import TikTokClient
    from tiktrack.refresh.errors import FatalRefreshError
    from tiktrack.refresh.orchestrator import BatchRefresher

    try:
        async with TikTokClient() as client:
            refresher = BatchRefresher(provider=client, engine=engine)
            outcome = await refresher.run_if_due()
    except FatalRefreshError as exc:
        logger.error("Scheduled refresh aborted: %s", exc)
        return

    if outcome is None:
        return
    if outcome.rate_limited:
        logger.warning(
            "Scheduled refresh was rate limited (%d/%d refreshed)",
            outcome.succeeded,
            outcome.attempted,
        )
    else:
        logger.info(
            "Scheduled refresh finished: %d/%d refreshed",
            outcome.succeeded,
            outcome.attempted,
        )
