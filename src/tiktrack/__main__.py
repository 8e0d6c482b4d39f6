"""
Main entrypoint: runs the refresh scheduler, or one-off maintenance commands.

FastAPI runs separately under uvicorn.

Usage:
    python -m tiktrack               # starts the refresh scheduler
    python -m tiktrack refresh       # runs one batch refresh now
    python -m tiktrack bootstrap     # creates the refresh status table
    uvicorn tiktrack.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _run_bootstrap() -> None:
    from tiktrack.db.engine import get_engine
    from tiktrack.refresh.ledger import StatusLedger

    if not StatusLedger(get_engine()).ensure_bootstrap():
        logger.error("Could not create the refresh status table.")
        sys.exit(1)
    logger.info("Refresh status table ready.")


async def _run_refresh_once() -> None:
    from tiktrack.db.engine import get_engine
    from tiktrack.provider.client import TikTokClient
    from tiktrack.refresh.errors import FatalRefreshError
    from tiktrack.refresh.orchestrator import BatchRefresher

    try:
        async with TikTokClient() as client:
            outcome = await BatchRefresher(provider=client, engine=get_engine()).run()
    except FatalRefreshError as exc:
        logger.error("Refresh aborted: %s", exc)
        sys.exit(1)
    logger.info("Refresh result: %s", outcome.to_dict())


async def _run_scheduler() -> None:
    from tiktrack.config import get_settings
    from tiktrack.db.engine import get_engine
    from tiktrack.scheduler.jobs import build_scheduler

    settings = get_settings()
    if not settings.rapidapi_key:
        logger.error("RAPIDAPI_KEY not set; refreshes cannot reach the provider.")
        sys.exit(1)

    scheduler = build_scheduler(get_engine())
    scheduler.start()
    logger.info(
        "Scheduler started (staleness check every %d min, threshold %.1fh)",
        settings.refresh_check_minutes,
        settings.refresh_threshold_hours,
    )

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()
        logger.info("Goodbye.")


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else None
    if command == "bootstrap":
        _run_bootstrap()
    elif command == "refresh":
        asyncio.run(_run_refresh_once())
    else:
        asyncio.run(_run_scheduler())
