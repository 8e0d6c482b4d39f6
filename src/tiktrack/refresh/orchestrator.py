"""
BatchRefresher: refreshes every tracked account against the provider.

Flow for one batch:
  1. LISTING: load all TrackedAccount rows (empty list is a valid batch)
  2. PROCESSING: per account, bounded by refresh_concurrency:
       fetch profile → fetch posts → replace ProfileRecord + ProfileAnalytics
       in one transaction
  3. AGGREGATING: tally attempted / succeeded / failure kinds
  4. LEDGER_UPDATE: StatusLedger.record_refresh(data_changed=succeeded > 0)

Per-account failures never abort the batch:
  - RATE_LIMITED: skipped, nothing written
  - NOT_FOUND / TRANSIENT on the profile lookup: a synthesized,
    non-authoritative record replaces the stored one
  - FATAL: FatalRefreshError is raised and the batch is ABORTED before the
    ledger is touched

A failed ledger write does not fail the batch; the outcome is flagged and
reports the wall-clock time instead. A non-fatal failure to list the tracked
accounts completes the batch with nothing attempted and leaves the ledger
alone, so the next staleness check retries.
"""
import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from tiktrack.analysis.engagement import compute_analytics
from tiktrack.config import Settings, get_settings
from tiktrack.db.store import RecordStore
from tiktrack.models.profile import ProfileRecord, TrackedAccount
from tiktrack.models.timestamps import as_utc, utcnow
from tiktrack.refresh.errors import FatalRefreshError, RefreshErrorKind, classify
from tiktrack.refresh.fallback import synthesize
from tiktrack.refresh.ledger import StatusLedger
from tiktrack.refresh.staleness import is_refresh_due

logger = logging.getLogger(__name__)

# Tie-break order when two failure kinds are equally frequent
_FAILURE_PRIORITY = (
    RefreshErrorKind.RATE_LIMITED,
    RefreshErrorKind.NOT_FOUND,
    RefreshErrorKind.TRANSIENT,
)


class BatchPhase(str, Enum):
    IDLE = "idle"
    LISTING = "listing"
    PROCESSING = "processing"
    AGGREGATING = "aggregating"
    LEDGER_UPDATE = "ledger_update"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class AccountOutcome:
    account_id: str
    failure: Optional[RefreshErrorKind] = None
    synthesized: bool = False
    changed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass
class BatchOutcome:
    """Result of one batch run. Not persisted."""

    attempted: int = 0
    succeeded: int = 0
    synthesized: int = 0
    failures: Counter = field(default_factory=Counter)
    dominant_failure: Optional[RefreshErrorKind] = None
    data_changed: bool = False
    last_refresh_time: Optional[datetime] = None
    ledger_write_failed: bool = False
    phase: BatchPhase = BatchPhase.IDLE

    @property
    def rate_limited(self) -> bool:
        return self.failures[RefreshErrorKind.RATE_LIMITED] > 0

    @property
    def http_status(self) -> int:
        """429 when the provider throttled us and nothing got through, else 200."""
        if self.rate_limited and self.succeeded == 0:
            return 429
        return 200

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refreshed_count": self.succeeded,
            "attempted": self.attempted,
            "synthesized_count": self.synthesized,
            "data_changed": self.data_changed,
            "last_refresh_time": self.last_refresh_time,
            "rate_limited": self.rate_limited,
            "ledger_write_failed": self.ledger_write_failed,
            "dominant_failure": self.dominant_failure.value if self.dominant_failure else None,
        }


class BatchRefresher:
    """Runs refresh batches over all tracked accounts."""

    def __init__(self, provider, engine, settings: Optional[Settings] = None):
        """
        Args:
            provider: TikTokClient instance (or AsyncMock in tests). Needs
                fetch_profile(account_id) and fetch_posts(account_id, count).
            engine: SQLAlchemy engine (SQLModel create_engine result).
            settings: Settings instance. Defaults to get_settings().
        """
        self.provider = provider
        self.engine = engine
        self.settings = settings or get_settings()
        self.store = RecordStore(engine)
        self.ledger = StatusLedger(engine)
        self.phase = BatchPhase.IDLE

    async def run_if_due(self, now: Optional[datetime] = None) -> Optional[BatchOutcome]:
        """
        Run a batch only if the staleness policy says one is due.

        An unreadable or missing ledger counts as due.

        Returns:
            The BatchOutcome, or None if the data is still fresh.
        """
        now = as_utc(now) if now else utcnow()
        snapshot = self.ledger.get_last_refresh()
        last = snapshot.last_refresh_time if snapshot else None
        if not is_refresh_due(last, now, self.settings.refresh_threshold_hours):
            logger.info("Refresh not due (last refresh %s)", last.isoformat())
            return None
        return await self.run()

    async def run(self) -> BatchOutcome:
        """
        Run one batch over every tracked account.

        Returns:
            BatchOutcome with counts, failure summary and ledger result.

        Raises:
            FatalRefreshError: on a FATAL classification; no ledger update.
        """
        outcome = BatchOutcome()
        self._enter(BatchPhase.LISTING, outcome)
        listing_failed = False
        try:
            accounts = self.store.list_tracked_accounts()
        except Exception as exc:
            kind = classify(exc)
            if kind is RefreshErrorKind.FATAL:
                self._enter(BatchPhase.ABORTED, outcome)
                raise FatalRefreshError(f"Could not list tracked accounts: {exc}") from exc
            logger.error("Could not list tracked accounts (%s): %s", kind.value, exc)
            listing_failed = True
            accounts = []
            outcome.failures[kind] += 1

        self._enter(BatchPhase.PROCESSING, outcome)
        try:
            results = await self._process_all(accounts)
        except BaseException:
            self._enter(BatchPhase.ABORTED, outcome)
            raise

        self._enter(BatchPhase.AGGREGATING, outcome)
        _aggregate(outcome, results)

        self._enter(BatchPhase.LEDGER_UPDATE, outcome)
        if listing_failed:
            # No account was attempted; the next staleness check retries
            logger.warning("Skipping ledger update: tracked accounts could not be listed")
        else:
            now = utcnow()
            outcome.last_refresh_time = now
            if not self.ledger.record_refresh(outcome.data_changed, now=now):
                outcome.ledger_write_failed = True
                logger.warning("Batch completed but the ledger write failed")

        self._enter(BatchPhase.DONE, outcome)
        logger.info(
            "Batch done: %d/%d refreshed, %d synthesized, failures=%s",
            outcome.succeeded,
            outcome.attempted,
            outcome.synthesized,
            dict(outcome.failures),
        )
        return outcome

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _enter(self, phase: BatchPhase, outcome: BatchOutcome) -> None:
        logger.debug("Batch phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase
        outcome.phase = phase

    async def _process_all(self, accounts: List[TrackedAccount]) -> List[AccountOutcome]:
        """Refresh accounts concurrently; the first escaping error cancels the rest."""
        if not accounts:
            return []
        semaphore = asyncio.Semaphore(max(1, self.settings.refresh_concurrency))

        async def bounded(account: TrackedAccount) -> AccountOutcome:
            async with semaphore:
                return await self._refresh_account(account)

        tasks = [asyncio.ensure_future(bounded(a)) for a in accounts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _call(self, fn, *args):
        """Await a provider call bounded by provider_timeout_seconds."""
        return await asyncio.wait_for(fn(*args), timeout=self.settings.provider_timeout_seconds)

    async def _refresh_account(self, account: TrackedAccount) -> AccountOutcome:
        account_id = account.account_id
        try:
            fields = await self._call(self.provider.fetch_profile, account_id)
        except Exception as exc:
            return self._handle_profile_failure(account_id, exc)

        analytics = await self._fetch_analytics(account_id)

        columns = {k: v for k, v in fields.items() if k in ProfileRecord.model_fields}
        columns.update(
            account_id=account_id,
            authoritative=True,
            last_updated=utcnow(),
        )
        record = ProfileRecord(**columns)
        try:
            changed = self.store.replace_profile(record, analytics)
        except Exception as exc:
            return self._handle_store_failure(account_id, exc)

        logger.info("Refreshed %s (@%s, changed=%s)", account_id, record.handle, changed)
        return AccountOutcome(account_id, changed=changed)

    async def _fetch_analytics(self, account_id: str) -> Optional[Dict[str, Any]]:
        """Fetch posts and compute analytics. None (keep stored analytics) on failure."""
        try:
            posts = await self._call(
                self.provider.fetch_posts, account_id, self.settings.posts_per_refresh
            )
        except Exception as exc:
            kind = classify(exc)
            if kind is RefreshErrorKind.FATAL:
                raise FatalRefreshError(f"Fatal provider error for {account_id}: {exc}") from exc
            logger.warning("Posts fetch failed for %s (%s): %s", account_id, kind.value, exc)
            return None
        return compute_analytics(posts)

    def _handle_profile_failure(self, account_id: str, exc: Exception) -> AccountOutcome:
        kind = classify(exc)
        if kind is RefreshErrorKind.FATAL:
            raise FatalRefreshError(f"Fatal provider error for {account_id}: {exc}") from exc

        if kind is RefreshErrorKind.RATE_LIMITED:
            logger.warning("Rate limited on %s; leaving cached record untouched", account_id)
            return AccountOutcome(account_id, failure=kind)

        logger.warning("Profile fetch failed for %s (%s): %s; synthesizing", account_id, kind.value, exc)
        try:
            self.store.replace_profile(synthesize(account_id))
        except Exception as store_exc:
            outcome = self._handle_store_failure(account_id, store_exc)
            outcome.failure = kind
            return outcome
        return AccountOutcome(account_id, failure=kind, synthesized=True)

    def _handle_store_failure(self, account_id: str, exc: Exception) -> AccountOutcome:
        kind = classify(exc)
        if kind is RefreshErrorKind.FATAL:
            raise FatalRefreshError(f"Fatal store error for {account_id}: {exc}") from exc
        logger.error("Could not store %s (%s): %s", account_id, kind.value, exc)
        return AccountOutcome(account_id, failure=kind)


def _aggregate(outcome: BatchOutcome, results: List[AccountOutcome]) -> None:
    """Fold per-account results into the batch outcome."""
    outcome.attempted = len(results)
    for r in results:
        if r.succeeded:
            outcome.succeeded += 1
        else:
            outcome.failures[r.failure] += 1
        if r.synthesized:
            outcome.synthesized += 1

    if outcome.failures:
        outcome.dominant_failure = max(
            outcome.failures,
            key=lambda k: (outcome.failures[k], -_FAILURE_PRIORITY.index(k)),
        )
    outcome.data_changed = outcome.succeeded > 0
