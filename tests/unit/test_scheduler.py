"""Tests for APScheduler job configuration and the refresh check job body."""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from tiktrack.refresh.errors import FatalRefreshError
from tiktrack.refresh.orchestrator import BatchOutcome
from tiktrack.scheduler.jobs import _scheduled_refresh, build_scheduler


class TestBuildScheduler:
    def test_returns_scheduler(self):
        scheduler = build_scheduler(MagicMock())
        assert isinstance(scheduler, AsyncIOScheduler)

    def test_refresh_check_job_registered(self):
        scheduler = build_scheduler(MagicMock())
        assert "refresh_check" in [job.id for job in scheduler.get_jobs()]

    def test_refresh_check_is_interval(self):
        scheduler = build_scheduler(MagicMock())
        job = next(j for j in scheduler.get_jobs() if j.id == "refresh_check")
        assert job.trigger.__class__.__name__ == "IntervalTrigger"

    def test_interval_from_settings(self):
        """Scheduler respects the REFRESH_CHECK_MINUTES setting."""
        with patch("tiktrack.scheduler.jobs.get_settings") as mock_settings:
            mock_settings.return_value.refresh_check_minutes = 5
            scheduler = build_scheduler(MagicMock())
        job = next(j for j in scheduler.get_jobs() if j.id == "refresh_check")
        assert job.trigger.interval == timedelta(minutes=5)

    def test_single_instance(self):
        scheduler = build_scheduler(MagicMock())
        job = next(j for j in scheduler.get_jobs() if j.id == "refresh_check")
        assert job.max_instances == 1
        assert job.coalesce is True

    def test_scheduler_not_running_on_creation(self):
        scheduler = build_scheduler(MagicMock())
        assert not scheduler.running


# ─── _scheduled_refresh job body ──────────────────────────────────────────────

class TestScheduledRefreshJob:
    """TikTokClient and BatchRefresher are imported inside the job body, so
    they are patched at their source module paths."""

    @staticmethod
    def _client():
        client = AsyncMock()
        client.__aenter__.return_value = client
        return client

    @pytest.mark.asyncio
    async def test_runs_only_if_due(self):
        engine = MagicMock()
        refresher = MagicMock()
        refresher.run_if_due = AsyncMock(return_value=BatchOutcome(attempted=2, succeeded=2))
        refresher.run = AsyncMock()

        with patch("tiktrack.provider.client.TikTokClient", return_value=self._client()), \
             patch("tiktrack.refresh.orchestrator.BatchRefresher", return_value=refresher) as cls:
            await _scheduled_refresh(engine=engine)

        refresher.run_if_due.assert_awaited_once()
        refresher.run.assert_not_awaited()
        assert cls.call_args.kwargs["engine"] is engine

    @pytest.mark.asyncio
    async def test_fresh_data_is_noop(self):
        refresher = MagicMock()
        refresher.run_if_due = AsyncMock(return_value=None)

        with patch("tiktrack.provider.client.TikTokClient", return_value=self._client()), \
             patch("tiktrack.refresh.orchestrator.BatchRefresher", return_value=refresher):
            await _scheduled_refresh(engine=MagicMock())

        refresher.run_if_due.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fatal_error_does_not_propagate(self):
        """The scheduler stays alive when a batch aborts."""
        refresher = MagicMock()
        refresher.run_if_due = AsyncMock(side_effect=FatalRefreshError("no api key"))

        with patch("tiktrack.provider.client.TikTokClient", return_value=self._client()), \
             patch("tiktrack.refresh.orchestrator.BatchRefresher", return_value=refresher):
            await _scheduled_refresh(engine=MagicMock())

    @pytest.mark.asyncio
    async def test_client_closed_after_run(self):
        client = self._client()
        refresher = MagicMock()
        refresher.run_if_due = AsyncMock(return_value=None)

        with patch("tiktrack.provider.client.TikTokClient", return_value=client), \
             patch("tiktrack.refresh.orchestrator.BatchRefresher", return_value=refresher):
            await _scheduled_refresh(engine=MagicMock())

        client.__aexit__.assert_awaited_once()
