"""Tests for opswatch.services.scheduler."""

from __future__ import annotations

import asyncio

import pytest

from opswatch.services.scheduler import PeriodicJob, Scheduler


class TestPeriodicJob:
    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            PeriodicJob("bad", 0, lambda: None)

    @pytest.mark.asyncio
    async def test_run_once_records_failure(self) -> None:
        def boom() -> None:
            raise RuntimeError("boom")

        job = PeriodicJob("boom", 1, boom)
        await job.run_once()

        assert job.runs == 1
        assert job.failures == 1
        assert job.last_error == "boom"

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_runs(self) -> None:
        calls: list[int] = []

        async def flaky() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first run fails")

        job = PeriodicJob("flaky", 0.01, flaky)
        job.start()
        try:
            for _ in range(200):
                if len(calls) >= 3:
                    break
                await asyncio.sleep(0.01)
        finally:
            await job.stop()

        assert len(calls) >= 3
        assert job.failures == 1
        assert job.last_error is None
        assert job.running is False

    @pytest.mark.asyncio
    async def test_sync_callback(self) -> None:
        calls: list[int] = []
        job = PeriodicJob("sync", 1, lambda: calls.append(1))

        await job.run_once()

        assert calls == [1]
        assert job.status()["runs"] == 1


class TestScheduler:
    def test_duplicate_job_rejected(self) -> None:
        scheduler = Scheduler()
        scheduler.add_job("a", 1, lambda: None)

        with pytest.raises(ValueError):
            scheduler.add_job("a", 1, lambda: None)

    @pytest.mark.asyncio
    async def test_start_and_stop_cancel_jobs(self) -> None:
        scheduler = Scheduler()
        scheduler.add_job("slow", 3600, lambda: None)
        scheduler.add_job("other", 3600, lambda: None)

        await scheduler.start()
        assert scheduler.running
        assert all(job.running for job in scheduler.jobs)

        await scheduler.stop()
        assert not scheduler.running
        assert not any(job.running for job in scheduler.jobs)

    @pytest.mark.asyncio
    async def test_job_added_while_running_starts(self) -> None:
        scheduler = Scheduler()
        await scheduler.start()
        try:
            job = scheduler.add_job("late", 3600, lambda: None)
            assert job.running
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self) -> None:
        scheduler = Scheduler()
        await scheduler.stop()
        await scheduler.start()
        await scheduler.stop()
        await scheduler.stop()

        assert not scheduler.running
