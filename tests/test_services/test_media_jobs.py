"""Tests for the media job runner."""

from __future__ import annotations

import asyncio

import pytest

from dialtune.services.media.jobs import JobStatus, MediaJobRunner, delete_media_file, media_url
from tests.fakes import FakeFetcher, ManualClock, settle


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


class TestMediaJobRunner:
    """Tests for MediaJobRunner."""

    @pytest.mark.asyncio
    async def test_start_returns_pending_immediately(self, settings, clock) -> None:
        gate = asyncio.Event()
        runner = MediaJobRunner(FakeFetcher(settings.media_path, gate=gate), settings, clock=clock)
        try:
            job = runner.start_job("c1", "jazz")

            assert job.status is JobStatus.PENDING
            assert job.started_at == clock.now
            assert runner.get_status("c1") == job
            assert runner.active_count == 1
        finally:
            gate.set()
            await runner.close()

    @pytest.mark.asyncio
    async def test_done_snapshot(self, settings, clock) -> None:
        runner = MediaJobRunner(FakeFetcher(settings.media_path), settings, clock=clock)
        try:
            job = runner.start_job("c1", "jazz")
            await settle()

            done = runner.get_status("c1")
            assert done.job_id == job.job_id
            assert done.status is JobStatus.DONE
            assert done.is_terminal
            assert done.result.title == "Kind of Blue"
            assert done.result.path.exists()
            assert done.result.url == media_url(settings, done.result.filename)
            assert runner.active_count == 0
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_error_after_both_attempts(self, settings, clock) -> None:
        fetcher = FakeFetcher(settings.media_path, fail=True)
        runner = MediaJobRunner(fetcher, settings, clock=clock)
        try:
            runner.start_job("c1", "jazz")
            await settle()

            job = runner.get_status("c1")
            assert job.status is JobStatus.ERROR
            assert job.result is None
            assert job.error
            assert [broad for _, _, broad in fetcher.calls] == [False, True]
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_each_attempt_uses_fresh_stem(self, settings, clock) -> None:
        fetcher = FakeFetcher(settings.media_path, sizes=[10, 10])
        runner = MediaJobRunner(fetcher, settings, clock=clock)
        try:
            runner.start_job("c1", "jazz")
            await settle()

            stems = [stem for _, stem, _ in fetcher.calls]
            assert len(set(stems)) == 2
            # Rejected downloads are removed
            assert list(settings.media_path.glob("*.mp3")) == []
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_new_job_supersedes_old(self, settings, clock) -> None:
        """Only the latest job's result is ever visible."""
        gate = asyncio.Event()
        fetcher = FakeFetcher(settings.media_path, gate=gate)
        runner = MediaJobRunner(fetcher, settings, clock=clock)
        try:
            first = runner.start_job("c1", "jazz")
            await settle()
            second = runner.start_job("c1", "blues")
            gate.set()
            await settle()

            job = runner.get_status("c1")
            assert job.job_id == second.job_id != first.job_id
            assert job.query == "blues"
            assert job.status is JobStatus.DONE
            assert len(list(settings.media_path.glob("*.mp3"))) == 1
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_discarded_result_dropped(self, settings, clock) -> None:
        """A job finishing after its call moved on leaves nothing behind."""
        gate = asyncio.Event()
        runner = MediaJobRunner(FakeFetcher(settings.media_path, gate=gate), settings, clock=clock)
        try:
            runner.start_job("c1", "jazz")
            await settle()
            runner.discard("c1")
            gate.set()
            await settle()

            assert runner.get_status("c1") is None
            assert list(settings.media_path.glob("*.mp3")) == []
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_jobs_are_per_call(self, settings, clock) -> None:
        runner = MediaJobRunner(FakeFetcher(settings.media_path), settings, clock=clock)
        try:
            runner.start_job("c1", "jazz")
            runner.start_job("c2", "blues")
            await settle()

            assert runner.get_status("c1").query == "jazz"
            assert runner.get_status("c2").query == "blues"
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_scheduled_deletion(self, settings, clock) -> None:
        runner = MediaJobRunner(FakeFetcher(settings.media_path), settings, clock=clock)
        path = settings.media_path / "expiring.mp3"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x")
        try:
            runner.schedule_deletion(path, delay=0)
            await settle()
            assert not path.exists()
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_close_removes_pending_files(self, settings, clock) -> None:
        runner = MediaJobRunner(FakeFetcher(settings.media_path), settings, clock=clock)
        runner.start_job("c1", "jazz")
        await settle()
        path = runner.get_status("c1").result.path

        await runner.close()

        assert not path.exists()
        assert runner.get_status("c1") is None


class TestDeleteMediaFile:
    """Tests for delete_media_file."""

    def test_deletes(self, tmp_path) -> None:
        path = tmp_path / "a.mp3"
        path.write_bytes(b"x")
        assert delete_media_file(path) is True
        assert not path.exists()

    def test_missing_is_fine(self, tmp_path) -> None:
        assert delete_media_file(tmp_path / "gone.mp3") is False
