"""Tests for playback position tracking and resume slices."""

from __future__ import annotations

from pathlib import Path

import pytest

from dialtune.core.exceptions import ResliceFailed
from dialtune.core.playback import PlaybackTracker
from dialtune.core.session import CallSession, Track
from dialtune.services.media.exceptions import MediaTrimError
from tests.fakes import FakeTrimmer


@pytest.fixture
def scheduled() -> list[Path]:
    return []


@pytest.fixture
def trimmer(settings) -> FakeTrimmer:
    return FakeTrimmer(settings.media_path)


@pytest.fixture
def tracker(settings, trimmer, scheduled) -> PlaybackTracker:
    return PlaybackTracker(trimmer, scheduled.append, settings)


@pytest.fixture
def playing(tracker, settings) -> CallSession:
    """Session playing a track since t=100."""
    source = settings.media_path / "source.mp3"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_bytes(b"\0" * 40_000)
    session = CallSession(call_id="c1")
    track = Track(
        title="So What",
        url="https://ivr.example.test/media/source.mp3",
        source_file=source,
    )
    tracker.start(session, track, now=100.0)
    return session


class TestPlaybackTracker:
    """Tests for PlaybackTracker."""

    def test_start_resets_position(self, tracker, playing) -> None:
        assert playing.play_started_at == 100.0
        assert playing.accumulated_play_seconds == 0.0
        assert playing.playing_url == playing.current_track.url

    def test_start_extends_source_expiry(self, scheduled, playing) -> None:
        assert scheduled == [playing.current_track.source_file]

    def test_mark_pause_accumulates(self, tracker, playing) -> None:
        assert tracker.mark_pause(playing, now=130.0) == 30.0
        assert playing.play_started_at is None

    def test_mark_pause_twice_does_not_double_count(self, tracker, playing) -> None:
        tracker.mark_pause(playing, now=130.0)
        assert tracker.mark_pause(playing, now=500.0) == 30.0

    def test_clock_going_backwards_adds_nothing(self, tracker, playing) -> None:
        assert tracker.mark_pause(playing, now=90.0) == 0.0

    @pytest.mark.asyncio
    async def test_prepare_resume(self, tracker, trimmer, scheduled, playing) -> None:
        tracker.mark_pause(playing, now=145.0)

        url = await tracker.prepare_resume(playing, now=200.0)

        assert trimmer.calls == [(playing.current_track.source_file, 45.0)]
        assert url.startswith("https://ivr.example.test/media/")
        assert url != playing.current_track.url
        assert playing.playing_url == url
        assert playing.play_started_at == 200.0
        assert playing.accumulated_play_seconds == 45.0

        source = playing.current_track.source_file
        assert scheduled[:2] == [source, source]
        assert len(scheduled) == 3
        assert scheduled[2].name == url.rsplit("/", 1)[-1]
        assert scheduled[2].exists()

    @pytest.mark.asyncio
    async def test_each_resume_gets_new_file(self, tracker, trimmer, playing) -> None:
        tracker.mark_pause(playing, now=110.0)
        first = await tracker.prepare_resume(playing, now=120.0)
        tracker.mark_pause(playing, now=130.0)
        second = await tracker.prepare_resume(playing, now=140.0)

        assert first != second
        assert [offset for _, offset in trimmer.calls] == [10.0, 20.0]

    @pytest.mark.asyncio
    async def test_pauses_accumulate_across_resumes(self, tracker, trimmer, playing) -> None:
        """Pauses after d1 and d2 seconds of play resume at d1 + d2."""
        tracker.mark_pause(playing, now=112.5)
        await tracker.prepare_resume(playing, now=300.0)
        tracker.mark_pause(playing, now=307.5)
        await tracker.prepare_resume(playing, now=900.0)
        tracker.mark_pause(playing, now=905.0)
        await tracker.prepare_resume(playing, now=1000.0)

        assert [offset for _, offset in trimmer.calls] == [12.5, 20.0, 25.0]
        assert playing.accumulated_play_seconds == 25.0

    @pytest.mark.asyncio
    async def test_no_track(self, tracker) -> None:
        with pytest.raises(ResliceFailed):
            await tracker.prepare_resume(CallSession(call_id="c1"), now=0.0)

    @pytest.mark.asyncio
    async def test_trim_error(self, tracker, trimmer, playing) -> None:
        trimmer.error = MediaTrimError("ffmpeg exited with code 1")
        with pytest.raises(ResliceFailed):
            await tracker.prepare_resume(playing, now=120.0)

    @pytest.mark.asyncio
    async def test_empty_slice_deleted(self, tracker, trimmer, scheduled, playing) -> None:
        trimmer.size = 0
        with pytest.raises(ResliceFailed):
            await tracker.prepare_resume(playing, now=120.0)

        source = playing.current_track.source_file
        assert scheduled == [source, source]
        produced = [p for p in playing.current_track.source_file.parent.iterdir()]
        assert produced == [playing.current_track.source_file]
