"""Test doubles for the call flow's backends."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from dialtune.config import Settings
from dialtune.core.call_flow import CallEvent, CallFlow
from dialtune.services.llm.protocol import Message
from dialtune.services.media.exceptions import MediaFetchError
from dialtune.services.media.protocol import FetchedMedia

ALLOWED_CALLER = "15550001111"
STRANGER = "15559990000"


class ManualClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChat:
    """Chat service returning canned answers, or raising ``error``."""

    def __init__(self, answers: list[str] | None = None, error: Exception | None = None):
        self.answers = list(answers or ["Sure thing."])
        self.error = error
        self.calls: list[tuple[list[Message], str]] = []
        self.closed = False

    async def reply(self, transcript: list[Message], user_text: str) -> str:
        self.calls.append((list(transcript), user_text))
        if self.error is not None:
            raise self.error
        if len(self.answers) > 1:
            return self.answers.pop(0)
        return self.answers[0]

    async def close(self) -> None:
        self.closed = True


class FakeFetcher:
    """Writes a file of ``size`` bytes instead of running yt-dlp.

    ``gate`` holds every fetch until it is set; ``sizes`` overrides the size
    per attempt; ``fail`` makes every attempt raise.
    """

    def __init__(
        self,
        media_dir: Path,
        *,
        title: str = "Kind of Blue",
        size: int = 32_000,
        sizes: list[int] | None = None,
        gate: asyncio.Event | None = None,
        fail: bool = False,
    ) -> None:
        self.media_dir = media_dir
        self.title = title
        self.size = size
        self.sizes = list(sizes or [])
        self.gate = gate
        self.fail = fail
        self.calls: list[tuple[str, str, bool]] = []

    async def fetch(self, query: str, stem: str, *, broad: bool = False) -> FetchedMedia:
        self.calls.append((query, stem, broad))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise MediaFetchError("no results")

        size = self.sizes.pop(0) if self.sizes else self.size
        self.media_dir.mkdir(parents=True, exist_ok=True)
        path = self.media_dir / f"{stem}.mp3"
        path.write_bytes(b"\0" * size)
        return FetchedMedia(path=path, title=self.title)


class FakeTrimmer:
    """Records trim offsets and writes a slice of ``size`` bytes."""

    def __init__(
        self,
        media_dir: Path,
        *,
        size: int = 8_192,
        error: Exception | None = None,
    ) -> None:
        self.media_dir = media_dir
        self.size = size
        self.error = error
        self.calls: list[tuple[Path, float]] = []

    async def trim(self, source: Path, offset_seconds: float, stem: str) -> Path:
        self.calls.append((source, offset_seconds))
        if self.error is not None:
            raise self.error
        self.media_dir.mkdir(parents=True, exist_ok=True)
        target = self.media_dir / f"{stem}.mp3"
        target.write_bytes(b"\0" * self.size)
        return target


async def settle(rounds: int = 20) -> None:
    """Let background tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@dataclass
class FlowKit:
    """A call flow wired to test doubles, plus handles on each double."""

    flow: CallFlow
    settings: Settings
    clock: ManualClock
    chat: FakeChat
    fetcher: FakeFetcher
    trimmer: FakeTrimmer

    def event(
        self,
        *,
        digit: str | None = None,
        speech: str | None = None,
        call_id: str = "call-1",
        caller: str = ALLOWED_CALLER,
    ) -> CallEvent:
        return CallEvent(call_id=call_id, caller=caller, digit=digit, speech=speech)


def build_kit(settings: Settings, **fetcher_options) -> FlowKit:
    clock = ManualClock()
    chat = FakeChat()
    fetcher = FakeFetcher(settings.media_path, **fetcher_options)
    trimmer = FakeTrimmer(settings.media_path)
    flow = CallFlow.build(settings, chat=chat, fetcher=fetcher, trimmer=trimmer, clock=clock)
    return FlowKit(
        flow=flow,
        settings=settings,
        clock=clock,
        chat=chat,
        fetcher=fetcher,
        trimmer=trimmer,
    )
