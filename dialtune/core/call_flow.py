"""Call state machine.

Every webhook from the telephony provider arrives as ``(state, event)``: the
state is implied by the route it was posted to, the event carries the call id,
caller, and at most one of a pressed key or recognized speech. ``CallFlow``
maps that pair onto the next ``Reply`` using one transition table, and never
lets an exception escape: whatever goes wrong, the caller gets a document
with a next action.

Media acquisition never blocks a webhook. A search starts a background job
and the reply tells the provider to wait a moment and post to
``music_waiting`` again, until the job finishes or the wait budget runs out.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from dialtune.config import Settings, get_settings, normalize_caller
from dialtune.core.actions import Action, Collect, Hangup, Play, Redirect, Reply, Speak, Wait
from dialtune.core.conversation_state import (
    ENTER_MUSIC_KEY,
    HISTORY_STEPS,
    PAUSE_KEY,
    RESET_KEY,
    RESUME_KEY,
    SEND_KEY,
    TEXT_MODE_KEY,
    CallState,
    Mode,
)
from dialtune.core.exceptions import (
    MalformedEvent,
    MediaJobFailed,
    MediaJobTimeout,
    ResliceFailed,
    Unauthorized,
)
from dialtune.core.playback import PlaybackTracker
from dialtune.core.session import CallSession, Track, normalize_for_speech
from dialtune.core.session_store import SessionStore
from dialtune.core.text_entry import TEXT_KEYS, decode_multitap
from dialtune.logging_config import get_logger, mask_phone
from dialtune.observability.metrics import record_call_start, record_flow_error
from dialtune.services.llm.exceptions import LLMServiceError
from dialtune.services.llm.groq import GroqChatService
from dialtune.services.llm.protocol import ChatService
from dialtune.services.media.backends import FfmpegTrimmer, YtDlpFetcher
from dialtune.services.media.jobs import JobStatus, MediaJobRunner
from dialtune.services.media.protocol import MediaFetcher, MediaTrimmer

logger: Any = get_logger(__name__)

GREETING = "Connected. Ask me anything, press star to type, or press pound for music."
MAIN_MENU_PROMPT = "Main menu. Ask me anything, press star to type, or press pound for music."
TEXT_MODE_INTRO = "Text mode. Type with the keypad, press star between letters, and press 1 to send."
TEXT_NOTHING_TYPED = "Nothing typed yet. Press star between letters and 1 to send."
MUSIC_PROMPT = "What song do you want to hear?"
SAY_A_SONG = "Say a song name."
NO_HISTORY = "History empty. Say a song name."
FIRST_SONG = "First song."
LAST_SONG = "Last song."
PLEASE_WAIT = "Please wait."
PAUSED_PROMPT = "Paused. Press 1 to resume, or 0 for the main menu."
AI_APOLOGY = "Sorry, the assistant is not responding right now. Please try again."
DOWNLOAD_FAILED = "Download failed. Try another song."
SEARCH_TIMED_OUT = "That is taking too long. Try another song."
RESUME_FAILED = "Sorry, I couldn't resume that song."
TRACK_GONE = "That song is no longer available. Say another song name."
DID_NOT_GET_THAT = "Sorry, I didn't get that."
GENERIC_APOLOGY = "Sorry, something went wrong. Returning to the main menu."

TEXT_INPUT_TIMEOUT = 10
PAUSED_INPUT_TIMEOUT = 30

Handler = Callable[[CallSession, "CallEvent"], Awaitable[Reply]]


@dataclass(frozen=True, slots=True)
class CallEvent:
    """One inbound telephony event."""

    call_id: str
    caller: str = ""
    digit: str | None = None
    speech: str | None = None


class CallFlow:
    """Maps (state, event) onto the next reply."""

    def __init__(
        self,
        *,
        sessions: SessionStore,
        jobs: MediaJobRunner,
        tracker: PlaybackTracker,
        chat: ChatService,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions = sessions
        self._jobs = jobs
        self._tracker = tracker
        self._chat = chat
        self._settings = settings or get_settings()
        self._clock = clock

        self._transitions: dict[CallState, Handler] = {
            CallState.MAIN_MENU: self._on_main_menu,
            CallState.CHAT: self._on_chat,
            CallState.TEXT_ENTRY: self._on_text_entry,
            CallState.MUSIC_MENU: self._on_music_menu,
            CallState.MUSIC_SEARCH: self._on_music_search,
            CallState.MUSIC_WAITING: self._on_music_waiting,
            CallState.MUSIC_PLAYING: self._on_music_playing,
            CallState.MUSIC_PAUSED: self._on_music_paused,
        }

    @classmethod
    def build(
        cls,
        settings: Settings | None = None,
        *,
        chat: ChatService | None = None,
        fetcher: MediaFetcher | None = None,
        trimmer: MediaTrimmer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> CallFlow:
        """Wire the flow to its stores and backends."""
        settings = settings or get_settings()
        jobs = MediaJobRunner(fetcher or YtDlpFetcher(settings), settings, clock=clock)
        tracker = PlaybackTracker(
            trimmer or FfmpegTrimmer(settings),
            jobs.schedule_deletion,
            settings,
        )
        return cls(
            sessions=SessionStore(clock=clock),
            jobs=jobs,
            tracker=tracker,
            chat=chat or GroqChatService(settings),
            settings=settings,
            clock=clock,
        )

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def jobs(self) -> MediaJobRunner:
        return self._jobs

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle(self, state: CallState, event: CallEvent) -> Reply:
        """Compute the reply for ``event`` arriving on ``state``'s route."""
        logger.debug(
            f"{state.value} <- call {event.call_id or '?'} "
            f"digit={event.digit!r} speech={event.speech!r}"
        )
        try:
            return await self._dispatch(state, event)

        except Unauthorized:
            return Reply(CallState.IDLE, [Hangup(reason="rejected")])

        except MalformedEvent as e:
            logger.warning(f"Malformed event on {state.value}: {e}")
            record_flow_error("malformed_event")
            return self._main_menu_reply([Speak(DID_NOT_GET_THAT)])

        except MediaJobTimeout as e:
            logger.warning(f"Media job timed out for call {event.call_id}: {e}")
            record_flow_error("media_job_timeout")
            return self._music_menu_reply([Speak(SEARCH_TIMED_OUT)])

        except MediaJobFailed as e:
            logger.warning(f"Media job failed for call {event.call_id}: {e}")
            record_flow_error("media_job_failed")
            return self._music_menu_reply([Speak(DOWNLOAD_FAILED)])

        except ResliceFailed as e:
            logger.warning(f"Resume failed for call {event.call_id}: {e}")
            record_flow_error("reslice_failed")
            return self._music_menu_reply([Speak(RESUME_FAILED)])

        except Exception as e:
            logger.exception(f"Unhandled error on {state.value} for call {event.call_id}: {e}")
            record_flow_error("unhandled")
            return Reply(
                CallState.MAIN_MENU,
                [Speak(GENERIC_APOLOGY), Redirect(CallState.MAIN_MENU)],
            )

    async def end_call(self, call_id: str) -> None:
        """Forget everything about a call that hung up."""
        self._jobs.discard(call_id)
        await self._sessions.remove(call_id)

    async def close(self) -> None:
        await self._jobs.close()
        await self._chat.close()
        await self._sessions.clear()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, state: CallState, event: CallEvent) -> Reply:
        if not event.call_id:
            raise MalformedEvent("missing call id")

        if not self._settings.is_allowed_caller(event.caller):
            if state is CallState.IDLE:
                record_call_start("rejected")
            logger.warning(
                f"Rejected call {event.call_id} from "
                f"{mask_phone(normalize_caller(event.caller))}"
            )
            raise Unauthorized(event.call_id)

        if state is CallState.IDLE:
            return await self._start_call(event)

        session = await self._sessions.get_or_create(event.call_id)

        # Global escape hatch, ahead of any mode-specific handling
        if event.digit == RESET_KEY:
            return self._reset(session)

        return await self._transitions[state](session, event)

    async def _start_call(self, event: CallEvent) -> Reply:
        await self._forget_idle_calls()
        self._jobs.discard(event.call_id)
        await self._sessions.reset(event.call_id, caller=normalize_caller(event.caller))
        record_call_start("accepted")
        logger.info(f"Call {event.call_id} connected")
        return self._main_menu_reply([], prompt=GREETING)

    async def _forget_idle_calls(self) -> None:
        # Calls whose hangup webhook never arrived
        for call_id in await self._sessions.prune_idle(self._settings.session_idle_seconds):
            self._jobs.discard(call_id)

    def _reset(self, session: CallSession) -> Reply:
        self._jobs.discard(session.call_id)
        session.clear_transient()
        session.mode = Mode.IDLE
        logger.info(f"Call {session.call_id} reset to main menu")
        return self._main_menu_reply([])

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def _on_main_menu(self, session: CallSession, event: CallEvent) -> Reply:
        if event.digit or event.speech:
            return await self._on_chat(session, event)
        session.mode = Mode.IDLE
        return self._main_menu_reply([])

    async def _on_chat(self, session: CallSession, event: CallEvent) -> Reply:
        session.mode = Mode.VOICE_CHAT

        if event.digit == ENTER_MUSIC_KEY:
            return self._enter_music(session)
        if event.digit == TEXT_MODE_KEY:
            return self._enter_text_entry(session)

        text = (event.speech or "").strip()
        if not text:
            return self._chat_reply([])

        return await self._converse(session, text, self._chat_reply)

    async def _on_text_entry(self, session: CallSession, event: CallEvent) -> Reply:
        session.mode = Mode.TEXT_ENTRY
        digit = event.digit

        if digit == ENTER_MUSIC_KEY:
            return self._enter_music(session)

        if digit == SEND_KEY:
            text = decode_multitap(session.pending_input).strip()
            session.pending_input.clear()
            if not text:
                return self._text_reply([Speak(TEXT_NOTHING_TYPED)])
            return await self._converse(session, text, self._text_reply)

        if digit and all(key in TEXT_KEYS for key in digit):
            session.pending_input.extend(digit)
            return self._text_reply([])

        typed = decode_multitap(session.pending_input).strip()
        if typed:
            return self._text_reply([Speak(f"You typed: {typed}. Press 1 to send.")])
        return self._text_reply([Speak(TEXT_MODE_INTRO)])

    async def _converse(
        self,
        session: CallSession,
        text: str,
        reprompt: Callable[[list[Action]], Reply],
    ) -> Reply:
        try:
            answer = await self._chat.reply(list(session.transcript), text)
        except LLMServiceError as e:
            logger.warning(f"AI backend unavailable for call {session.call_id}: {e}")
            record_flow_error("ai_unavailable")
            return reprompt([Speak(AI_APOLOGY)])

        spoken = normalize_for_speech(answer)
        session.add_user_message(text)
        session.add_assistant_message(spoken)
        return reprompt([Speak(spoken)])

    def _enter_text_entry(self, session: CallSession) -> Reply:
        session.mode = Mode.TEXT_ENTRY
        session.pending_input.clear()
        return self._text_reply([Speak(TEXT_MODE_INTRO)])

    # ------------------------------------------------------------------
    # Music
    # ------------------------------------------------------------------

    def _enter_music(self, session: CallSession) -> Reply:
        session.mode = Mode.MUSIC
        session.pending_input.clear()
        return self._music_menu_reply([])

    async def _on_music_menu(self, session: CallSession, event: CallEvent) -> Reply:
        if event.digit or event.speech:
            return await self._on_music_search(session, event)
        session.mode = Mode.MUSIC
        return self._music_menu_reply([])

    async def _on_music_search(self, session: CallSession, event: CallEvent) -> Reply:
        session.mode = Mode.MUSIC

        if event.digit in HISTORY_STEPS:
            return self._navigate(session, HISTORY_STEPS[event.digit])

        query = (event.speech or "").strip()
        if not query:
            return self._music_menu_reply([Speak(SAY_A_SONG)])

        self._jobs.start_job(session.call_id, query)
        session.pending_query = query
        return self._waiting_reply(f"Searching for {query}. {PLEASE_WAIT}")

    async def _on_music_waiting(self, session: CallSession, event: CallEvent) -> Reply:
        session.mode = Mode.MUSIC
        job = self._jobs.get_status(session.call_id)

        if job is None:
            session.pending_query = None
            raise MediaJobFailed("no media job for this call")

        if job.status is JobStatus.DONE and job.result is not None:
            session.pending_query = None
            track = Track(
                title=job.result.title,
                url=job.result.url,
                source_file=job.result.path,
            )
            # A repeated poll for the same finished job replays, never re-appends
            if session.play_history and session.play_history[-1].url == track.url:
                session.history_cursor = len(session.play_history) - 1
            else:
                session.append_track(track)
            return self._play(session, track, [])

        if job.status is JobStatus.ERROR:
            self._jobs.discard(session.call_id)
            session.pending_query = None
            raise MediaJobFailed(job.error or "unknown error")

        elapsed = job.elapsed(self._clock())
        if elapsed > self._settings.wait_budget_seconds:
            self._jobs.discard(session.call_id)
            session.pending_query = None
            raise MediaJobTimeout(f"still pending after {elapsed:.0f}s")

        return self._waiting_reply(PLEASE_WAIT)

    async def _on_music_playing(self, session: CallSession, event: CallEvent) -> Reply:
        session.mode = Mode.MUSIC
        digit = event.digit
        now = self._clock()

        if not digit:
            # Track ran out without a key press
            session.play_started_at = None
            return self._music_menu_reply([])

        if digit == PAUSE_KEY:
            offset = self._tracker.mark_pause(session, now)
            logger.debug(f"Call {session.call_id} paused at {offset:.1f}s")
            return self._paused_reply()

        if digit in HISTORY_STEPS:
            return self._navigate(session, HISTORY_STEPS[digit])

        if digit == TEXT_MODE_KEY:
            session.clear_transient()
            return self._music_menu_reply([])

        # Any other key stopped the audio; carry on from where it was
        self._tracker.mark_pause(session, now)
        return await self._resume(session, now)

    async def _on_music_paused(self, session: CallSession, event: CallEvent) -> Reply:
        session.mode = Mode.MUSIC
        if event.digit == RESUME_KEY:
            return await self._resume(session, self._clock())
        return self._paused_reply()

    def _navigate(self, session: CallSession, step: int) -> Reply:
        track, clamped = session.step_history(step)
        if track is None:
            return self._music_menu_reply([Speak(NO_HISTORY)])

        if not track.source_file.exists():
            logger.info(f"Call {session.call_id}: {track.source_file.name} has expired")
            return self._music_menu_reply([Speak(TRACK_GONE)])

        notes: list[Action] = []
        if clamped:
            notes.append(Speak(FIRST_SONG if step < 0 else LAST_SONG))
        return self._play(session, track, notes)

    def _play(self, session: CallSession, track: Track, notes: list[Action]) -> Reply:
        self._tracker.start(session, track, self._clock())
        return self._playing_reply(track.url, [*notes, Speak(f"Playing {track.title}.")])

    async def _resume(self, session: CallSession, now: float) -> Reply:
        try:
            url = await self._tracker.prepare_resume(session, now)
        except ResliceFailed:
            session.current_track = None
            session.playing_url = None
            session.play_started_at = None
            session.accumulated_play_seconds = 0.0
            raise
        return self._playing_reply(url, [])

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _main_menu_reply(self, notes: list[Action], *, prompt: str = MAIN_MENU_PROMPT) -> Reply:
        return Reply(
            CallState.MAIN_MENU,
            [
                *notes,
                Collect(
                    target=CallState.CHAT,
                    kind="dtmf speech",
                    timeout=self._settings.input_timeout_seconds,
                    prompts=(Speak(prompt),),
                ),
                Redirect(CallState.CHAT),
            ],
        )

    def _chat_reply(self, notes: list[Action]) -> Reply:
        return Reply(
            CallState.CHAT,
            [
                *notes,
                Collect(
                    target=CallState.CHAT,
                    kind="dtmf speech",
                    timeout=self._settings.input_timeout_seconds,
                ),
                Redirect(CallState.CHAT),
            ],
        )

    def _text_reply(self, notes: list[Action]) -> Reply:
        return Reply(
            CallState.TEXT_ENTRY,
            [
                *notes,
                Collect(target=CallState.TEXT_ENTRY, kind="dtmf", timeout=TEXT_INPUT_TIMEOUT),
                Redirect(CallState.TEXT_ENTRY),
            ],
        )

    def _music_menu_reply(self, notes: list[Action]) -> Reply:
        return Reply(
            CallState.MUSIC_MENU,
            [
                *notes,
                Collect(
                    target=CallState.MUSIC_SEARCH,
                    kind="dtmf speech",
                    timeout=self._settings.input_timeout_seconds,
                    prompts=(Speak(MUSIC_PROMPT),),
                ),
                Redirect(CallState.MUSIC_SEARCH),
            ],
        )

    def _waiting_reply(self, text: str) -> Reply:
        return Reply(
            CallState.MUSIC_WAITING,
            [
                Speak(text),
                Wait(self._settings.poll_interval_seconds),
                Redirect(CallState.MUSIC_WAITING),
            ],
        )

    def _playing_reply(self, url: str, notes: list[Action]) -> Reply:
        return Reply(
            CallState.MUSIC_PLAYING,
            [
                *notes,
                Collect(
                    target=CallState.MUSIC_PLAYING,
                    kind="dtmf",
                    timeout=self._settings.input_timeout_seconds,
                    prompts=(Play(url),),
                ),
                Redirect(CallState.MUSIC_MENU),
            ],
        )

    def _paused_reply(self) -> Reply:
        return Reply(
            CallState.MUSIC_PAUSED,
            [
                Collect(
                    target=CallState.MUSIC_PAUSED,
                    kind="dtmf",
                    timeout=PAUSED_INPUT_TIMEOUT,
                    prompts=(Speak(PAUSED_PROMPT),),
                ),
                Redirect(CallState.MUSIC_PAUSED),
            ],
        )
