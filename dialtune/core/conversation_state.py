"""Call states, modes and keypad assignments for the IVR flow."""

from __future__ import annotations

from enum import Enum


class CallState(str, Enum):
    """Where a call is in the IVR flow.

    Each value doubles as the webhook route segment the telephony provider
    posts the next event to, so the route an event arrives on tells the
    state machine which state produced it.
    """

    IDLE = "idle"  # Call start
    MAIN_MENU = "main_menu"  # Greeting, then voice chat
    CHAT = "chat"  # Voice chat with the AI
    TEXT_ENTRY = "text_entry"  # Keypad chat with the AI
    MUSIC_MENU = "music_menu"  # "What song do you want to hear?"
    MUSIC_SEARCH = "music_search"  # Query or history navigation
    MUSIC_WAITING = "music_waiting"  # Polling a media job
    MUSIC_PLAYING = "music_playing"
    MUSIC_PAUSED = "music_paused"


class Mode(str, Enum):
    """Which sub-flow interprets the caller's next input."""

    IDLE = "idle"
    VOICE_CHAT = "voice_chat"
    TEXT_ENTRY = "text_entry"
    MUSIC = "music"


# Keypad
RESET_KEY = "0"
ENTER_MUSIC_KEY = "#"
TEXT_MODE_KEY = "*"  # From chat; also the letter separator inside text entry
SEND_KEY = "1"  # Text entry
PAUSE_KEY = "1"  # Playing
RESUME_KEY = "1"  # Paused
PREVIOUS_KEY = "4"
REPLAY_KEY = "5"
NEXT_KEY = "6"

HISTORY_STEPS: dict[str, int] = {
    PREVIOUS_KEY: -1,
    REPLAY_KEY: 0,
    NEXT_KEY: 1,
}
