#!/usr/bin/env python3
"""Interactive CLI to walk through the IVR call flow.

This simulates a phone call without needing Plivo: type a line of keypad
characters (0-9, *, #) to press keys, or anything else to "say" it. Uses the
real Groq and yt-dlp/ffmpeg backends configured in .env.
"""

import asyncio
import re
import uuid

from dialtune.config import get_settings
from dialtune.core.actions import Collect, Hangup, Reply, Wait
from dialtune.core.call_flow import CallEvent, CallFlow
from dialtune.core.conversation_state import CallState

KEYPAD_RE = re.compile(r"^[0-9*#]$")


def show(reply: Reply) -> None:
    """Print what the caller would hear."""
    for text in reply.spoken:
        print(f"🤖 Bot: {text}")
    for url in reply.played:
        print(f"🎵 Playing: {url}")
    print(f"  📊 State: {reply.state.value}")


def next_step(reply: Reply) -> tuple[CallState | None, bool, int]:
    """Where the provider would post next, whether it waits for input, and any pause."""
    pause = 0
    for action in reply.actions:
        if isinstance(action, Hangup):
            return None, False, 0
        if isinstance(action, Wait):
            pause += action.seconds
        if isinstance(action, Collect):
            return action.target, True, pause
    return reply.redirect, False, pause


async def main():
    settings = get_settings()
    callers = sorted(settings.allowed_caller_set)
    if not callers:
        print("❌ ALLOWED_CALLERS is empty; add your number to .env first.")
        return

    flow = CallFlow.build(settings)
    call_id = uuid.uuid4().hex
    caller = callers[0]

    print("=" * 60)
    print("📞  Dialtune IVR - Test CLI")
    print("=" * 60)
    print("\nKeys: 0 main menu, # music, * type, 1 send/pause/resume, 4/5/6 prev/replay/next")
    print("Commands: /quit (hang up)\n")

    try:
        reply = await flow.handle(CallState.IDLE, CallEvent(call_id=call_id, caller=caller))
        while True:
            show(reply)
            state, wants_input, pause = next_step(reply)
            if state is None:
                print("\n📴 Call ended")
                break

            if not wants_input:
                await asyncio.sleep(pause)
                reply = await flow.handle(state, CallEvent(call_id=call_id, caller=caller))
                continue

            user_input = input("👤 You: ").strip()
            if user_input.lower() == "/quit":
                print("\n👋 Goodbye!")
                break

            if KEYPAD_RE.match(user_input):
                event = CallEvent(call_id=call_id, caller=caller, digit=user_input)
            else:
                event = CallEvent(call_id=call_id, caller=caller, speech=user_input or None)
            reply = await flow.handle(state, event)
            print()

    finally:
        await flow.end_call(call_id)
        await flow.close()


if __name__ == "__main__":
    asyncio.run(main())
