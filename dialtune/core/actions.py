"""Reply primitives produced by the call flow.

The state machine only decides *what* the caller hears next; turning these
into the provider's markup is the renderer's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from dialtune.core.conversation_state import CallState

InputKind = Literal["dtmf", "speech", "dtmf speech"]


@dataclass(frozen=True, slots=True)
class Speak:
    text: str


@dataclass(frozen=True, slots=True)
class Play:
    url: str


@dataclass(frozen=True, slots=True)
class Wait:
    seconds: int


@dataclass(frozen=True, slots=True)
class Redirect:
    target: CallState


@dataclass(frozen=True, slots=True)
class Hangup:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class Collect:
    """Collect the next input, playing ``prompts`` while listening."""

    target: CallState
    kind: InputKind = "dtmf speech"
    num_digits: int = 1
    timeout: int = 5
    prompts: tuple[Speak | Play, ...] = ()


Action = Speak | Play | Wait | Redirect | Hangup | Collect


@dataclass(slots=True)
class Reply:
    """Next document for the caller plus the state the call is now in."""

    state: CallState
    actions: list[Action] = field(default_factory=list)

    @property
    def spoken(self) -> list[str]:
        """All spoken text, including prompts nested in collects."""
        texts: list[str] = []
        for action in self.actions:
            if isinstance(action, Speak):
                texts.append(action.text)
            elif isinstance(action, Collect):
                texts.extend(p.text for p in action.prompts if isinstance(p, Speak))
        return texts

    @property
    def played(self) -> list[str]:
        """All media URLs the document plays."""
        urls: list[str] = []
        for action in self.actions:
            if isinstance(action, Play):
                urls.append(action.url)
            elif isinstance(action, Collect):
                urls.extend(p.url for p in action.prompts if isinstance(p, Play))
        return urls

    @property
    def redirect(self) -> CallState | None:
        for action in self.actions:
            if isinstance(action, Redirect):
                return action.target
        return None

    @property
    def is_hangup(self) -> bool:
        return any(isinstance(action, Hangup) for action in self.actions)
