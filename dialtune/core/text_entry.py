"""Multi-tap (T9-style) keypad text decoding.

Pressing a key repeatedly cycles through its letters; switching to another
key or pressing the separator closes the current letter. A separator with no
open letter inserts a space.
"""

from __future__ import annotations

from collections.abc import Iterable

KEY_LETTERS: dict[str, str] = {
    "2": "abc",
    "3": "def",
    "4": "ghi",
    "5": "jkl",
    "6": "mno",
    "7": "pqrs",
    "8": "tuv",
    "9": "wxyz",
}

SEPARATOR_KEY = "*"
TEXT_KEYS = frozenset(KEY_LETTERS) | {SEPARATOR_KEY}


def decode_multitap(keys: Iterable[str]) -> str:
    """Decode a sequence of key presses into text.

    >>> decode_multitap("44*444")
    'hi'
    >>> decode_multitap("2**3")
    'a d'
    """
    out: list[str] = []
    current: str | None = None
    count = 0

    def close_group() -> None:
        nonlocal current, count
        if current is not None:
            letters = KEY_LETTERS[current]
            out.append(letters[(count - 1) % len(letters)])
        current = None
        count = 0

    for key in keys:
        if key == SEPARATOR_KEY:
            if current is None:
                out.append(" ")
            close_group()
        elif key in KEY_LETTERS:
            if key != current:
                close_group()
                current = key
            count += 1
        # Anything else carries no letter

    close_group()
    return "".join(out)
