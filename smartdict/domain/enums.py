from __future__ import annotations

from enum import Enum


class Language(Enum):
    CHINESE = "CHINESE"
    ENGLISH = "ENGLISH"


class Mode(Enum):
    VOCABULARY = "VOCABULARY"
    PASSAGE = "PASSAGE"


class PlaybackStatus(Enum):
    IDLE = "IDLE"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"


def parse_enum(enum_cls, value, default=None):
    """Best-effort lookup by value or name (case-insensitive).

    Returns `default` when nothing matches.
    """
    if isinstance(value, enum_cls):
        return value
    text = str(value or "").strip().upper()
    for member in enum_cls:
        if member.value.upper() == text or member.name == text:
            return member
    return default
