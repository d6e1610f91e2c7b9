"""Speech provider contract.

The sequencer only talks to speech through this narrow interface:

- `speak(request, on_complete)` submits one utterance. `on_complete` is
  called exactly once when the utterance ends, fails or is cancelled. The
  three outcomes look the same to the caller.
- `pause()`, `resume()`, `cancel_all()` are synchronous and idempotent.
- `voices()` enumerates the current voice catalog. It may be empty at first
  and fill in later; callers query it per request.
"""

from __future__ import annotations

import logging
from abc import ABC, ABCMeta, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from PyQt6.QtCore import QObject

logger = logging.getLogger(__name__)

CompletionFn = Callable[[], None]


@dataclass(frozen=True)
class Voice:
    name: str
    locale: str


@dataclass(frozen=True)
class SpeechRequest:
    text: str
    language_tag: str
    rate: float = 1.0
    volume: float = 1.0


def qt_enum_name(value) -> str:
    """`QTextToSpeech.State.Ready` -> "Ready"; plain strings pass through."""
    return str(getattr(value, "name", value))


class QtABCMeta(ABCMeta, type(QObject)):
    """Lets QObject subclasses also implement an ABC contract."""

    pass


class SpeechProvider(ABC):
    @abstractmethod
    def speak(self, request: SpeechRequest, on_complete: CompletionFn) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def resume(self) -> None:
        ...

    @abstractmethod
    def cancel_all(self) -> None:
        ...

    def voices(self) -> list[Voice]:
        return []


class CompletionOnce:
    """Callable wrapper that forwards to `fn` at most once and never raises."""

    def __init__(self, fn: Optional[CompletionFn]) -> None:
        self._fn = fn
        self._called = False

    @property
    def called(self) -> bool:
        return self._called

    def __call__(self) -> None:
        if self._called:
            return
        self._called = True
        if self._fn is None:
            return
        try:
            self._fn()
        except Exception:
            # Completion hooks belong to the caller; keep the engine alive.
            logger.exception("Speech completion callback failed")


class SilentSpeechProvider(SpeechProvider):
    """Completes every request immediately without producing audio.

    Used in test mode and as the last-resort fallback when no engine exists.
    """

    def __init__(self) -> None:
        self.requests: list[SpeechRequest] = []

    def speak(self, request: SpeechRequest, on_complete: CompletionFn) -> None:
        self.requests.append(request)
        print("[TTS] (silent) {}".format(request.text))
        CompletionOnce(on_complete)()

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

    def cancel_all(self) -> None:
        pass


__all__ = [
    "CompletionFn",
    "CompletionOnce",
    "QtABCMeta",
    "qt_enum_name",
    "SilentSpeechProvider",
    "SpeechProvider",
    "SpeechRequest",
    "Voice",
]
