from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional

from smartdict.domain.enums import Language, Mode, PlaybackStatus


MIN_VOLUME = 0.0
MAX_VOLUME = 1.0
MIN_RATE = 0.1
MAX_RATE = 1.5


@dataclass(frozen=True)
class DictationItem:
    """One word or passage chunk.

    `text` is what the learner sees; `spoken_text` (if set) is what gets
    synthesized instead, e.g. "comma" for ",".
    """

    id: str
    text: str
    spoken_text: Optional[str] = None

    def speech_text(self) -> str:
        return self.spoken_text or self.text or ""


@dataclass(frozen=True)
class SessionConfig:
    """Immutable parameters for one dictation run."""

    items: tuple[DictationItem, ...]
    language: Language = Language.ENGLISH
    mode: Mode = Mode.VOCABULARY

    @classmethod
    def from_items(
        cls,
        items: Iterable[DictationItem],
        language: Language = Language.ENGLISH,
        mode: Mode = Mode.VOCABULARY,
    ) -> "SessionConfig":
        return cls(items=tuple(items), language=language, mode=mode)

    @classmethod
    def from_texts(
        cls,
        texts: Iterable[str],
        language: Language = Language.ENGLISH,
        mode: Mode = Mode.VOCABULARY,
    ) -> "SessionConfig":
        items = [DictationItem(id=str(i), text=str(t)) for i, t in enumerate(texts)]
        return cls.from_items(items, language=language, mode=mode)


@dataclass(frozen=True)
class PlaybackSettings:
    """Operator-adjustable volume/rate. Values are clamped to safe ranges."""

    volume: float = 1.0
    rate: float = 0.7

    def normalised(self) -> "PlaybackSettings":
        try:
            v = float(self.volume)
        except (TypeError, ValueError):
            v = 1.0
        try:
            r = float(self.rate)
        except (TypeError, ValueError):
            r = 1.0
        v = max(MIN_VOLUME, min(MAX_VOLUME, v))
        r = max(MIN_RATE, min(MAX_RATE, r))
        return PlaybackSettings(volume=round(v, 2), rate=round(r, 2))

    @staticmethod
    def default_for(mode: Mode) -> "PlaybackSettings":
        return PlaybackSettings(volume=1.0, rate=0.7 if mode == Mode.VOCABULARY else 0.6)


@dataclass(frozen=True)
class SequencerState:
    """Snapshot handed to observers on every change."""

    status: PlaybackStatus = PlaybackStatus.IDLE
    current_index: int = -1
    is_reviewing: bool = False
    current_repeat: int = 0
    instruction_text: str = "Get Ready..."

    def with_changes(self, **changes) -> "SequencerState":
        return replace(self, **changes)


@dataclass(frozen=True)
class HistoryRecord:
    language: Language
    mode: Mode
    item_count: int
    elapsed_seconds: int


@dataclass(frozen=True)
class HistoryEntry:
    """Stored form of a HistoryRecord (one row in history.yaml)."""

    id: str
    date: int
    language: Language
    mode: Mode
    item_count: int
    duration_played: int
