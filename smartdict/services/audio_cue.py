from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from PyQt6.QtCore import QObject, QUrl
from smartdict.services.speech import QtABCMeta, qt_enum_name

logger = logging.getLogger(__name__)


class AudioCuePlayer(ABC):
    """Plays short fixed clips (start/end chimes)."""

    @abstractmethod
    def play_clip(self, url: str, volume: float) -> None:
        """Fire-and-forget playback from the start of the clip."""

    @abstractmethod
    def stop(self) -> None:
        """Stop and rewind to the start."""

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        """Change the volume of the clip that is playing now."""

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass


def _to_qurl(url: str) -> QUrl:
    text = str(url or "")
    if "://" in text:
        return QUrl(text)
    return QUrl.fromLocalFile(text)


class QtAudioCuePlayer(QObject, AudioCuePlayer, metaclass=QtABCMeta):
    """QMediaPlayer-backed cue player (local files or http(s) URLs).

    The player and its output are kept referenced on the instance; a
    garbage-collected QMediaPlayer stops mid-clip.
    """

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        from PyQt6.QtMultimedia import QAudioOutput, QMediaPlayer

        self._output = QAudioOutput(self)
        self._player = QMediaPlayer(self)
        self._player.setAudioOutput(self._output)
        self._player.errorOccurred.connect(self._on_error)  # type: ignore

    def play_clip(self, url: str, volume: float) -> None:
        try:
            self._output.setVolume(_clamp_volume(volume))
            self._player.setSource(_to_qurl(url))
            self._player.setPosition(0)
            self._player.play()
        except (RuntimeError, TypeError, ValueError) as e:
            # Autoplay/decoder problems are not fatal to a session.
            logger.info("Audio cue playback failed: %s", e)

    def stop(self) -> None:
        try:
            self._player.stop()
            self._player.setPosition(0)
        except RuntimeError:
            pass

    def pause(self) -> None:
        try:
            if qt_enum_name(self._player.playbackState()) == "PlayingState":
                self._player.pause()
        except RuntimeError:
            pass

    def resume(self) -> None:
        try:
            if qt_enum_name(self._player.playbackState()) == "PausedState":
                self._player.play()
        except RuntimeError:
            pass

    def set_volume(self, volume: float) -> None:
        try:
            self._output.setVolume(_clamp_volume(volume))
        except RuntimeError:
            pass

    def _on_error(self, error, message: str = "") -> None:
        logger.info("Audio cue error %s: %s", error, message)


def _clamp_volume(volume: float) -> float:
    try:
        return max(0.0, min(1.0, float(volume)))
    except (TypeError, ValueError):
        return 1.0


__all__ = ["AudioCuePlayer", "QtAudioCuePlayer"]
