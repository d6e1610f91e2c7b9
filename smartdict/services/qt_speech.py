from __future__ import annotations

import logging
from typing import Any, Optional

from PyQt6.QtCore import QLocale, QObject, QTimer

from smartdict.domain.language_profiles import profile_for_tag
from smartdict.services.speech import (
    CompletionFn,
    CompletionOnce,
    QtABCMeta,
    SpeechProvider,
    SpeechRequest,
    Voice,
    qt_enum_name,
)
from smartdict.services.voice_selection import select_voice

logger = logging.getLogger(__name__)


def rate_to_qt(rate: float) -> float:
    """Map a browser-style rate (1.0 = normal, 0.1..1.5) onto Qt's -1..1."""
    try:
        r = float(rate) - 1.0
    except (TypeError, ValueError):
        r = 0.0
    return max(-1.0, min(1.0, round(r, 2)))


class QtSpeechProvider(QObject, SpeechProvider, metaclass=QtABCMeta):
    """Speech via the platform engine exposed by QtTextToSpeech.

    One utterance at a time: a new `speak()` cancels whatever is playing
    (its completion still fires). Completion is derived from `stateChanged`:
    Ready after Speaking, or Error at any point. An engine that is already in
    the Error state drops `say()` silently, so such requests complete on the
    next event-loop turn instead of waiting for a state change.

    `tts` lets callers pass an existing engine object.
    """

    def __init__(
        self,
        *,
        engine: Optional[str] = None,
        tts: Any = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        if tts is None:
            from PyQt6.QtTextToSpeech import QTextToSpeech

            tts = QTextToSpeech(engine, self) if engine else QTextToSpeech(self)
        self._tts = tts
        state_changed = getattr(tts, "stateChanged", None)
        if state_changed is not None:
            state_changed.connect(self._on_state_changed)  # type: ignore
        self._pending: Optional[CompletionOnce] = None
        self._seen_speaking: bool = False

    def engine_ready(self) -> bool:
        """False when the platform engine failed to load or lost its backend."""
        try:
            return qt_enum_name(self._tts.state()) != "Error"
        except RuntimeError:
            return False

    # ----------------------------
    # Voice catalog
    # ----------------------------

    def voices(self) -> list[Voice]:
        out: list[Voice] = []
        try:
            for qv in self._tts.availableVoices():
                out.append(Voice(name=str(qv.name()), locale=str(qv.locale().bcp47Name())))
        except (RuntimeError, AttributeError) as e:
            logger.debug("availableVoices failed: %s", e)
        return out

    def _apply_voice(self, request: SpeechRequest) -> None:
        try:
            self._tts.setLocale(QLocale(request.language_tag.replace("-", "_")))
        except (RuntimeError, TypeError) as e:
            logger.debug("setLocale(%s) failed: %s", request.language_tag, e)

        profile = profile_for_tag(request.language_tag)
        if profile is None:
            return
        picked = select_voice(self.voices(), profile)
        if picked is None:
            return
        try:
            for qv in self._tts.availableVoices():
                if str(qv.name()) == picked.name:
                    self._tts.setVoice(qv)
                    logger.debug("Using voice %s (%s)", picked.name, picked.locale)
                    return
        except (RuntimeError, TypeError) as e:
            logger.debug("setVoice failed, keeping default: %s", e)

    # ----------------------------
    # SpeechProvider
    # ----------------------------

    def speak(self, request: SpeechRequest, on_complete: CompletionFn) -> None:
        self._resolve_pending(stop_engine=True)

        done = CompletionOnce(on_complete)
        if not (request.text or "").strip():
            QTimer.singleShot(0, done)
            return
        if not self.engine_ready():
            self._log_engine_error()
            QTimer.singleShot(0, done)
            return

        self._pending = done
        self._seen_speaking = False
        try:
            self._apply_voice(request)
            self._tts.setRate(rate_to_qt(request.rate))
            self._tts.setVolume(max(0.0, min(1.0, float(request.volume))))
            self._tts.say(request.text)
        except (RuntimeError, TypeError, ValueError) as e:
            print("[TTS] say failed: {}".format(e))
            self._pending = None
            QTimer.singleShot(0, done)
            return

        # say() can fail into Error without a stateChanged of its own.
        if self._pending is done and not self.engine_ready():
            self._log_engine_error()
            self._pending = None
            QTimer.singleShot(0, done)

    def pause(self) -> None:
        try:
            if qt_enum_name(self._tts.state()) == "Speaking":
                self._tts.pause()
        except RuntimeError:
            pass

    def resume(self) -> None:
        try:
            if qt_enum_name(self._tts.state()) == "Paused":
                self._tts.resume()
        except RuntimeError:
            pass

    def cancel_all(self) -> None:
        self._resolve_pending(stop_engine=True)

    # ----------------------------
    # Internal
    # ----------------------------

    def _resolve_pending(self, *, stop_engine: bool) -> None:
        pending = self._pending
        self._pending = None
        if stop_engine:
            try:
                self._tts.stop()
            except RuntimeError:
                pass
        if pending is not None:
            pending()

    def _log_engine_error(self) -> None:
        try:
            logger.info("Speech engine error: %s", self._tts.errorString())
        except (RuntimeError, AttributeError):
            logger.info("Speech engine error")

    def _on_state_changed(self, state) -> None:
        if self._pending is None:
            return
        name = qt_enum_name(state)
        if name == "Speaking":
            self._seen_speaking = True
            return
        if name == "Error":
            self._log_engine_error()
            self._resolve_pending(stop_engine=False)
            return
        if name == "Ready" and self._seen_speaking:
            self._resolve_pending(stop_engine=False)


__all__ = ["QtSpeechProvider", "rate_to_qt"]
