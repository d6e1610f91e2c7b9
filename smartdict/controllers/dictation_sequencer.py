"""Playback sequencing for one dictation session.

The sequencer is a small state machine (IDLE -> PLAYING <-> PAUSED -> FINISHED)
driven by callback chaining: every speak/wait hands a continuation to a
collaborator, and every continuation is wrapped so that

- it does nothing once the session's CancelToken is cancelled (stop/teardown),
- it is parked while PAUSED and run on resume, so the same step continues
  instead of restarting or skipping an item,
- it re-checks that the session is still PLAYING before it touches the index.

Collaborators are injected:
  - `speech`: SpeechProvider (speak/pause/resume/cancel_all)
  - `cue_player`: AudioCuePlayer for the end chime
  - `timing`: object with `wait(ms, callback)` returning a pausable handle
  - `clock`: seconds, for the elapsed time in the history record
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from smartdict.domain.enums import Mode, PlaybackStatus
from smartdict.domain.language_profiles import (
    END_CUE_DURATION_MS,
    END_SOUND_URL,
    REVIEW_ANNOUNCE_PAUSE_MS,
    REVIEW_ITEM_PAUSE_MS,
    REVIEW_RATE,
    START_SETTLE_MS,
    LanguageProfile,
    profile_for,
)
from smartdict.domain.models import (
    HistoryRecord,
    PlaybackSettings,
    SequencerState,
    SessionConfig,
)
from smartdict.services.audio_cue import AudioCuePlayer
from smartdict.services.speech import CompletionOnce, SpeechProvider, SpeechRequest
from smartdict.services.timing import CancelToken, QtTiming

logger = logging.getLogger(__name__)

VoidFn = Callable[[], None]


class PlaybackSequencer(QObject):
    """Drives a timed read-aloud session over a fixed list of items.

    Typical flow:
        seq = PlaybackSequencer(config, speech=provider, cue_player=cue)
        seq.stateChanged.connect(render)
        seq.finished.connect(on_done)
        seq.start()

    A finished sequencer cannot be restarted; build a new one.
    """

    stateChanged = pyqtSignal(object)  # SequencerState
    settingsChanged = pyqtSignal(object)  # PlaybackSettings
    historyRecorded = pyqtSignal(object)  # HistoryRecord
    finished = pyqtSignal()

    def __init__(
        self,
        config: SessionConfig,
        *,
        speech: SpeechProvider,
        cue_player: Optional[AudioCuePlayer] = None,
        timing=None,
        settings: Optional[PlaybackSettings] = None,
        clock: Optional[Callable[[], float]] = None,
        end_sound_url: str = END_SOUND_URL,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)

        if speech is None or not callable(getattr(speech, "speak", None)):
            raise TypeError("speech must provide speak(request, on_complete)")

        self._config: SessionConfig = config
        self._profile: LanguageProfile = profile_for(config.language)
        self._speech: SpeechProvider = speech
        if cue_player is None:
            from smartdict.services.audio_cue import QtAudioCuePlayer

            cue_player = QtAudioCuePlayer(self)
        self._cue: AudioCuePlayer = cue_player
        self._timing = timing if timing is not None else QtTiming(self)
        self._clock: Callable[[], float] = clock or time.monotonic
        self._end_sound_url: str = end_sound_url

        self._settings: PlaybackSettings = (settings or PlaybackSettings.default_for(config.mode)).normalised()
        self._state: SequencerState = SequencerState()
        self._token: CancelToken = CancelToken()
        self._delay = None
        self._parked: Optional[VoidFn] = None
        self._start_time: Optional[float] = None
        self._history: Optional[HistoryRecord] = None
        self._finished_emitted: bool = False
        self._closed: bool = False

    # ----------------------------
    # Read-only views
    # ----------------------------

    @property
    def settings(self) -> PlaybackSettings:
        return self._settings

    def state(self) -> SequencerState:
        return self._state

    @property
    def status(self) -> PlaybackStatus:
        return self._state.status

    @property
    def history_record(self) -> Optional[HistoryRecord]:
        return self._history

    # ----------------------------
    # Commands
    # ----------------------------

    def start(self) -> None:
        if self._state.status != PlaybackStatus.IDLE:
            logger.debug("start() ignored in %s", self._state.status.name)
            return
        logger.info(
            "Dictation started: %s/%s, %d items",
            self._config.language.value, self._config.mode.value, len(self._config.items),
        )
        self._set_state(status=PlaybackStatus.PLAYING)
        self._step()

    def pause(self) -> None:
        if self._state.status != PlaybackStatus.PLAYING:
            return
        self._set_state(status=PlaybackStatus.PAUSED)
        self._safe_call(self._speech.pause)
        self._safe_call(self._cue.pause)
        if self._delay is not None:
            self._safe_call(self._delay.pause)
        logger.info("Dictation paused at index %d", self._state.current_index)

    def resume(self) -> None:
        if self._state.status != PlaybackStatus.PAUSED:
            return
        self._set_state(status=PlaybackStatus.PLAYING)
        logger.info("Dictation resumed at index %d", self._state.current_index)
        self._safe_call(self._speech.resume)
        self._safe_call(self._cue.resume)
        if self._delay is not None:
            self._safe_call(self._delay.resume)
        parked = self._parked
        self._parked = None
        if parked is not None:
            parked()

    def stop(self) -> None:
        """Finish now: cancel speech, audio and pending waits."""
        self._release()
        if self._state.status != PlaybackStatus.FINISHED:
            logger.info("Dictation stopped at index %d", self._state.current_index)
            self._set_state(status=PlaybackStatus.FINISHED)
        self._emit_finished()

    def close(self) -> None:
        """Teardown for a discarded sequencer. Does not emit `finished`."""
        if self._closed:
            return
        self._closed = True
        self._release()
        if self._state.status != PlaybackStatus.FINISHED:
            self._set_state(status=PlaybackStatus.FINISHED)

    def __enter__(self) -> "PlaybackSequencer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def set_volume(self, volume: float) -> None:
        """Applies to the next request; the playing cue changes immediately."""
        self._settings = PlaybackSettings(volume=volume, rate=self._settings.rate).normalised()
        self._safe_call(lambda: self._cue.set_volume(self._settings.volume))
        self.settingsChanged.emit(self._settings)

    def set_rate(self, rate: float) -> None:
        """Applies to the next utterance only."""
        self._settings = PlaybackSettings(volume=self._settings.volume, rate=rate).normalised()
        self.settingsChanged.emit(self._settings)

    # ----------------------------
    # Step driver
    # ----------------------------

    def _step(self) -> None:
        token = self._token
        if token.cancelled or self._state.status != PlaybackStatus.PLAYING:
            return

        index = self._state.current_index
        if index == -1:
            self._run_start_phase(token)
        elif index >= len(self._config.items):
            self._run_completion(token)
        elif self._state.is_reviewing:
            self._run_review_item(token, index)
        else:
            self._run_item(token, index)

    def _run_start_phase(self, token: CancelToken) -> None:
        phrase = self._profile.start_phrase
        self._set_state(instruction_text=phrase)
        self._start_time = self._clock()

        def _after_phrase() -> None:
            self._wait(START_SETTLE_MS, self._after(token, lambda: self._advance_to(token, 0)))

        self._speak(phrase, self._after(token, _after_phrase))

    def _run_completion(self, token: CancelToken) -> None:
        needs_review = (
            self._config.mode == Mode.VOCABULARY
            and not self._state.is_reviewing
            and len(self._config.items) > 0
        )
        if not needs_review:
            self._finish_session(token)
            return

        message = self._profile.review_announcement
        self._set_state(instruction_text=message)

        def _after_message() -> None:
            self._wait(
                REVIEW_ANNOUNCE_PAUSE_MS,
                self._after(token, lambda: self._advance_to(token, 0, reviewing=True)),
            )

        self._speak(message, self._after(token, _after_message))

    def _run_review_item(self, token: CancelToken, index: int) -> None:
        item = self._config.items[index]
        self._set_state(instruction_text=self._profile.review_instruction(item.text))

        def _after_speech() -> None:
            self._wait(REVIEW_ITEM_PAUSE_MS, self._after(token, lambda: self._advance_to(token, index + 1)))

        # Review is always read slowly, whatever the operator's rate.
        self._speak(item.speech_text(), self._after(token, _after_speech), rate=REVIEW_RATE)

    def _run_item(self, token: CancelToken, index: int) -> None:
        item = self._config.items[index]
        self._set_state(
            instruction_text=self._profile.item_instruction(
                self._config.mode, index, len(self._config.items), item.text
            )
        )
        self._play_repeat(token, index, 0)

    def _play_repeat(self, token: CancelToken, index: int, i: int) -> None:
        if self._blocked(token, lambda: self._play_repeat(token, index, i)):
            return

        repeats = max(1, int(self._profile.vocab_repeats))
        item = self._config.items[index]
        self._set_state(current_repeat=i + 1)

        def _after_one() -> None:
            if i < repeats - 1:
                self._wait(
                    self._profile.vocab_repeat_interval_ms,
                    self._after(token, lambda: self._play_repeat(token, index, i + 1)),
                )
            else:
                self._after_repeats(token, index)

        self._speak(item.speech_text(), self._after(token, _after_one))

    def _after_repeats(self, token: CancelToken, index: int) -> None:
        self._set_state(current_repeat=0)
        self._wait(self._profile.vocab_pause_ms, self._after(token, lambda: self._advance_to(token, index + 1)))

    def _advance_to(self, token: CancelToken, index: int, *, reviewing: Optional[bool] = None) -> None:
        if self._blocked(token, lambda: self._advance_to(token, index, reviewing=reviewing)):
            return
        if reviewing is None:
            self._set_state(current_index=index)
        else:
            self._set_state(current_index=index, is_reviewing=reviewing)
        self._step()

    def _finish_session(self, token: CancelToken) -> None:
        self._set_state(status=PlaybackStatus.FINISHED, instruction_text=self._profile.end_phrase)

        started = self._start_time if self._start_time is not None else self._clock()
        # Half-up, so 2.5 s records as 3.
        elapsed = int(self._clock() - started + 0.5)
        record = HistoryRecord(
            language=self._config.language,
            mode=self._config.mode,
            item_count=len(self._config.items),
            elapsed_seconds=max(0, elapsed),
        )
        self._history = record
        logger.info("Dictation finished: %d items in %ds", record.item_count, record.elapsed_seconds)
        self.historyRecorded.emit(record)

        # Status is already FINISHED, so the outro is guarded by the token only.
        def _after_phrase() -> None:
            volume = self._settings.volume
            self._safe_call(lambda: self._cue.play_clip(self._end_sound_url, volume))
            self._wait(END_CUE_DURATION_MS, token.guard(_after_cue))

        def _after_cue() -> None:
            self._safe_call(self._cue.stop)
            self._emit_finished()

        self._speak(self._profile.end_phrase, token.guard(_after_phrase))

    # ----------------------------
    # Suspension points
    # ----------------------------

    def _speak(self, text: str, then: VoidFn, *, rate: Optional[float] = None) -> None:
        # Settings are read now; later changes only affect the next request.
        request = SpeechRequest(
            text=text or "",
            language_tag=self._profile.voice_tag,
            rate=self._settings.rate if rate is None else float(rate),
            volume=self._settings.volume,
        )
        done = CompletionOnce(then)
        try:
            self._speech.speak(request, done)
        except Exception as e:
            # Synthesis failures count as a finished utterance.
            logger.info("Speech request failed, continuing: %s", e)
            done()

    def _wait(self, ms: int, then: VoidFn) -> None:
        holder: dict = {}

        def _elapsed() -> None:
            if self._delay is holder.get("delay"):
                self._delay = None
            then()

        delay = self._timing.wait(int(ms), _elapsed)
        holder["delay"] = delay
        # A synchronous timing backend may already have fired (and moved on).
        if getattr(delay, "is_pending", lambda: True)():
            self._delay = delay

    def _after(self, token: CancelToken, fn: VoidFn) -> VoidFn:
        """Continuation for a PLAYING step (dropped on stop, parked on pause)."""

        def _run() -> None:
            if self._blocked(token, _run):
                return
            fn()

        return _run

    def _blocked(self, token: CancelToken, resume_with: VoidFn) -> bool:
        if token.cancelled:
            return True
        status = self._state.status
        if status == PlaybackStatus.PLAYING:
            return False
        if status == PlaybackStatus.PAUSED:
            self._parked = resume_with
        return True

    # ----------------------------
    # Internal helpers
    # ----------------------------

    def _release(self) -> None:
        self._token.cancel()
        self._parked = None
        delay = self._delay
        self._delay = None
        if delay is not None:
            self._safe_call(delay.cancel)
        self._safe_call(self._speech.cancel_all)
        self._safe_call(self._cue.stop)

    def _set_state(self, **changes) -> None:
        new_state = self._state.with_changes(**changes)
        if new_state == self._state:
            return
        self._state = new_state
        self.stateChanged.emit(new_state)

    def _emit_finished(self) -> None:
        if self._finished_emitted:
            return
        self._finished_emitted = True
        self.finished.emit()

    @staticmethod
    def _safe_call(fn: Optional[VoidFn]) -> None:
        if fn is None:
            return
        try:
            fn()
        except Exception as e:
            logger.debug("Collaborator call failed: %s", e)


__all__ = ["PlaybackSequencer"]
