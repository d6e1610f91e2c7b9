from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QObject

from smartdict.controllers.dictation_sequencer import PlaybackSequencer
from smartdict.domain.enums import PlaybackStatus
from smartdict.domain.language_profiles import END_SOUND_URL
from smartdict.domain.models import HistoryRecord, PlaybackSettings, SequencerState, SessionConfig
from smartdict.services.audio_cue import AudioCuePlayer
from smartdict.services.history_store import HistoryStore
from smartdict.services.settings_store import SettingsStore
from smartdict.services.speech import SpeechProvider

logger = logging.getLogger(__name__)


class DictationSessionController(QObject):
    """Host-side glue around one PlaybackSequencer.

    Owns:
    - restoring per-mode volume/rate from the SettingsStore, and saving changes
    - forwarding the terminal history record to the HistoryStore for `user_id`
    - the Play/Pause toggle used by the host's controls

    The sequencer itself stays UI-agnostic; observers connect to
    `controller.sequencer.stateChanged` / `finished`.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        user_id: str,
        speech: SpeechProvider,
        cue_player: Optional[AudioCuePlayer] = None,
        history_store: Optional[HistoryStore] = None,
        settings_store: Optional[SettingsStore] = None,
        timing=None,
        clock: Optional[Callable[[], float]] = None,
        end_sound_url: Optional[str] = None,
        on_state: Optional[Callable[[SequencerState], None]] = None,
        on_finished: Optional[Callable[[], None]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._user_id = str(user_id or "")
        self._config = config
        self._history_store = history_store
        self._settings_store = settings_store
        self._on_state = on_state
        self._on_finished = on_finished

        settings = None
        if settings_store is not None:
            settings = settings_store.get_playback_settings(config.mode)

        self._sequencer = PlaybackSequencer(
            config,
            speech=speech,
            cue_player=cue_player,
            timing=timing,
            settings=settings,
            clock=clock,
            end_sound_url=end_sound_url or END_SOUND_URL,
            parent=self,
        )
        self._sequencer.historyRecorded.connect(self._on_history_recorded)
        self._sequencer.settingsChanged.connect(self._on_settings_changed)
        self._sequencer.stateChanged.connect(self._on_state_changed)
        self._sequencer.finished.connect(self._on_sequencer_finished)

    @property
    def sequencer(self) -> PlaybackSequencer:
        return self._sequencer

    @property
    def user_id(self) -> str:
        return self._user_id

    # ----------------------------
    # Commands (forwarded)
    # ----------------------------

    def start(self) -> None:
        self._sequencer.start()

    def pause(self) -> None:
        self._sequencer.pause()

    def resume(self) -> None:
        self._sequencer.resume()

    def stop(self) -> None:
        self._sequencer.stop()

    def close(self) -> None:
        self._sequencer.close()

    def set_volume(self, volume: float) -> None:
        self._sequencer.set_volume(volume)

    def set_rate(self, rate: float) -> None:
        self._sequencer.set_rate(rate)

    def toggle_play(self) -> None:
        """Start from IDLE, pause while PLAYING, resume while PAUSED."""
        status = self._sequencer.status
        if status == PlaybackStatus.IDLE:
            self.start()
        elif status == PlaybackStatus.PLAYING:
            self.pause()
        elif status == PlaybackStatus.PAUSED:
            self.resume()

    # ----------------------------
    # Sequencer signal handlers
    # ----------------------------

    def _on_history_recorded(self, record: HistoryRecord) -> None:
        if self._history_store is None:
            return
        try:
            self._history_store.record_history(
                self._user_id,
                record.language,
                record.mode,
                record.item_count,
                record.elapsed_seconds,
            )
        except Exception:
            # History is best-effort.
            logger.exception("Failed to record dictation history")

    def _on_settings_changed(self, settings: PlaybackSettings) -> None:
        if self._settings_store is None:
            return
        try:
            self._settings_store.set_playback_settings(self._config.mode, settings)
        except Exception:
            logger.exception("Failed to persist playback settings")

    def _on_state_changed(self, state: SequencerState) -> None:
        if self._on_state is None:
            return
        try:
            self._on_state(state)
        except Exception:
            logger.exception("State observer failed")

    def _on_sequencer_finished(self) -> None:
        if self._on_finished is None:
            return
        try:
            self._on_finished()
        except Exception:
            logger.exception("Finished observer failed")
