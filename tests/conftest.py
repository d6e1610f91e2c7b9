# tests/conftest.py
import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("SMARTDICT_TEST_MODE", "1")

from smartdict.controllers.dictation_sequencer import PlaybackSequencer  # noqa: E402
from smartdict.domain.enums import Language, Mode  # noqa: E402
from smartdict.domain.models import SessionConfig  # noqa: E402
from tests.fakes import FakeClock, FakeCue, FakeSpeech, ManualTiming, Rig  # noqa: E402


@pytest.fixture
def make_rig(qapp):
    """Factory: make_rig(["cat", "dog"], mode=Mode.VOCABULARY, auto_complete=True)."""
    created: list[PlaybackSequencer] = []

    def _make(
        items,
        *,
        language: Language = Language.ENGLISH,
        mode: Mode = Mode.VOCABULARY,
        auto_complete: bool = True,
        settings=None,
    ) -> Rig:
        events: list = []
        clock = FakeClock()
        timing = ManualTiming(events, clock)
        speech = FakeSpeech(events, auto_complete=auto_complete)
        cue = FakeCue(events)
        if items and not isinstance(items[0], str):
            config = SessionConfig.from_items(items, language=language, mode=mode)
        else:
            config = SessionConfig.from_texts(items, language=language, mode=mode)
        seq = PlaybackSequencer(
            config,
            speech=speech,
            cue_player=cue,
            timing=timing,
            settings=settings,
            clock=clock,
        )
        created.append(seq)
        return Rig(seq, speech, cue, timing, clock, events)

    yield _make
    for seq in created:
        seq.close()
