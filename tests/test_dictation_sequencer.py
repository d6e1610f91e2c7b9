"""
Behaviour tests for PlaybackSequencer.

All collaborators are fakes from tests/fakes.py: speech completes synchronously
(or is held until the test releases it) and waits only elapse when the test
fires them, so every step of a session can be observed in order.
"""

import pytest

from smartdict.controllers.dictation_sequencer import PlaybackSequencer
from smartdict.domain.enums import Language, Mode, PlaybackStatus
from smartdict.domain.language_profiles import END_SOUND_URL
from smartdict.domain.models import DictationItem, HistoryRecord, PlaybackSettings, SessionConfig

from tests.fakes import FakeCue, FakeSpeech, ManualTiming


def _index_trail(states) -> list[tuple[int, bool]]:
    trail: list[tuple[int, bool]] = []
    for s in states:
        key = (s.current_index, s.is_reviewing)
        if not trail or trail[-1] != key:
            trail.append(key)
    return trail


def _instructions(states) -> list[str]:
    out: list[str] = []
    for s in states:
        if not out or out[-1] != s.instruction_text:
            out.append(s.instruction_text)
    return out


def _fire_until(rig, predicate, limit: int = 100) -> None:
    for _ in range(limit):
        if predicate(rig.seq.state()):
            return
        assert rig.timing.fire_next(), "ran out of pending waits"
    raise AssertionError("condition never reached")


# ------------------------------
# Full sessions
# ------------------------------

def test_vocabulary_cat_dog_scenario(make_rig):
    rig = make_rig(["cat", "dog"], mode=Mode.VOCABULARY)
    rig.seq.start()
    rig.run_to_end()

    assert rig.events == [
        ("speak", "Dictation is about to begin", 0.7),
        ("wait", 1000),
        ("speak", "cat", 0.7), ("wait", 4000),
        ("speak", "cat", 0.7), ("wait", 4000),
        ("speak", "cat", 0.7), ("wait", 5000),
        ("speak", "dog", 0.7), ("wait", 4000),
        ("speak", "dog", 0.7), ("wait", 4000),
        ("speak", "dog", 0.7), ("wait", 5000),
        ("speak", "Reviewing all words now", 0.7), ("wait", 2000),
        ("speak", "cat", 0.3), ("wait", 2000),
        ("speak", "dog", 0.3), ("wait", 2000),
        ("speak", "End of Dictation", 0.7),
        ("cue_play", END_SOUND_URL, 1.0),
        ("wait", 5000),
        ("cue_stop",),
    ]
    assert rig.records == [
        HistoryRecord(language=Language.ENGLISH, mode=Mode.VOCABULARY, item_count=2, elapsed_seconds=33)
    ]
    assert rig.seq.history_record == rig.records[0]
    assert rig.seq.status == PlaybackStatus.FINISHED
    assert rig.seq.state().instruction_text == "End of Dictation"
    assert rig.finished == 1


def test_vocabulary_visits_every_index_twice(make_rig):
    rig = make_rig(["a", "b", "c"], mode=Mode.VOCABULARY)
    rig.seq.start()
    rig.run_to_end()

    assert _index_trail(rig.states) == [
        (-1, False),
        (0, False), (1, False), (2, False), (3, False),
        (0, True), (1, True), (2, True), (3, True),
    ]
    normal = [r.text for r in rig.speech.requests if r.rate == 0.7 and r.text in ("a", "b", "c")]
    review = [r.text for r in rig.speech.requests if r.rate == 0.3]
    assert normal == ["a"] * 3 + ["b"] * 3 + ["c"] * 3
    assert review == ["a", "b", "c"]


def test_passage_visits_each_index_once_without_review(make_rig):
    rig = make_rig(["one", "two", "three"], mode=Mode.PASSAGE)
    rig.seq.start()
    rig.run_to_end()

    assert _index_trail(rig.states) == [(-1, False), (0, False), (1, False), (2, False), (3, False)]
    assert not any(s.is_reviewing for s in rig.states)
    assert "Reviewing all words now" not in rig.speech.spoken()
    assert all(r.rate == 0.6 for r in rig.speech.requests)
    assert "Section 2 / 3" in _instructions(rig.states)
    assert rig.records[0].item_count == 3
    assert rig.records[0].mode == Mode.PASSAGE
    assert rig.finished == 1


def test_repeat_counter_runs_one_to_three_then_resets(make_rig):
    rig = make_rig(["cat"], mode=Mode.PASSAGE)
    rig.seq.start()
    rig.run_to_end()

    repeats = [s.current_repeat for s in rig.states]
    trail = [r for i, r in enumerate(repeats) if i == 0 or repeats[i - 1] != r]
    assert trail == [0, 1, 2, 3, 0]


@pytest.mark.parametrize("mode", [Mode.VOCABULARY, Mode.PASSAGE])
def test_zero_items_finishes_after_start_phase(make_rig, mode):
    rig = make_rig([], mode=mode)
    rig.seq.start()
    rig.run_to_end()

    assert rig.speech.spoken() == ["Dictation is about to begin", "End of Dictation"]
    assert [e for e in rig.events if e[0] != "speak"] == [
        ("wait", 1000),
        ("cue_play", END_SOUND_URL, 1.0),
        ("wait", 5000),
        ("cue_stop",),
    ]
    assert rig.records[0].item_count == 0
    assert rig.records[0].elapsed_seconds == 1
    assert not any(s.is_reviewing for s in rig.states)
    assert all(s.current_repeat == 0 for s in rig.states)
    assert rig.finished == 1


def test_elapsed_seconds_round_half_up(make_rig):
    rig = make_rig([])
    rig.seq.start()
    rig.clock.now += 1.5
    rig.run_to_end()

    # 1.5 s spoken plus the 1 s settle wait.
    assert rig.records[0].elapsed_seconds == 3


def test_chinese_profile_phrases_and_instructions(make_rig):
    rig = make_rig(["貓"], language=Language.CHINESE, mode=Mode.VOCABULARY)
    rig.seq.start()
    rig.run_to_end()

    assert rig.speech.spoken()[0] == "默書開始"
    assert rig.speech.spoken()[-1] == "默書結束"
    assert {r.language_tag for r in rig.speech.requests} == {"zh-HK"}
    assert _instructions(rig.states) == [
        "Get Ready...",
        "默書開始",
        "第 1 個字: 貓",
        "現在複習所有單字",
        "複習: 貓",
        "默書結束",
    ]


def test_spoken_text_overrides_display_text(make_rig):
    items = [DictationItem(id="p1", text=",", spoken_text="comma")]
    rig = make_rig(items, mode=Mode.VOCABULARY)
    rig.seq.start()
    rig.run_to_end()

    assert "," not in rig.speech.spoken()
    assert rig.speech.spoken().count("comma") == 4
    assert "Word 1: ," in _instructions(rig.states)
    assert "Review: ," in _instructions(rig.states)


def test_empty_item_text_is_still_spoken(make_rig):
    rig = make_rig(["", "x"], mode=Mode.PASSAGE)
    rig.seq.start()
    rig.run_to_end()

    assert rig.speech.spoken().count("") == 3
    assert rig.speech.spoken().count("x") == 3
    assert rig.records[0].item_count == 2


def test_speech_failure_counts_as_completion(make_rig):
    rig = make_rig(["cat"], mode=Mode.PASSAGE)

    def _boom(request, on_complete):
        rig.speech.requests.append(request)
        raise RuntimeError("engine gone")

    rig.speech.speak = _boom
    rig.seq.start()
    rig.run_to_end()

    assert rig.seq.status == PlaybackStatus.FINISHED
    assert rig.records[0].item_count == 1
    assert rig.finished == 1


# ------------------------------
# Pause / resume
# ------------------------------

def test_pause_and_resume_are_idempotent(make_rig):
    rig = make_rig(["cat", "dog"])
    rig.seq.start()
    rig.timing.fire_next()
    before = rig.seq.state()
    assert (before.current_index, before.current_repeat) == (0, 1)

    rig.seq.pause()
    rig.seq.pause()
    paused = rig.seq.state()
    assert paused.status == PlaybackStatus.PAUSED
    assert (paused.current_index, paused.current_repeat) == (0, 1)
    assert rig.speech.pause_calls == 1
    assert rig.cue.pause_calls == 1

    rig.seq.resume()
    rig.seq.resume()
    resumed = rig.seq.state()
    assert resumed.status == PlaybackStatus.PLAYING
    assert (resumed.current_index, resumed.current_repeat) == (0, 1)
    assert rig.speech.resume_calls == 1
    assert [s.status for s in rig.states].count(PlaybackStatus.PAUSED) == 1


def test_pause_holds_the_pending_wait(make_rig):
    rig = make_rig(["cat", "dog"])
    rig.seq.start()
    rig.timing.fire_next()
    spoken_before = len(rig.speech.requests)

    rig.seq.pause()
    assert rig.timing.pending()[0].paused
    assert rig.timing.fire_next() is False
    assert len(rig.speech.requests) == spoken_before

    rig.seq.resume()
    assert rig.timing.fire_next() is True
    assert rig.speech.spoken()[-1] == "cat"
    assert rig.seq.state().current_repeat == 2
    assert rig.seq.state().current_index == 0


def test_completion_while_paused_is_parked_until_resume(make_rig):
    rig = make_rig(["cat", "dog"], auto_complete=False)
    rig.seq.start()
    rig.speech.complete_current()
    rig.timing.fire_next()
    assert rig.speech.spoken()[-1] == "cat"

    rig.seq.pause()
    # The engine could not pause and finished the utterance anyway.
    rig.speech.complete_current()
    assert rig.timing.pending() == []
    assert rig.seq.state().current_repeat == 1

    rig.seq.resume()
    pending = rig.timing.pending()
    assert [d.ms for d in pending] == [4000]
    assert rig.seq.state().current_index == 0


def test_pause_before_start_is_ignored(make_rig):
    rig = make_rig(["cat"])
    rig.seq.pause()
    assert rig.seq.status == PlaybackStatus.IDLE
    assert rig.speech.pause_calls == 0


# ------------------------------
# Stop / teardown
# ------------------------------

def test_stop_mid_repeat_freezes_index(make_rig):
    rig = make_rig(["cat", "dog"])
    rig.seq.start()
    _fire_until(rig, lambda s: s.current_index == 1 and s.current_repeat == 2)
    spoken_before = len(rig.speech.requests)
    pending = rig.timing.pending()
    assert len(pending) == 1

    rig.seq.stop()

    state = rig.seq.state()
    assert state.status == PlaybackStatus.FINISHED
    assert (state.current_index, state.current_repeat) == (1, 2)
    assert pending[0].cancelled
    assert rig.timing.fire_next() is False
    assert len(rig.speech.requests) == spoken_before
    assert rig.speech.cancel_calls == 1
    assert rig.cue.stop_calls == 1
    assert rig.finished == 1
    assert rig.records == []


def test_stop_with_speech_in_flight_drops_the_completion(make_rig):
    rig = make_rig(["cat"], auto_complete=False)
    rig.seq.start()
    rig.speech.complete_current()
    rig.timing.fire_next()
    assert rig.speech.held

    rig.seq.stop()

    # cancel_all resolved the held completion; nothing was scheduled from it.
    assert rig.speech.held == []
    assert rig.timing.pending() == []
    assert rig.seq.state().current_index == 0
    assert rig.seq.state().current_repeat == 1


def test_stop_while_paused(make_rig):
    rig = make_rig(["cat"], auto_complete=False)
    rig.seq.start()
    rig.seq.pause()
    rig.speech.complete_current()
    rig.seq.stop()
    rig.seq.resume()

    assert rig.seq.status == PlaybackStatus.FINISHED
    assert rig.timing.pending() == []
    assert rig.finished == 1


def test_stop_during_end_cue_emits_finished_once(make_rig):
    rig = make_rig(["cat"], mode=Mode.PASSAGE)
    rig.seq.start()
    _fire_until(rig, lambda s: s.status == PlaybackStatus.FINISHED)
    assert rig.records
    assert rig.timing.pending()[0].ms == 5000

    rig.seq.stop()
    rig.seq.stop()
    assert rig.finished == 1
    assert rig.timing.fire_next() is False
    assert ("cue_stop",) in rig.events


def test_finished_session_cannot_restart(make_rig):
    rig = make_rig(["cat"])
    rig.seq.start()
    rig.seq.stop()
    count = len(rig.speech.requests)

    rig.seq.start()
    assert rig.seq.status == PlaybackStatus.FINISHED
    assert len(rig.speech.requests) == count


def test_close_releases_without_finished_signal(make_rig):
    rig = make_rig(["cat"])
    rig.seq.start()
    rig.seq.close()
    rig.seq.close()

    assert rig.seq.status == PlaybackStatus.FINISHED
    assert rig.timing.pending() == []
    assert rig.speech.cancel_calls == 1
    assert rig.finished == 0


def test_context_manager_tears_down(qapp):
    events: list = []
    timing = ManualTiming(events)
    speech = FakeSpeech(events)
    config = SessionConfig.from_texts(["cat"])
    with PlaybackSequencer(config, speech=speech, cue_player=FakeCue(events), timing=timing) as seq:
        seq.start()
        assert timing.pending()
    assert timing.pending() == []
    assert seq.status == PlaybackStatus.FINISHED


def test_speech_provider_is_required(qapp):
    with pytest.raises(TypeError):
        PlaybackSequencer(SessionConfig.from_texts(["x"]), speech=None, cue_player=FakeCue([]))


# ------------------------------
# Settings
# ------------------------------

def test_volume_change_applies_to_next_request_only(make_rig):
    rig = make_rig(["cat"], auto_complete=False)
    rig.seq.start()
    rig.speech.complete_current()
    rig.timing.fire_next()
    in_flight = rig.speech.requests[-1]

    rig.seq.set_volume(0.3)

    assert (in_flight.text, in_flight.volume, in_flight.rate) == ("cat", 1.0, 0.7)
    rig.speech.complete_current()
    rig.timing.fire_next()
    following = rig.speech.requests[-1]
    assert (following.text, following.volume, following.rate) == ("cat", 0.3, 0.7)
    assert rig.cue.volumes == [0.3]


def test_rate_setting_does_not_change_review_rate(make_rig):
    rig = make_rig(["cat"], settings=PlaybackSettings(volume=0.5, rate=1.2))
    rig.seq.start()
    rig.run_to_end()

    cat_rates = [r.rate for r in rig.speech.requests if r.text == "cat"]
    assert cat_rates == [1.2, 1.2, 1.2, 0.3]
    assert all(r.volume == 0.5 for r in rig.speech.requests)
    assert ("cue_play", END_SOUND_URL, 0.5) in rig.events


def test_settings_are_clamped_and_announced(make_rig):
    rig = make_rig(["cat"])
    seen = []
    rig.seq.settingsChanged.connect(seen.append)

    rig.seq.set_volume(4.0)
    rig.seq.set_rate(0.0)

    assert rig.seq.settings == PlaybackSettings(volume=1.0, rate=0.1)
    assert seen[-1] == PlaybackSettings(volume=1.0, rate=0.1)
    assert len(seen) == 2
