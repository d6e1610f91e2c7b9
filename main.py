"""Console host for a SmartDict dictation session.

Usage:
    python main.py words.yaml --language ENGLISH --mode VOCABULARY --user alice
    python main.py passage.txt --language CHINESE --mode PASSAGE

Keys (type then Enter):
    p   pause / resume
    s   stop
    +/- volume up / down
    f/d rate faster / slower
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QCoreApplication, QSocketNotifier, QTimer

from smartdict.controllers.dictation_item_repository import DictationItemRepository
from smartdict.controllers.session_controller import DictationSessionController
from smartdict.domain.enums import Language, Mode, parse_enum
from smartdict.domain.models import SequencerState
from smartdict.services.history_store import HistoryStore
from smartdict.services.settings_store import SettingsStore
from smartdict.services.speech_backend import create_speech_provider

VOLUME_STEP = 0.1
RATE_STEP = 0.1


def configure_logging() -> None:
    level_name = (os.environ.get("SMARTDICT_LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a timed dictation session.")
    parser.add_argument("items", help="YAML file of items, or a text file with one item per line.")
    parser.add_argument("--language", choices=[lang.value for lang in Language], default=None)
    parser.add_argument("--mode", choices=[m.value for m in Mode], default=None)
    parser.add_argument("--user", default=None, help="User id for history (default: settings.yaml user_id).")
    parser.add_argument("--history", action="store_true", help="Print the user's history and exit.")
    return parser


def _print_state(state: SequencerState) -> None:
    repeat = " ({})".format(state.current_repeat) if state.current_repeat else ""
    print("[{}] {}{}".format(state.status.value, state.instruction_text, repeat))


def _handle_key(controller: DictationSessionController, line: str) -> None:
    key = (line or "").strip().lower()
    settings = controller.sequencer.settings
    if key == "p":
        controller.toggle_play()
    elif key == "s":
        controller.stop()
    elif key == "+":
        controller.set_volume(settings.volume + VOLUME_STEP)
    elif key == "-":
        controller.set_volume(settings.volume - VOLUME_STEP)
    elif key == "f":
        controller.set_rate(settings.rate + RATE_STEP)
    elif key == "d":
        controller.set_rate(settings.rate - RATE_STEP)
    else:
        return
    s = controller.sequencer.settings
    print("[INFO] volume={:.1f} rate={:.1f}".format(s.volume, s.rate))


def _read_key(notifier, controller: DictationSessionController, stream) -> None:
    line = stream.readline()
    if line == "":
        # EOF stays readable forever; stop watching it.
        notifier.setEnabled(False)
        return
    _handle_key(controller, line)


def install_keyboard(app, controller: DictationSessionController, stream=None):
    """Watch `stream` (stdin by default) for key lines; None when it is not a terminal."""
    stream = stream if stream is not None else sys.stdin
    try:
        if stream is None or not stream.isatty():
            return None
        notifier = QSocketNotifier(stream.fileno(), QSocketNotifier.Type.Read, app)
    except (OSError, ValueError, AttributeError) as e:
        print("[WARN] Keyboard controls unavailable: {}".format(e))
        return None
    notifier.activated.connect(lambda *_: _read_key(notifier, controller, stream))
    return notifier


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)

    settings_store = SettingsStore()
    history_store = HistoryStore()
    user_id = (args.user or settings_store.get_user_id() or "").strip()
    if args.user:
        settings_store.set_user_id(user_id)

    if args.history:
        for entry in history_store.history_items(user_id):
            print("{}  {}/{}  items={}  {}s".format(
                entry.date, entry.language.value, entry.mode.value, entry.item_count, entry.duration_played,
            ))
        return 0

    repo = DictationItemRepository(Path(args.items))
    config = repo.session_config(
        language=parse_enum(Language, args.language),
        mode=parse_enum(Mode, args.mode),
    )
    print("[INFO] {} items, {} / {}".format(len(config.items), config.language.value, config.mode.value))

    app = QCoreApplication(sys.argv)
    speech = create_speech_provider(parent=app)
    controller = DictationSessionController(
        config,
        user_id=user_id,
        speech=speech,
        history_store=history_store,
        settings_store=settings_store,
        end_sound_url=(os.environ.get("SMARTDICT_END_SOUND_URL") or "").strip() or None,
        on_state=_print_state,
        on_finished=app.quit,
        parent=app,
    )

    notifier = install_keyboard(app, controller)  # noqa: F841

    # Ctrl+C stops the session; the timer lets Python see the signal.
    signal.signal(signal.SIGINT, lambda *_: controller.stop())
    heartbeat = QTimer(app)
    heartbeat.start(250)
    heartbeat.timeout.connect(lambda: None)

    QTimer.singleShot(0, controller.start)
    try:
        return int(app.exec())
    finally:
        controller.close()


if __name__ == "__main__":
    sys.exit(main())
