from __future__ import annotations

import logging
import os
from typing import Optional

from PyQt6.QtCore import QObject

from smartdict.services.speech import SilentSpeechProvider, SpeechProvider

logger = logging.getLogger(__name__)


def is_test_mode() -> bool:
    return str(os.environ.get("SMARTDICT_TEST_MODE", "")).strip().lower() in ("1", "true", "yes", "on")


def create_system_provider(parent: Optional[QObject] = None) -> SpeechProvider:
    """Qt TextToSpeech, or a silent provider if the platform has no working engine.

    An engine that loads into the Error state (e.g. a speech-dispatcher
    plugin without its daemon) would drop every `say()`, so it counts as
    no engine at all.
    """
    try:
        from PyQt6.QtTextToSpeech import QTextToSpeech

        from smartdict.services import qt_speech

        if not QTextToSpeech.availableEngines():
            print("[TTS] No system speech engine; running silent")
            return SilentSpeechProvider()
        provider = qt_speech.QtSpeechProvider(parent=parent)
    except (ImportError, RuntimeError) as e:
        print("[TTS] No system speech engine ({}); running silent".format(e))
        return SilentSpeechProvider()

    if not provider.engine_ready():
        print("[TTS] System speech engine failed to start; running silent")
        provider.deleteLater()
        return SilentSpeechProvider()
    return provider


def create_speech_provider(parent: Optional[QObject] = None) -> SpeechProvider:
    """Prefer Google Cloud TTS, fall back to the platform voices.

    - SMARTDICT_TEST_MODE: silent provider, completes instantly.
    - Cloud credentials configured: CloudSpeechProvider with the system
      provider as per-utterance fallback.
    - Otherwise: system provider only.
    """
    if is_test_mode():
        return SilentSpeechProvider()

    system = create_system_provider(parent)

    from smartdict.services.cloud_speech import CloudSpeechProvider, cloud_credentials_configured

    if cloud_credentials_configured():
        print("[TTS] Using Google Cloud voices")
        return CloudSpeechProvider(fallback=system, parent=parent)

    print("[TTS] Using system voices")
    return system


__all__ = ["create_speech_provider", "create_system_provider", "is_test_mode"]
