"""Google Cloud Text-to-Speech provider with an on-disk WAV cache.

Primary responsibilities:
- Determine a stable cache filename for a requested utterance.
- Ensure a WAV exists on disk (cache hit/miss), synthesizing on a miss.
- Play the WAV through QMediaPlayer so it can be paused, resumed and stopped.

Design note:
Tests can inject a `synthesizer` callable into `ensure_cached_wav()` (or into
`CloudSpeechProvider`) to avoid network calls.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from PyQt6.QtCore import QObject, QTimer, QUrl

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


@dataclass(frozen=True)
class TtsRequest:
    """A request to generate/locate audio for text."""

    text: str
    language_code: str = "en-GB"
    voice_name: str = ""
    speaking_rate: float | None = None


Synthesizer = Callable[[TtsRequest], bytes]


# ----------------------------
# Cache paths / filenames
# ----------------------------


def get_cache_dir() -> Path:
    """Return the directory used to store cached TTS WAV files.

    Priority:
    1) SMARTDICT_TTS_CACHE_DIR env var (absolute or relative)
    2) ~/.cache/smartdict/tts

    The directory is created if it does not exist.
    """
    env = (os.environ.get("SMARTDICT_TTS_CACHE_DIR") or "").strip()
    if env:
        p = Path(env).expanduser()
    else:
        p = Path.home() / ".cache" / "smartdict" / "tts"
    p.mkdir(parents=True, exist_ok=True)
    return p


def google_speaking_rate(rate: float) -> float:
    """Google accepts 0.25..4.0 with 1.0 as normal speed."""
    try:
        r = float(rate)
    except (TypeError, ValueError):
        r = 1.0
    return round(max(0.25, min(4.0, r)), 2)


def cached_filename(req: TtsRequest) -> str:
    """Return a stable, filesystem-safe cache filename for the request.

    Format:
        tts_<sha1>_<lang>_<voice>.wav

    Where sha1 covers language, voice, rate and text (UTF-8).
    """
    material = "{}\n{}\n{}\n{}".format(req.language_code, req.voice_name, req.speaking_rate or "", req.text)
    digest = hashlib.sha1(material.encode("utf-8")).hexdigest()

    safe_voice = "".join([c if c.isalnum() or c in ("-", "_", ".") else "_" for c in req.voice_name]) or "default"
    safe_lang = "".join([c if c.isalnum() or c in ("-", "_") else "_" for c in req.language_code])

    return "tts_{}_{}_{}.wav".format(digest, safe_lang, safe_voice)


def cached_path(req: TtsRequest, cache_dir: Optional[Path] = None) -> Path:
    return (cache_dir or get_cache_dir()) / cached_filename(req)


# ----------------------------
# Google client
# ----------------------------


def cloud_credentials_configured() -> bool:
    for key in ("GOOGLE_APPLICATION_CREDENTIALS", "SMARTDICT_APPLICATION_CREDENTIALS"):
        if (os.environ.get(key) or "").strip():
            return True
    return False


def _client_from_env() -> Any:
    """Create a TextToSpeechClient.

    Prefers GOOGLE_APPLICATION_CREDENTIALS (ADC); falls back to a service
    account file named by SMARTDICT_APPLICATION_CREDENTIALS.
    """
    from google.cloud import texttospeech
    from google.oauth2 import service_account

    if (os.environ.get("GOOGLE_APPLICATION_CREDENTIALS") or "").strip():
        return texttospeech.TextToSpeechClient()
    sac = (os.environ.get("SMARTDICT_APPLICATION_CREDENTIALS") or "").strip()
    if sac and os.path.exists(sac):
        creds = service_account.Credentials.from_service_account_file(sac)
        return texttospeech.TextToSpeechClient(credentials=creds)
    return texttospeech.TextToSpeechClient()


def google_synthesize_wav(req: TtsRequest, client: Any = None) -> bytes:
    """Synthesize LINEAR16 WAV bytes via Google Cloud Text-to-Speech."""
    from google.cloud import texttospeech

    client = client or _client_from_env()
    voice_params = {"language_code": req.language_code}
    if req.voice_name:
        voice_params["name"] = req.voice_name

    if req.speaking_rate is not None:
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            speaking_rate=float(req.speaking_rate),
        )
    else:
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
        )

    response = client.synthesize_speech(
        input=texttospeech.SynthesisInput(text=req.text),
        voice=texttospeech.VoiceSelectionParams(**voice_params),
        audio_config=audio_config,
    )
    return bytes(response.audio_content)


def ensure_cached_wav(
    req: TtsRequest,
    *,
    synthesizer: Optional[Synthesizer] = None,
    cache_dir: Optional[Path] = None,
) -> Path:
    """Ensure a cached WAV exists for `req` and return its path.

    A non-empty cached file is returned without calling the synthesizer.
    """
    out_path = cached_path(req, cache_dir)
    if out_path.exists() and out_path.is_file() and out_path.stat().st_size > 0:
        return out_path

    wav_bytes = (synthesizer or google_synthesize_wav)(req)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = out_path.with_suffix(out_path.suffix + ".tmp")
    with open(tmp_path, "wb") as f:
        f.write(wav_bytes)
    try:
        os.replace(str(tmp_path), str(out_path))
    except OSError:
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError:
            pass
        raise
    return out_path


# ----------------------------
# Provider
# ----------------------------


class CloudSpeechProvider(QObject, SpeechProvider, metaclass=QtABCMeta):
    """Speak through Google Cloud TTS, playing cached WAVs with QMediaPlayer.

    Synthesis happens synchronously on the calling thread; playback is
    asynchronous and completes on EndOfMedia, on a player error, or on
    cancel. `player` accepts any object with the QMediaPlayer calls used
    here; by default a QMediaPlayer with its own QAudioOutput is created.

    The voice catalog is listed once and cached for the provider's life. A
    request whose locale has no match in the cache re-lists once first.
    """

    def __init__(
        self,
        *,
        synthesizer: Optional[Synthesizer] = None,
        voice_lister: Optional[Callable[[], list[Voice]]] = None,
        cache_dir: Optional[Path] = None,
        fallback: Optional[SpeechProvider] = None,
        player: Any = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._fallback = fallback
        self._synthesizer = synthesizer
        self._voice_lister = voice_lister
        self._cache_dir = cache_dir
        self._client: Any = None
        self._catalog: list[Voice] = []

        if player is None:
            player = self._create_player()
        self._player = player
        for signal_name, slot in (("mediaStatusChanged", self._on_media_status), ("errorOccurred", self._on_error)):
            signal = getattr(player, signal_name, None)
            if signal is not None:
                signal.connect(slot)  # type: ignore
        self._pending: Optional[CompletionOnce] = None

    def _create_player(self) -> Any:
        from PyQt6.QtMultimedia import QAudioOutput, QMediaPlayer

        player = QMediaPlayer(self)
        player.setAudioOutput(QAudioOutput(self))
        return player

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = _client_from_env()
        return self._client

    def voices(self) -> list[Voice]:
        # The first non-empty catalog is cached; refresh_voices() drops it.
        if self._catalog:
            return list(self._catalog)
        try:
            if self._voice_lister is not None:
                found = list(self._voice_lister())
            else:
                response = self._get_client().list_voices()
                found = [
                    Voice(name=str(v.name), locale=str(v.language_codes[0]) if v.language_codes else "")
                    for v in response.voices
                ]
        except Exception as e:
            logger.debug("Cloud voice listing failed: %s", e)
            found = []
        self._catalog = found
        return list(found)

    def refresh_voices(self) -> None:
        self._catalog = []

    def build_tts_request(self, request: SpeechRequest) -> TtsRequest:
        language_code = request.language_tag
        voice_name = ""
        profile = profile_for_tag(request.language_tag)
        if profile is not None:
            catalog = self.voices()
            picked = select_voice(catalog, profile)
            if picked is None and catalog:
                # Nothing for this locale in the cached catalog; re-list once.
                self.refresh_voices()
                picked = select_voice(self.voices(), profile)
            if picked is not None:
                voice_name = picked.name
                language_code = picked.locale or language_code
        return TtsRequest(
            text=request.text,
            language_code=language_code,
            voice_name=voice_name,
            speaking_rate=google_speaking_rate(request.rate),
        )

    def speak(self, request: SpeechRequest, on_complete: CompletionFn) -> None:
        self._resolve_pending(stop_player=True)

        done = CompletionOnce(on_complete)
        if not (request.text or "").strip():
            QTimer.singleShot(0, done)
            return

        try:
            tts_req = self.build_tts_request(request)
            if self._synthesizer is not None:
                path = ensure_cached_wav(tts_req, synthesizer=self._synthesizer, cache_dir=self._cache_dir)
            else:
                path = ensure_cached_wav(
                    tts_req,
                    synthesizer=lambda r: google_synthesize_wav(r, self._get_client()),
                    cache_dir=self._cache_dir,
                )
        except Exception as e:
            # Network/credential/quota errors degrade to a completed utterance.
            print("[TTS] Google Cloud synth error: {}".format(e))
            if self._fallback is not None:
                print("[TTS] Falling back to system voice")
                self._fallback.speak(request, done)
            else:
                QTimer.singleShot(0, done)
            return

        self._pending = done
        try:
            output = self._player.audioOutput()
            if output is not None:
                output.setVolume(max(0.0, min(1.0, float(request.volume))))
            self._player.setSource(QUrl.fromLocalFile(str(path)))
            self._player.play()
        except (RuntimeError, TypeError, ValueError) as e:
            print("[TTS] play error: {}".format(e))
            self._resolve_pending(stop_player=False)

    def pause(self) -> None:
        if self._fallback is not None:
            self._fallback.pause()
        try:
            if qt_enum_name(self._player.playbackState()) == "PlayingState":
                self._player.pause()
        except RuntimeError:
            pass

    def resume(self) -> None:
        if self._fallback is not None:
            self._fallback.resume()
        try:
            if qt_enum_name(self._player.playbackState()) == "PausedState":
                self._player.play()
        except RuntimeError:
            pass

    def cancel_all(self) -> None:
        if self._fallback is not None:
            self._fallback.cancel_all()
        self._resolve_pending(stop_player=True)

    def _resolve_pending(self, *, stop_player: bool) -> None:
        pending = self._pending
        self._pending = None
        if stop_player:
            try:
                self._player.stop()
            except RuntimeError:
                pass
        if pending is not None:
            pending()

    def _on_media_status(self, status) -> None:
        if qt_enum_name(status) in ("EndOfMedia", "InvalidMedia"):
            self._resolve_pending(stop_player=False)

    def _on_error(self, error, message: str = "") -> None:
        logger.info("Cloud speech playback error %s: %s", error, message)
        self._resolve_pending(stop_player=False)


__all__ = [
    "CloudSpeechProvider",
    "Synthesizer",
    "TtsRequest",
    "cached_filename",
    "cached_path",
    "cloud_credentials_configured",
    "ensure_cached_wav",
    "get_cache_dir",
    "google_speaking_rate",
    "google_synthesize_wav",
]
