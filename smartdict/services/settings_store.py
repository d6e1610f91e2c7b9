from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from smartdict.domain.enums import Mode
from smartdict.domain.models import PlaybackSettings

logger = logging.getLogger(__name__)


def default_data_dir() -> Path:
    """SMARTDICT_DATA_DIR if set, else ~/.smartdict."""
    env = (os.environ.get("SMARTDICT_DATA_DIR") or "").strip()
    if env:
        return Path(env).expanduser()
    return Path.home() / ".smartdict"


def load_yaml_dict(path: Path) -> dict[str, Any]:
    """Read a YAML mapping; anything missing or malformed reads as {}."""
    try:
        if not path.exists():
            return {}
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
            return data if isinstance(data, dict) else {}
    except (OSError, UnicodeError, yaml.YAMLError) as e:
        logger.debug("Failed to read %s: %s", path, e)
        return {}


def save_yaml_dict(path: Path, data: dict[str, Any]) -> None:
    """Write a YAML mapping atomically (temp file + os.replace)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data or {}, f, allow_unicode=True, sort_keys=True)
    os.replace(str(tmp), str(path))


class SettingsStore:
    """YAML-backed settings store.

    Responsibilities:
      - Load/save settings.yaml atomically
      - Provide typed helpers for per-mode playback settings and the user id

    Layout:
        user_id: "alice"
        playback:
          vocabulary: {volume: 1.0, rate: 0.7}
          passage:    {volume: 0.8, rate: 0.6}
    """

    def __init__(self, settings_path: str | Path | None = None) -> None:
        if settings_path is None:
            env = (os.environ.get("SMARTDICT_SETTINGS_PATH") or "").strip()
            self._path = Path(env).expanduser() if env else default_data_dir() / "settings.yaml"
        else:
            self._path = Path(settings_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        return load_yaml_dict(self._path)

    def save(self, data: dict[str, Any]) -> None:
        try:
            save_yaml_dict(self._path, data)
        except (OSError, yaml.YAMLError) as e:
            # Best-effort persistence; callers should not crash on save failures.
            logger.warning("Failed to save settings to %s: %s", self._path, e)

    def get_playback_settings(self, mode: Mode) -> PlaybackSettings:
        default = PlaybackSettings.default_for(mode)
        s = self.load()
        section = s.get("playback") or {}
        if not isinstance(section, dict):
            return default
        d = section.get(mode.value.lower()) or {}
        if not isinstance(d, dict):
            return default

        def _fval(key: str, fallback: float) -> float:
            v = d.get(key, fallback)
            if isinstance(v, (int, float)) and not isinstance(v, bool):
                return float(v)
            return float(fallback)

        return PlaybackSettings(
            volume=_fval("volume", default.volume),
            rate=_fval("rate", default.rate),
        ).normalised()

    def set_playback_settings(self, mode: Mode, settings: PlaybackSettings) -> None:
        clean = settings.normalised()
        s = self.load()
        section = s.get("playback") or {}
        if not isinstance(section, dict):
            section = {}
        section[mode.value.lower()] = {"volume": clean.volume, "rate": clean.rate}
        s["playback"] = section
        self.save(s)

    def get_user_id(self) -> str:
        v = self.load().get("user_id")
        return str(v).strip() if isinstance(v, (str, int)) else ""

    def set_user_id(self, user_id: str) -> None:
        s = self.load()
        s["user_id"] = str(user_id or "").strip()
        self.save(s)
