from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml

from smartdict.domain.enums import Language, Mode, parse_enum
from smartdict.domain.models import DictationItem, SessionConfig


@dataclass(frozen=True)
class DictationItemRepository:
    """Load dictation items from a YAML or plain-text file.

    Supported shapes (intentionally tolerant):

    1) Plain text (any suffix other than .yaml/.yml)
        One item per non-blank line.

    2) A YAML list of strings
        - ["cat", "dog", ...]

    3) A YAML list of dicts
        - [{text: ",", spoken: "comma"}, {display: "dog"}, ...]

    4) A YAML dict wrapper
        - {language: ENGLISH, mode: PASSAGE, items: [...]}
          (also accepts `words`, `sections` or `data` as the list key)

    Entries that yield no display text are skipped.
    """

    path: Path

    def _read_yaml(self) -> Any:
        if not self.path.exists() or not self.path.is_file():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeError):
            return None
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError:
            return None

    def _read_lines(self) -> list[str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeError):
            return []
        return split_lines(raw)

    @property
    def is_yaml(self) -> bool:
        return self.path.suffix.lower() in (".yaml", ".yml")

    @staticmethod
    def _as_nonempty_str(value: Any) -> str | None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            s = value.strip()
            return s if s else None
        return None

    @classmethod
    def _pick_str(cls, mapping: Any, keys: Iterable[str]) -> str | None:
        if not isinstance(mapping, dict):
            return None
        for k in keys:
            s = cls._as_nonempty_str(mapping.get(k))
            if s is not None:
                return s
        return None

    @staticmethod
    def _iter_items(container: Any) -> list[Any]:
        if isinstance(container, list):
            return container
        if isinstance(container, dict):
            for k in ("items", "words", "sections", "data"):
                v = container.get(k)
                if isinstance(v, list):
                    return v
        return []

    def items(self) -> list[DictationItem]:
        if not self.is_yaml:
            return [DictationItem(id=str(i), text=t) for i, t in enumerate(self._read_lines())]

        out: list[DictationItem] = []
        for raw in self._iter_items(self._read_yaml()):
            text = self._as_nonempty_str(raw)
            spoken = None
            if text is None and isinstance(raw, dict):
                text = self._pick_str(raw, ("text", "display", "word", "value"))
                spoken = self._pick_str(raw, ("spoken", "spoken_text", "spokenText", "say"))
            if text is None:
                continue
            item_id = self._pick_str(raw, ("id",)) if isinstance(raw, dict) else None
            out.append(DictationItem(id=item_id or str(len(out)), text=text, spoken_text=spoken))
        return out

    def session_config(
        self,
        *,
        language: Language | None = None,
        mode: Mode | None = None,
    ) -> SessionConfig:
        """Build a SessionConfig; explicit arguments win over values in the file."""
        data = self._read_yaml() if self.is_yaml else None
        if language is None:
            found = data.get("language") if isinstance(data, dict) else None
            language = parse_enum(Language, found, Language.ENGLISH)
        if mode is None:
            found = data.get("mode") if isinstance(data, dict) else None
            mode = parse_enum(Mode, found, Mode.VOCABULARY)
        return SessionConfig.from_items(self.items(), language=language, mode=mode)


def split_lines(raw: str) -> list[str]:
    """Split pasted text into one entry per non-blank line."""
    return [line.strip() for line in (raw or "").splitlines() if line.strip()]
