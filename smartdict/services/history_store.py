from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from smartdict.domain.enums import Language, Mode, parse_enum
from smartdict.domain.models import HistoryEntry
from smartdict.services.settings_store import default_data_dir, load_yaml_dict, save_yaml_dict

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 50


class HistoryStore:
    """Per-user dictation history kept in history.yaml.

    Entries are stored newest first and capped at MAX_HISTORY_ENTRIES per user.
    Calls with an empty user id are ignored (nothing is written or returned).
    """

    def __init__(
        self,
        history_path: str | Path | None = None,
        *,
        clock_ms: Optional[Callable[[], int]] = None,
    ) -> None:
        if history_path is None:
            self._path = default_data_dir() / "history.yaml"
        else:
            self._path = Path(history_path)
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    @property
    def path(self) -> Path:
        return self._path

    def record_history(
        self,
        user_id: str,
        language: Language,
        mode: Mode,
        item_count: int,
        elapsed_seconds: int,
    ) -> Optional[HistoryEntry]:
        """Prepend one entry for `user_id`. Returns the stored entry."""
        if not user_id:
            return None
        now = int(self._clock_ms())
        entry = HistoryEntry(
            id=str(now),
            date=now,
            language=language,
            mode=mode,
            item_count=int(item_count),
            duration_played=max(0, int(elapsed_seconds)),
        )
        data = load_yaml_dict(self._path)
        rows = data.get(user_id) or []
        if not isinstance(rows, list):
            rows = []
        rows = [self._to_row(entry)] + rows
        data[user_id] = rows[:MAX_HISTORY_ENTRIES]
        try:
            save_yaml_dict(self._path, data)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to save history to %s: %s", self._path, e)
        else:
            logger.info(
                "History recorded for %s: %s/%s items=%d elapsed=%ds",
                user_id, language.value, mode.value, entry.item_count, entry.duration_played,
            )
        return entry

    def history_items(self, user_id: str) -> list[HistoryEntry]:
        if not user_id:
            return []
        rows = load_yaml_dict(self._path).get(user_id) or []
        if not isinstance(rows, list):
            return []
        out: list[HistoryEntry] = []
        for row in rows:
            entry = self._from_row(row)
            if entry is not None:
                out.append(entry)
        return out

    def clear_history(self, user_id: str) -> None:
        if not user_id:
            return
        data = load_yaml_dict(self._path)
        if user_id not in data:
            return
        del data[user_id]
        try:
            save_yaml_dict(self._path, data)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to clear history in %s: %s", self._path, e)

    @staticmethod
    def _to_row(entry: HistoryEntry) -> dict[str, Any]:
        return {
            "id": entry.id,
            "date": entry.date,
            "language": entry.language.value,
            "mode": entry.mode.value,
            "itemCount": entry.item_count,
            "durationPlayed": entry.duration_played,
        }

    @staticmethod
    def _from_row(row: Any) -> Optional[HistoryEntry]:
        if not isinstance(row, dict):
            return None
        language = parse_enum(Language, row.get("language"))
        mode = parse_enum(Mode, row.get("mode"))
        if language is None or mode is None:
            return None
        try:
            return HistoryEntry(
                id=str(row.get("id", "")),
                date=int(row.get("date", 0)),
                language=language,
                mode=mode,
                item_count=int(row.get("itemCount", 0)),
                duration_played=int(row.get("durationPlayed", 0)),
            )
        except (TypeError, ValueError):
            return None


__all__ = ["HistoryStore", "MAX_HISTORY_ENTRIES"]
