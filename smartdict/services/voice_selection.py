from __future__ import annotations

import logging
import os
from typing import Iterable, Optional, Sequence

from smartdict.domain.language_profiles import LanguageProfile
from smartdict.services.speech import Voice

logger = logging.getLogger(__name__)


def normalise_locale(tag: Optional[str]) -> str:
    """'zh_HK' / 'ZH-hk' -> 'zh-hk'."""
    return (tag or "").strip().replace("_", "-").lower()


def locale_matches(voice_locale: Optional[str], profile: LanguageProfile) -> bool:
    """True if the voice locale is the profile's tag or one of its aliases."""
    loc = normalise_locale(voice_locale)
    if not loc:
        return False
    targets = {normalise_locale(profile.voice_tag)}
    targets.update(normalise_locale(a) for a in profile.locale_aliases)
    return loc in targets


def _name_matches(name: str, pattern: Sequence[str]) -> bool:
    lowered = (name or "").lower()
    return all(part.lower() in lowered for part in pattern)


def select_voice(
    voices: Iterable[Voice],
    profile: LanguageProfile,
    override: Optional[str] = None,
) -> Optional[Voice]:
    """Pick the best voice for `profile` from an externally enumerated catalog.

    Order:
    1) `override` (or SMARTDICT_VOICE) if a voice with that exact name exists
    2) ranked preferred names among locale-matching voices
    3) first locale-matching voice
    4) None (platform default)

    Never raises.
    """
    try:
        catalog = [v for v in (voices or []) if isinstance(v, Voice)]
    except Exception as e:
        logger.debug("Voice catalog enumeration failed: %s", e)
        return None

    try:
        wanted = (override if override is not None else os.environ.get("SMARTDICT_VOICE", "")).strip()
        if wanted:
            for v in catalog:
                if v.name.lower() == wanted.lower():
                    return v

        local = [v for v in catalog if locale_matches(v.locale, profile)]
        for pattern in profile.preferred_voices:
            for v in local:
                if _name_matches(v.name, pattern):
                    return v
        if local:
            return local[0]
    except Exception as e:
        logger.debug("Voice selection failed, using default: %s", e)
    return None


__all__ = ["locale_matches", "normalise_locale", "select_voice"]
