"""Per-language constants for dictation playback.

Profiles are read-only. They carry the phrases spoken at the start/end of a
session, the vocabulary timing, and what the voice selector needs to target
a voice (locale aliases plus a ranked list of preferred voice names).
"""

from __future__ import annotations

from dataclasses import dataclass

from smartdict.domain.enums import Language, Mode


@dataclass(frozen=True)
class LanguageProfile:
    language: Language
    voice_tag: str
    start_phrase: str
    end_phrase: str
    review_announcement: str
    review_template: str
    word_template: str
    section_template: str
    vocab_repeats: int = 3
    vocab_repeat_interval_ms: int = 4000
    vocab_pause_ms: int = 5000
    # Other locale tags that name the same spoken language.
    locale_aliases: tuple[str, ...] = ()
    # Substring patterns, best first. A tuple entry must match all parts.
    preferred_voices: tuple[tuple[str, ...], ...] = ()

    def review_instruction(self, text: str) -> str:
        return self.review_template.format(text=text)

    def item_instruction(self, mode: Mode, index: int, total: int, text: str) -> str:
        """Instruction for the normal pass; `index` is 0-based."""
        if mode == Mode.VOCABULARY:
            return self.word_template.format(n=index + 1, text=text)
        return self.section_template.format(n=index + 1, total=total)


CHINESE_PROFILE = LanguageProfile(
    language=Language.CHINESE,
    voice_tag="zh-HK",
    start_phrase="默書開始",
    end_phrase="默書結束",
    review_announcement="現在複習所有單字",
    review_template="複習: {text}",
    word_template="第 {n} 個字: {text}",
    section_template="第 {n} / {total} 段",
    locale_aliases=("zh-HK", "yue-HK", "yue"),
    preferred_voices=(
        ("Sin-ji",),
        ("HiuGaai",),
        ("Hong Kong",),
        ("Google", "Cantonese"),
    ),
)

ENGLISH_PROFILE = LanguageProfile(
    language=Language.ENGLISH,
    voice_tag="en-GB",
    start_phrase="Dictation is about to begin",
    end_phrase="End of Dictation",
    review_announcement="Reviewing all words now",
    review_template="Review: {text}",
    word_template="Word {n}: {text}",
    section_template="Section {n} / {total}",
    locale_aliases=("en-GB",),
    preferred_voices=(
        ("Google UK",),
        ("Daniel",),
        ("Martha",),
        ("Arthur",),
    ),
)

LANGUAGE_CONFIG: dict[Language, LanguageProfile] = {
    Language.CHINESE: CHINESE_PROFILE,
    Language.ENGLISH: ENGLISH_PROFILE,
}

# Start/end chime. The sequencer cuts it off after END_CUE_DURATION_MS.
END_SOUND_URL = "https://cdn.pixabay.com/audio/2022/03/10/audio_5103362140.mp3"

START_SETTLE_MS = 1000
REVIEW_ANNOUNCE_PAUSE_MS = 2000
REVIEW_ITEM_PAUSE_MS = 2000
REVIEW_RATE = 0.3
END_CUE_DURATION_MS = 5000


def profile_for(language: Language) -> LanguageProfile:
    return LANGUAGE_CONFIG[language]


def profile_for_tag(tag: str) -> LanguageProfile | None:
    """Reverse lookup by voice tag, e.g. 'en-GB' -> ENGLISH_PROFILE."""
    wanted = (tag or "").strip().replace("_", "-").lower()
    for profile in LANGUAGE_CONFIG.values():
        if profile.voice_tag.lower() == wanted:
            return profile
    return None


__all__ = [
    "LanguageProfile",
    "LANGUAGE_CONFIG",
    "CHINESE_PROFILE",
    "ENGLISH_PROFILE",
    "END_SOUND_URL",
    "START_SETTLE_MS",
    "REVIEW_ANNOUNCE_PAUSE_MS",
    "REVIEW_ITEM_PAUSE_MS",
    "REVIEW_RATE",
    "END_CUE_DURATION_MS",
    "profile_for",
    "profile_for_tag",
]
