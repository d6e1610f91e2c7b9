"""SmartDict: timed dictation playback (Cantonese / English)."""

__version__ = "0.1.0"
