"""
Controller package exports.

Provides a stable import surface for the sequencer and its host glue.
"""

from .dictation_sequencer import PlaybackSequencer  # noqa: F401
from .session_controller import DictationSessionController  # noqa: F401

__all__ = [
    "DictationSessionController",
    "PlaybackSequencer",
]
