"""Timing and cancellation primitives for the playback sequencer.

`CancelToken` is handed to every suspension point of a session. Stop or
teardown invalidates it, and continuations check it before touching state.

`Delay` is a pausable single-shot timer. Pausing keeps the remaining time, so
resuming continues the same wait instead of restarting it.

`QtTiming` is the default timing backend; tests inject a fake with the same
`wait(ms, callback)` signature.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QElapsedTimer, QObject, QTimer

logger = logging.getLogger(__name__)

VoidFn = Callable[[], None]


class CancelToken:
    """One-way validity flag shared by every continuation of a session."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def guard(self, fn: VoidFn) -> VoidFn:
        """Wrap `fn` so it becomes a no-op once the token is cancelled."""

        def _guarded() -> None:
            if self._cancelled:
                return
            fn()

        return _guarded


class Delay(QObject):
    """Pausable one-shot delay that calls `callback` once after `ms`.

    The object schedules its own deletion once it has fired or been cancelled.
    """

    def __init__(self, ms: int, callback: VoidFn, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._remaining_ms: int = max(0, int(ms))
        self._callback: VoidFn = callback
        self._done: bool = False
        self._paused: bool = False

        self._clock = QElapsedTimer()
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._fire)  # type: ignore

    def start(self) -> "Delay":
        if self._done:
            return self
        self._paused = False
        self._clock.start()
        self._timer.start(self._remaining_ms)
        return self

    def pause(self) -> None:
        if self._done or self._paused:
            return
        self._paused = True
        if self._timer.isActive():
            elapsed = int(self._clock.elapsed())
            self._timer.stop()
            self._remaining_ms = max(0, self._remaining_ms - elapsed)

    def resume(self) -> None:
        if self._done or not self._paused:
            return
        self.start()

    def cancel(self) -> None:
        if self._done:
            return
        self._done = True
        self._timer.stop()
        self.deleteLater()

    def is_pending(self) -> bool:
        return not self._done

    def remaining_ms(self) -> int:
        if self._done:
            return 0
        if self._timer.isActive():
            return max(0, self._remaining_ms - int(self._clock.elapsed()))
        return self._remaining_ms

    def _fire(self) -> None:
        if self._done:
            return
        self._done = True
        try:
            self._callback()
        except Exception:
            # Do not let a continuation error kill the Qt event loop.
            logger.exception("Delay callback failed")
        finally:
            self.deleteLater()


class QtTiming:
    """Creates running `Delay` objects parented to `parent`."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._parent = parent

    def wait(self, ms: int, callback: VoidFn) -> Delay:
        return Delay(ms, callback, parent=self._parent).start()


__all__ = ["CancelToken", "Delay", "QtTiming"]
