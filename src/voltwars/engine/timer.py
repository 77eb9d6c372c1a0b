"""Per-phase countdown that forces a timeout when a player stalls."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Final

from .phases import TIMED_PHASES, Phase

__all__ = ["DEFAULT_PHASE_SECONDS", "PhaseTimer"]

logger = logging.getLogger(__name__)

DEFAULT_PHASE_SECONDS: Final = 120.0


class PhaseTimer:
    """Arms one ``threading.Timer`` per timed phase.

    Each ``arm`` bumps a generation counter and cancels the previous timer, so
    a timer that was already firing when the phase moved on sees a stale
    generation and does nothing.  ``seconds <= 0`` disables the countdown.
    """

    def __init__(self, on_expire: Callable[[Phase], object], seconds: float = DEFAULT_PHASE_SECONDS) -> None:
        self._on_expire = on_expire
        self.seconds = float(seconds)
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: threading.Timer | None = None
        self._deadline: float | None = None

    @property
    def enabled(self) -> bool:
        return self.seconds > 0

    def arm(self, phase: Phase) -> None:
        with self._lock:
            self._cancel_locked()
            if not self.enabled or phase not in TIMED_PHASES:
                return
            generation = self._generation
            timer = threading.Timer(self.seconds, self._fire, args=(phase, generation))
            timer.daemon = True
            self._timer = timer
            self._deadline = time.monotonic() + self.seconds
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def remaining(self) -> float | None:
        with self._lock:
            if self._deadline is None:
                return None
            return max(0.0, self._deadline - time.monotonic())

    def _cancel_locked(self) -> None:
        self._generation += 1
        self._deadline = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, phase: Phase, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._deadline = None
        logger.debug("phase timer expired", extra={"phase": phase.value})
        self._on_expire(phase)
