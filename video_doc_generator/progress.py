"""
Step/total progress reporting for the generation pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressUpdate:
    """A single progress notification.

    Attributes:
        message: Human-readable description of the current activity.
        step: Index of the current step (0 before the first step starts).
        total_steps: Number of steps currently expected for the run.
    """

    message: str
    step: int
    total_steps: int

    @property
    def fraction(self) -> float:
        """Completed fraction in the range 0.0-1.0."""
        if self.total_steps <= 0:
            return 0.0
        return min(1.0, max(0.0, self.step / self.total_steps))


ProgressCallback = Callable[[ProgressUpdate], None]


class ProgressTracker:
    """Counts pipeline steps and forwards updates to a callback.

    The step counter never decreases and never exceeds the total; the total
    may grow once the real amount of work is known (e.g. after splitting).
    """

    def __init__(self, callback: ProgressCallback | None = None, total_steps: int = 0):
        self._callback = callback
        self.step = 0
        self.total_steps = max(0, total_steps)

    def set_total(self, total_steps: int) -> None:
        if total_steps > self.total_steps:
            self.total_steps = total_steps

    def advance(self, message: str) -> ProgressUpdate:
        """Start the next step and emit its message."""
        self.step += 1
        if self.step > self.total_steps:
            self.total_steps = self.step
        return self._emit(message)

    def detail(self, message: str) -> ProgressUpdate:
        """Emit a message for the current step without advancing."""
        return self._emit(message)

    def complete(self, message: str = "Document generation completed") -> ProgressUpdate:
        self.step = self.total_steps
        return self._emit(message)

    def _emit(self, message: str) -> ProgressUpdate:
        update = ProgressUpdate(message=message, step=self.step, total_steps=self.total_steps)
        logger.info("[%d/%d] %s", update.step, update.total_steps, message)
        if self._callback is not None:
            self._callback(update)
        return update
