"""Collaborator interfaces the execution session calls into."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)


class StepHost(ABC):
    """The embedding UI: value store, code display and error sink."""

    @abstractmethod
    def get_external_values(self) -> dict[str, Any]:
        """Current values of all variables the program may read."""
        ...

    @abstractmethod
    def set_external_value(self, name: str, value: Any) -> None: ...

    @abstractmethod
    def highlight_range(self, start: int, end: int) -> None: ...

    @abstractmethod
    def apply_variable_cue(self, names: Iterable[str]) -> None: ...

    @abstractmethod
    def clear_all_cues(self) -> None: ...

    @abstractmethod
    def report_error(self, message: str) -> None: ...


class InMemoryHost(StepHost):
    """Dict-backed host that records every notification it receives."""

    def __init__(self, values: dict[str, Any] | None = None):
        self.values: dict[str, Any] = dict(values or {})
        self.highlights: list[tuple[int, int]] = []
        self.cues: list[frozenset[str]] = []
        self.cleared = 0
        self.errors: list[str] = []

    def get_external_values(self) -> dict[str, Any]:
        return dict(self.values)

    def set_external_value(self, name: str, value: Any) -> None:
        self.values[name] = value

    def highlight_range(self, start: int, end: int) -> None:
        self.highlights.append((start, end))

    def apply_variable_cue(self, names: Iterable[str]) -> None:
        self.cues.append(frozenset(names))

    def clear_all_cues(self) -> None:
        self.cleared += 1

    def report_error(self, message: str) -> None:
        logger.error(message)
        self.errors.append(message)


# ── Timers ───────────────────────────────────────────────────────


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """Runs a callback once after a delay, on the thread that owns the session."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class _LoopTimer(TimerHandle):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class LoopScheduler(Scheduler):
    """Cooperative scheduler drained by the host's own event loop.

    Nothing runs until the host calls ``run_pending()``; due callbacks then
    run on the calling thread in due-time order.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._timers: list[_LoopTimer] = []

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _LoopTimer(self._clock() + delay, callback)
        self._timers.append(timer)
        return timer

    def run_pending(self) -> int:
        """Run every callback that is due now; returns how many ran."""
        now = self._clock()
        live = [timer for timer in self._timers if not timer.cancelled]
        due = sorted((t for t in live if t.due <= now), key=lambda t: t.due)
        self._timers = [t for t in live if t.due > now]
        ran = 0
        for timer in due:
            # an earlier callback may have cancelled a later one
            if timer.cancelled:
                continue
            timer.callback()
            ran += 1
        return ran
