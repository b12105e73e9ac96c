from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

from eventstats.config import ResponsiveConfig
from eventstats.layout.height import RowLayout

LOGGER = logging.getLogger(__name__)


class CancellableTimer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], CancellableTimer]


def _threading_timer(interval_s: float, callback: Callable[[], None]) -> CancellableTimer:
    timer = threading.Timer(interval_s, callback)
    timer.daemon = True
    return timer


class ResizeCoalescer:
    """Debounces observed widths and re-solves a row once the width settles.

    Rendering surfaces report every width they observe; only the last
    observation inside the quiet window reaches ``solve``.
    """

    def __init__(
        self,
        solve: Callable[[float], RowLayout],
        on_result: Callable[[RowLayout], None],
        *,
        quiet_ms: int = 100,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        if quiet_ms < 0:
            raise ValueError("quiet_ms must be >= 0.")
        self._solve = solve
        self._on_result = on_result
        self._quiet_s = quiet_ms / 1000.0
        self._timer_factory = timer_factory or _threading_timer
        self._lock = threading.Lock()
        self._timer: CancellableTimer | None = None
        self._pending_width: float | None = None
        self._generation = 0
        self.last_width: float | None = None

    @classmethod
    def from_config(
        cls,
        responsive: ResponsiveConfig,
        solve: Callable[[float], RowLayout],
        on_result: Callable[[RowLayout], None],
        *,
        timer_factory: TimerFactory | None = None,
    ) -> ResizeCoalescer:
        return cls(
            solve,
            on_result,
            quiet_ms=responsive.resize_debounce_ms,
            timer_factory=timer_factory,
        )

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending_width is not None

    def observe(self, width_px: float) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._pending_width = width_px
            self._timer = self._timer_factory(
                self._quiet_s, lambda generation=self._generation: self._fire(generation)
            )
            self._timer.start()

    def flush(self) -> RowLayout | None:
        """Solve the pending width immediately instead of waiting for the timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            generation = self._generation
        return self._fire(generation)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending_width = None
            self._generation += 1

    def _fire(self, generation: int) -> RowLayout | None:
        with self._lock:
            if generation != self._generation:
                # A newer observation owns the pending width.
                return None
            width = self._pending_width
            self._pending_width = None
            self._timer = None
        if width is None:
            return None
        if width == self.last_width:
            LOGGER.debug("Width %.1fpx unchanged; skipping re-solve", width)
            return None
        layout = self._solve(width)
        self.last_width = width
        self._on_result(layout)
        return layout
