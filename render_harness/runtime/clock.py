"""Deterministic virtual clock and the backend callback map it drives.

The render backend's animation and message scheduling reads "now" through
the ``time_source`` capability. Substituting that single read point with a
:class:`VirtualClock` makes every frame, in every run, happen at the same
logical instant, which is what makes snapshots byte-stable.

Invariants:
    - The clock value is ``TIME_OFFSET_NANOS + elapsed`` and never decreases.
    - Time only moves through :meth:`VirtualClock.advance_to` / :meth:`VirtualClock.at`.
    - Draining the callback map happens under the clock's lock; the map is
      not safe for concurrent iteration and mutation.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

logger = logging.getLogger(__name__)

# Frame schedulers reject a frame time of 0, so virtual time starts an hour in.
TIME_OFFSET_NANOS = 3_600_000_000_000

NANOS_PER_MILLI = 1_000_000


def millis_to_nanos(millis: int) -> int:
    return int(millis) * NANOS_PER_MILLI


# ---------------------------------------------------------------------------
# Callback map
# ---------------------------------------------------------------------------


@dataclass(order=True)
class _PendingCallback:
    due_nanos: int
    seq: int
    fn: Callable[[], None] = field(compare=False)


class CallbackScheduler:
    """Pending handler messages and frame callbacks of one backend session.

    Parameters
    ----------
    time_source : Callable[[], int]
        Returns the current time in nanoseconds. Backends pass a resolver
        for the ``time_source`` capability so substitutes are honoured.
    """

    def __init__(self, time_source: Callable[[], int]) -> None:
        self._time_source = time_source
        self._handler: list[_PendingCallback] = []
        self._frame: list[tuple[int, Callable[[int], None]]] = []
        self._cancelled: set[int] = set()
        self._seq = itertools.count()
        self._draining = False
        self.callbacks_running = False

    def now(self) -> int:
        return self._time_source()

    def post(self, fn: Callable[[], None], delay_ms: int = 0) -> int:
        """Schedule ``fn`` to run ``delay_ms`` after now. Returns a token."""
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        token = next(self._seq)
        due = self.now() + millis_to_nanos(delay_ms)
        heapq.heappush(self._handler, _PendingCallback(due, token, fn))
        return token

    def post_frame_callback(self, fn: Callable[[int], None]) -> int:
        """Schedule ``fn(frame_nanos)`` for the next frame. Returns a token."""
        token = next(self._seq)
        self._frame.append((token, fn))
        return token

    def remove(self, token: int) -> None:
        self._cancelled.add(token)

    def pending(self) -> int:
        handler = sum(1 for cb in self._handler if cb.seq not in self._cancelled)
        frame = sum(1 for token, _ in self._frame if token not in self._cancelled)
        return handler + frame

    def clear(self) -> None:
        self._handler.clear()
        self._frame.clear()
        self._cancelled.clear()

    def run_due(self, now_nanos: int) -> int:
        """Run handler callbacks due at or before ``now_nanos``.

        Callbacks posted while draining run in the same pass when they are
        already due. Re-entrant calls return immediately.
        """
        if self._draining:
            return 0

        self._draining = True
        ran = 0
        try:
            while self._handler and self._handler[0].due_nanos <= now_nanos:
                cb = heapq.heappop(self._handler)
                if cb.seq in self._cancelled:
                    self._cancelled.discard(cb.seq)
                    continue
                cb.fn()
                ran += 1
        finally:
            self._draining = False
        return ran

    def run_frame_callbacks(self, frame_nanos: int) -> int:
        """Run the current batch of frame callbacks.

        Callbacks posted by the batch wait for the next frame.
        """
        batch, self._frame = self._frame, []
        ran = 0
        for token, fn in batch:
            if token in self._cancelled:
                self._cancelled.discard(token)
                continue
            fn(frame_nanos)
            ran += 1
        return ran


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class VirtualClock:
    """Monotonic, explicitly advanced nanosecond clock."""

    def __init__(self, offset_nanos: int = TIME_OFFSET_NANOS) -> None:
        if offset_nanos <= 0:
            raise ValueError("offset_nanos must be positive")
        self._offset = offset_nanos
        self._nanos = offset_nanos
        self._lock = threading.RLock()

    @property
    def offset(self) -> int:
        return self._offset

    def now(self) -> int:
        """Current virtual time in nanoseconds (offset included)."""
        return self._nanos

    def uptime_millis(self) -> int:
        return self._nanos // NANOS_PER_MILLI

    def elapsed(self) -> int:
        """Nanoseconds advanced past the offset."""
        return self._nanos - self._offset

    def _set(self, nanos: int) -> int:
        target = self._offset + int(nanos)
        if target < self._nanos:
            raise ValueError(
                f"Virtual clock cannot move backwards: "
                f"{nanos} ns < elapsed {self.elapsed()} ns"
            )
        self._nanos = target
        return target

    def advance_to(self, nanos: int, scheduler: CallbackScheduler | None = None) -> int:
        """Set the clock to ``offset + nanos`` and drain due callbacks.

        Returns the new virtual time.
        """
        if scheduler is None:
            return self._set(nanos)
        with self.at(nanos, scheduler) as now:
            return now

    @contextmanager
    def at(self, nanos: int, scheduler: CallbackScheduler) -> Iterator[int]:
        """Run the caller's block at virtual time ``offset + nanos``.

        Due handler callbacks and one frame's callbacks run first, with the
        scheduler's ``callbacks_running`` guard held for the whole block.
        """
        now = self._set(nanos)
        scheduler.callbacks_running = True
        try:
            self.drain(scheduler)
            scheduler.run_frame_callbacks(now)
            yield now
        except Exception:
            logger.error("Failed executing frame callbacks at %d ns", now, exc_info=True)
            raise
        finally:
            scheduler.callbacks_running = False

    def drain(self, scheduler: CallbackScheduler) -> int:
        """Run due handler callbacks under the clock lock."""
        with self._lock:
            return scheduler.run_due(self._nanos)
