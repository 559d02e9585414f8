"""
Single-slot scheduled-task abstraction used for the debounce timer.

A scheduler holds at most one pending callback. Scheduling again replaces
the pending callback, which is what makes the debounce trailing.

- LoopScheduler: real timers on the running asyncio event loop
- ManualScheduler: virtual clock advanced explicitly (tests, replays)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class SaveScheduler(ABC):
    """Schedule / cancel / reschedule a single delayed callback."""

    @abstractmethod
    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` after ``delay_ms``, replacing any pending callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Drop the pending callback, if any."""

    @property
    @abstractmethod
    def pending(self) -> bool:
        """Whether a callback is waiting to fire."""


class LoopScheduler(SaveScheduler):
    """
    Scheduler backed by ``loop.call_later``.
    
    Args:
        loop: Event loop to schedule on. Defaults to the running loop at
            the time of the first ``schedule`` call.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(delay_ms / 1000.0, self._fire, callback)

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None


class ManualScheduler(SaveScheduler):
    """
    Virtual-clock scheduler.
    
    Time only moves when ``advance`` is called, so debounce behaviour can be
    asserted deterministically.
    
    Example:
        >>> scheduler = ManualScheduler()
        >>> scheduler.schedule(1000, lambda: print("fired"))
        >>> scheduler.advance(999)
        0
        >>> scheduler.advance(1)
        fired
        1
    """

    def __init__(self):
        self.now_ms: float = 0.0
        self._due_ms: Optional[float] = None
        self._callback: Optional[Callable[[], None]] = None
        self.fired_count = 0

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> None:
        self._due_ms = self.now_ms + delay_ms
        self._callback = callback

    def cancel(self) -> None:
        self._due_ms = None
        self._callback = None

    @property
    def pending(self) -> bool:
        return self._callback is not None

    @property
    def due_ms(self) -> Optional[float]:
        """Virtual time at which the pending callback fires."""
        return self._due_ms

    def advance(self, ms: float) -> int:
        """
        Move the virtual clock forward and fire the callback if it became due.
        
        Returns:
            Number of callbacks fired (0 or 1)
        """
        self.now_ms += ms
        if self._callback is None or self._due_ms is None or self._due_ms > self.now_ms:
            return 0
        callback = self._callback
        self._callback = None
        self._due_ms = None
        self.fired_count += 1
        logger.debug(f"Virtual timer fired at {self.now_ms:.0f}ms")
        callback()
        return 1
