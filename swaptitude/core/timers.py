"""One-shot cancellable timers for the session controller"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol

from ..utils.logger import get_logger

logger = get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerService(Protocol):
    def schedule(self, delay_seconds: float, callback: Callable[[], None], name: str = "") -> TimerHandle: ...


class ThreadTimerService:
    """Runs each timer on its own daemon thread (threading.Timer)"""

    def schedule(self, delay_seconds: float, callback: Callable[[], None], name: str = "") -> TimerHandle:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        if name:
            timer.name = f"swaptitude-{name}"
        timer.start()
        logger.debug("Timer scheduled", timer=name, delay_seconds=delay_seconds)
        return timer


class ManualTimer:
    """Timer owned by a ManualTimerService; fires only when the clock is advanced"""

    def __init__(self, due: datetime, callback: Callable[[], None], name: str = ""):
        self.due = due
        self.callback = callback
        self.name = name
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not self.cancelled and not self.fired


class ManualTimerService:
    """
    Timer service driven by an explicit virtual clock.

    Used by the scenario simulator and the test suite so that timeout
    behaviour can be replayed instantly and deterministically. Pass
    ``clock`` to the controller so "now" and timer deadlines agree.
    """

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.now(timezone.utc)
        self._timers: List[ManualTimer] = []

    def clock(self) -> datetime:
        return self.now

    def schedule(self, delay_seconds: float, callback: Callable[[], None], name: str = "") -> ManualTimer:
        timer = ManualTimer(self.now + timedelta(seconds=delay_seconds), callback, name)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in deadline order"""
        target = self.now + timedelta(seconds=seconds)
        while True:
            due = [t for t in self._timers if t.pending and t.due <= target]
            if not due:
                break
            # sort is stable, so equal deadlines fire in scheduling order
            timer = sorted(due, key=lambda t: t.due)[0]
            self.now = timer.due
            timer.fired = True
            timer.callback()
        self.now = target

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self._timers if t.pending]
