"""Session presence sources consumed by the session phase controller"""

from threading import Lock
from typing import Callable, List, Optional, Protocol

from ..utils.logger import get_logger

logger = get_logger(__name__)

SessionCallback = Callable[[bool], None]


class SessionSource(Protocol):
    """Reports whether an authenticated session exists"""

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]: ...

    def sign_out(self) -> None: ...


class InMemorySessionSource:
    """
    Session source backed by process memory.

    Behaves like an auth-state listener: a new subscriber immediately
    receives the current presence, and every login, logout or token
    invalidation is pushed to all subscribers afterwards.
    """

    def __init__(self, account_id: Optional[str] = None):
        self._lock = Lock()
        self._subscribers: List[SessionCallback] = []
        self.account_id = account_id
        self.sign_out_calls = 0

    @property
    def present(self) -> bool:
        return self.account_id is not None

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)
            present = self.present

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        callback(present)
        return unsubscribe

    def sign_in(self, account_id: str) -> None:
        """
        Start a session for an account.

        Switching to a different account while signed in ends the previous
        session first, so subscribers see absent then present.
        """
        with self._lock:
            previous = self.account_id
            self.account_id = account_id
        if previous is not None and previous != account_id:
            logger.info("Session switched account", previous_account_id=previous, account_id=account_id)
            self._publish(False)
        logger.info("Session started", account_id=account_id)
        self._publish(True)

    def invalidate(self) -> None:
        """Drop the session without a sign-out request (expired or revoked token)"""
        with self._lock:
            if self.account_id is None:
                return
            self.account_id = None
        logger.info("Session invalidated")
        self._publish(False)

    def sign_out(self) -> None:
        with self._lock:
            self.sign_out_calls += 1
            was_present = self.account_id is not None
            self.account_id = None
        logger.info("Sign-out requested", was_present=was_present)
        if was_present:
            self._publish(False)

    def _publish(self, present: bool) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(present)
