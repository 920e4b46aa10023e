"""
Session phase controller.

Decides which lifecycle phase the app is in (logged out, resolving the
profile, awaiting email verification, onboarding, active) from the session
signal, the profile fetch result and the onboarding flag. Every entry point
funnels into one serialized evaluation so the phase is always derived the
same way, whichever signal arrived last.
"""

from collections import deque
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import RLock
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..models.profile import ProfileSnapshot
from ..services.onboarding_store import DismissalStore, SessionDismissals
from ..services.profile_source import ProfileSource
from ..services.session_source import SessionSource
from ..utils.logger import get_logger
from .timers import ThreadTimerService, TimerHandle, TimerService

logger = get_logger(__name__)


class Phase(str, Enum):
    """Application lifecycle phases"""
    LOGGED_OUT = "logged_out"
    RESOLVING_PROFILE = "resolving_profile"
    NEEDS_VERIFICATION = "needs_verification"
    ONBOARDING = "onboarding"
    ACTIVE = "active"


class LogoutReason(str, Enum):
    """Why the controller forced a logout"""
    USER_REQUESTED = "user_requested"
    FETCH_TIMEOUT = "fetch_timeout"
    PROFILE_MISSING = "profile_missing"


class ResolutionOutcome(str, Enum):
    """Non-success outcomes of profile resolution; logged, never raised"""
    NO_SESSION = "no_session"
    PROFILE_UNAVAILABLE = "profile_unavailable"
    FETCH_TIMEOUT = "fetch_timeout"
    STALE_RESULT = "stale_result"


@dataclass(frozen=True)
class ControllerTimings:
    """Timeouts and windows for the controller"""
    fallback_after_seconds: float = 5.0
    force_logout_after_seconds: float = 10.0
    missing_profile_grace_seconds: Optional[float] = 3.0
    new_account_window: timedelta = timedelta(minutes=5)
    history_limit: int = 100

    @classmethod
    def from_settings(cls, session_settings) -> "ControllerTimings":
        """Build timings from a SessionSettings section"""
        return cls(
            fallback_after_seconds=session_settings.fallback_after_seconds,
            force_logout_after_seconds=session_settings.force_logout_after_seconds,
            missing_profile_grace_seconds=session_settings.missing_profile_grace_seconds,
            new_account_window=timedelta(minutes=session_settings.new_account_window_minutes),
            history_limit=session_settings.transition_history_limit,
        )


@dataclass
class PhaseTransition:
    """Represents a committed phase change"""
    from_phase: Phase
    to_phase: Phase
    trigger: str
    epoch: int
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)


PhaseListener = Callable[[PhaseTransition], None]
FallbackListener = Callable[[bool], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionPhaseController:
    """
    Single owner of the current Phase.

    Inputs are session presence changes, profile results, onboarding
    dismissal and its own timers. All of them run under one re-entrant lock,
    so evaluations never interleave. Listeners are notified after the new
    phase is committed, on the thread that delivered the triggering event;
    a listener may call back into the controller.

    Each session gets an epoch number. Fetches are tagged with the epoch
    that issued them and their results are dropped once the epoch has moved
    on (logout, forced logout, new login).
    """

    def __init__(
        self,
        session_source: SessionSource,
        profile_source: ProfileSource,
        timers: Optional[TimerService] = None,
        timings: Optional[ControllerTimings] = None,
        dismissals: Optional[DismissalStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_source = session_source
        self._profile_source = profile_source
        self._timers = timers or ThreadTimerService()
        self._timings = timings or ControllerTimings()
        self._dismissals = dismissals or SessionDismissals()
        self._clock = clock or _utcnow

        self._lock = RLock()
        self._phase = Phase.LOGGED_OUT
        self._session_present = False
        self._profile: Optional[ProfileSnapshot] = None
        self._last_account_id: Optional[str] = None
        self._is_new_account = False

        self._epoch = 0
        self._resolving_entries = 0
        self._watchdog_epoch: Optional[int] = None
        self._fetch_outstanding = False

        self._fallback_timer: Optional[TimerHandle] = None
        self._logout_timer: Optional[TimerHandle] = None
        self._grace_timer: Optional[TimerHandle] = None
        self._fallback_visible = False

        self._history: Deque[PhaseTransition] = deque(maxlen=self._timings.history_limit)
        self._phase_listeners: List[PhaseListener] = []
        self._fallback_listeners: List[FallbackListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

        logger.info("SessionPhaseController initialized")

    # Read access

    @property
    def current_phase(self) -> Phase:
        return self._phase

    @property
    def fallback_control_visible(self) -> bool:
        """True once the fallback timer fired; false again after leaving RESOLVING_PROFILE"""
        return self._fallback_visible

    @property
    def is_new_account(self) -> bool:
        """New-account classification from the most recent evaluation"""
        return self._is_new_account

    @property
    def profile(self) -> Optional[ProfileSnapshot]:
        return self._profile

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def session_present(self) -> bool:
        return self._session_present

    def on_phase_changed(self, callback: PhaseListener) -> Callable[[], None]:
        """Register a listener for committed transitions; returns an unsubscribe function"""
        with self._lock:
            self._phase_listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._phase_listeners:
                    self._phase_listeners.remove(callback)

        return unsubscribe

    def on_fallback_visible(self, callback: FallbackListener) -> Callable[[], None]:
        """Register a listener for fallback-control visibility changes"""
        with self._lock:
            self._fallback_listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._fallback_listeners:
                    self._fallback_listeners.remove(callback)

        return unsubscribe

    # Wiring

    def attach(self) -> None:
        """Subscribe to the session source"""
        with self._lock:
            if self._unsubscribe is not None:
                return
            self._unsubscribe = self._session_source.subscribe(self.on_session_changed)
            logger.info("Attached to session source", phase=self._phase.value)

    def detach(self) -> None:
        with self._lock:
            if self._unsubscribe is None:
                return
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        unsubscribe()

    def shutdown(self) -> None:
        """
        Cancel timers and stop listening to the session source.

        The epoch is advanced so a fetch still in flight is discarded when
        it completes; later profile pushes are ignored.
        """
        logger.info("Shutting down SessionPhaseController")
        with self._lock:
            self._closed = True
            self._epoch += 1
            self._fetch_outstanding = False
            self._cancel_timers()
            self._set_fallback_visible(False)
        self.detach()

    # Inbound events

    def on_session_changed(self, present: bool) -> None:
        """Session source callback: login, logout or token invalidation"""
        with self._lock:
            if self._closed:
                return
            present = bool(present)
            if present != self._session_present:
                self._session_present = present
                self._start_new_epoch()
            self._evaluate("session_present" if present else "session_absent")

    def on_profile_resolved(self, snapshot: Optional[ProfileSnapshot]) -> None:
        """
        Apply a profile result for the current session.

        Used for pushes such as a completed verification check or a profile
        update notification. Results of fetches issued by the controller
        arrive through their futures and are checked against their epoch.
        """
        with self._lock:
            self._apply_profile(snapshot, "profile_pushed")

    def dismiss_onboarding(self) -> None:
        with self._lock:
            if self._profile is None:
                logger.debug("Onboarding dismissal ignored without a profile", phase=self._phase.value)
                return
            self._dismissals.dismiss(self._profile.account_id)
            self._evaluate("onboarding_dismissed")

    def refresh_profile(self) -> bool:
        """
        Re-fetch the profile for the current session.

        Returns False when there is no session or a fetch is already
        outstanding.
        """
        with self._lock:
            if not self._session_present or self._fetch_outstanding:
                return False
            self._issue_fetch()
            return True

    def force_logout(self, reason: LogoutReason = LogoutReason.USER_REQUESTED) -> None:
        """Sign out and drop to LOGGED_OUT before returning"""
        with self._lock:
            self._force_logout(reason)

    # Evaluation

    def _evaluate(self, trigger: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        now = self._clock()
        profile = self._profile

        if not self._session_present:
            target = Phase.LOGGED_OUT
            self._cancel_timers()
            self._profile = None
            self._is_new_account = False
        elif profile is None:
            target = Phase.RESOLVING_PROFILE
        elif not profile.is_verified:
            target = Phase.NEEDS_VERIFICATION
            self._is_new_account = self._within_new_account_window(profile, now)
        else:
            self._is_new_account = self._within_new_account_window(profile, now)
            if self._is_new_account and not self._dismissals.is_dismissed(profile.account_id):
                target = Phase.ONBOARDING
            else:
                target = Phase.ACTIVE

        previous = self._phase
        entering_resolution = target == Phase.RESOLVING_PROFILE and previous != Phase.RESOLVING_PROFILE
        if entering_resolution:
            self._enter_resolution()
        elif previous == Phase.RESOLVING_PROFILE and target != Phase.RESOLVING_PROFILE:
            self._leave_resolution()

        self._commit(previous, target, trigger, metadata or {})
        if target != Phase.RESOLVING_PROFILE:
            self._set_fallback_visible(False)

        # Issued after the commit: a future that is already done runs its
        # callback inline and must see the committed phase.
        if entering_resolution and self._phase == Phase.RESOLVING_PROFILE and not self._fetch_outstanding:
            self._issue_fetch()

    def _within_new_account_window(self, profile: ProfileSnapshot, now: datetime) -> bool:
        return now - profile.created_at < self._timings.new_account_window

    def _commit(self, previous: Phase, target: Phase, trigger: str, metadata: Dict[str, Any]) -> None:
        if previous == target:
            return

        self._phase = target
        transition = PhaseTransition(
            from_phase=previous,
            to_phase=target,
            trigger=trigger,
            epoch=self._epoch,
            timestamp=self._clock(),
            metadata=metadata,
        )
        self._history.append(transition)

        logger.info(
            "Phase transition",
            from_phase=previous.value,
            to_phase=target.value,
            trigger=trigger,
            epoch=self._epoch,
        )

        for callback in list(self._phase_listeners):
            try:
                callback(transition)
            except Exception as e:
                logger.error("Phase listener failed", to_phase=target.value, error=str(e), exc_info=True)

    def _start_new_epoch(self) -> None:
        self._epoch += 1
        self._fetch_outstanding = False
        self._profile = None
        self._last_account_id = None
        self._cancel_timers()
        self._dismissals.clear_session()
        logger.debug("Session epoch started", epoch=self._epoch, session_present=self._session_present)

    # Profile resolution

    def _issue_fetch(self) -> None:
        epoch = self._epoch
        account_id = self._profile.account_id if self._profile else self._last_account_id
        self._fetch_outstanding = True
        try:
            future = self._profile_source.fetch(account_id)
        except Exception as e:
            self._fetch_outstanding = False
            logger.warning(
                "Profile fetch could not be issued",
                outcome=ResolutionOutcome.PROFILE_UNAVAILABLE.value,
                epoch=epoch,
                error=str(e),
            )
            self._apply_profile(None, "profile_fetch_failed")
            return

        logger.debug("Profile fetch issued", epoch=epoch, account_id=account_id)
        future.add_done_callback(lambda f: self._on_fetch_completed(epoch, f))

    def _on_fetch_completed(self, epoch: int, future: "Future[Optional[ProfileSnapshot]]") -> None:
        try:
            snapshot = future.result()
        except (CancelledError, Exception) as e:
            logger.warning(
                "Profile fetch failed",
                outcome=ResolutionOutcome.PROFILE_UNAVAILABLE.value,
                epoch=epoch,
                error=str(e) or type(e).__name__,
            )
            snapshot = None

        with self._lock:
            if epoch != self._epoch:
                logger.debug(
                    "Discarding profile result from an earlier session",
                    outcome=ResolutionOutcome.STALE_RESULT.value,
                    result_epoch=epoch,
                    current_epoch=self._epoch,
                )
                return
            self._fetch_outstanding = False
            self._apply_profile(snapshot, "profile_fetched")

    def _apply_profile(self, snapshot: Optional[ProfileSnapshot], trigger: str) -> None:
        if self._closed:
            logger.debug("Profile result ignored after shutdown", trigger=trigger)
            return
        if not self._session_present:
            logger.debug(
                "Profile result ignored without a session",
                outcome=ResolutionOutcome.NO_SESSION.value,
                trigger=trigger,
            )
            return

        if snapshot is not None:
            self._last_account_id = snapshot.account_id
        self._profile = snapshot
        self._evaluate(trigger)

        if snapshot is None and self._phase == Phase.RESOLVING_PROFILE:
            logger.info(
                "Profile unavailable",
                outcome=ResolutionOutcome.PROFILE_UNAVAILABLE.value,
                epoch=self._epoch,
            )
            self._arm_grace_timer()

    # Timers

    def _resolution_token(self) -> Tuple[int, int]:
        return (self._epoch, self._resolving_entries)

    def _token_current(self, token: Tuple[int, int]) -> bool:
        return token == self._resolution_token() and self._phase == Phase.RESOLVING_PROFILE

    def _enter_resolution(self) -> None:
        self._resolving_entries += 1
        if self._watchdog_epoch == self._epoch:
            return

        self._watchdog_epoch = self._epoch
        token = self._resolution_token()
        self._fallback_timer = self._timers.schedule(
            self._timings.fallback_after_seconds,
            lambda: self._on_fallback_timer(token),
            name="profile-fallback",
        )
        self._logout_timer = self._timers.schedule(
            self._timings.force_logout_after_seconds,
            lambda: self._on_logout_timer(token),
            name="profile-watchdog",
        )
        logger.debug(
            "Resolution timers armed",
            epoch=self._epoch,
            fallback_after_seconds=self._timings.fallback_after_seconds,
            force_logout_after_seconds=self._timings.force_logout_after_seconds,
        )

    def _leave_resolution(self) -> None:
        self._cancel_timers()

    def _arm_grace_timer(self) -> None:
        grace = self._timings.missing_profile_grace_seconds
        if grace is None or self._grace_timer is not None:
            return
        token = self._resolution_token()
        self._grace_timer = self._timers.schedule(
            grace,
            lambda: self._on_grace_timer(token),
            name="missing-profile-grace",
        )
        logger.debug("Missing-profile grace timer armed", epoch=self._epoch, grace_seconds=grace)

    def _cancel_timers(self) -> None:
        cancelled = []
        for attr in ("_fallback_timer", "_logout_timer", "_grace_timer"):
            timer = getattr(self, attr)
            if timer is not None:
                timer.cancel()
                setattr(self, attr, None)
                cancelled.append(attr.strip("_"))
        if cancelled:
            logger.debug("Timers cancelled", timers=cancelled, epoch=self._epoch)

    def _set_fallback_visible(self, visible: bool) -> None:
        if self._fallback_visible == visible:
            return
        self._fallback_visible = visible
        for callback in list(self._fallback_listeners):
            try:
                callback(visible)
            except Exception as e:
                logger.error("Fallback listener failed", error=str(e), exc_info=True)

    def _on_fallback_timer(self, token: Tuple[int, int]) -> None:
        with self._lock:
            if not self._token_current(token):
                return
            self._fallback_timer = None
            logger.info("Profile still resolving, showing return-to-login control", epoch=self._epoch)
            self._set_fallback_visible(True)

    def _on_logout_timer(self, token: Tuple[int, int]) -> None:
        with self._lock:
            if not self._token_current(token):
                return
            self._logout_timer = None
            logger.warning(
                "Profile resolution timed out",
                outcome=ResolutionOutcome.FETCH_TIMEOUT.value,
                epoch=self._epoch,
            )
            self._force_logout(LogoutReason.FETCH_TIMEOUT)

    def _on_grace_timer(self, token: Tuple[int, int]) -> None:
        with self._lock:
            if not self._token_current(token) or self._profile is not None:
                return
            self._grace_timer = None
            self._force_logout(LogoutReason.PROFILE_MISSING)

    # Forced logout

    def _force_logout(self, reason: LogoutReason) -> None:
        logger.warning("Forcing logout", reason=reason.value, phase=self._phase.value, epoch=self._epoch)
        self._session_present = False
        self._start_new_epoch()
        self._evaluate(f"force_logout:{reason.value}", {"reason": reason.value})
        try:
            self._session_source.sign_out()
        except Exception as e:
            logger.error("Sign-out command failed", reason=reason.value, error=str(e), exc_info=True)

    # Diagnostics

    def get_transition_history(self, limit: int = 10) -> List[PhaseTransition]:
        """Get recent phase transitions, oldest first"""
        with self._lock:
            return list(self._history)[-limit:]

    def get_state_summary(self) -> str:
        """Get human-readable state summary"""
        with self._lock:
            lines = [
                f"Current Phase: {self._phase.value}",
                f"Session: {'Present' if self._session_present else 'Absent'}",
                f"Profile: {self._profile.account_id if self._profile else 'None'}",
                f"Epoch: {self._epoch}",
            ]
            if self._phase == Phase.RESOLVING_PROFILE:
                lines.append(f"Fetch Outstanding: {self._fetch_outstanding}")
                lines.append(f"Fallback Visible: {self._fallback_visible}")
            if self._profile is not None:
                lines.append(f"New Account: {self._is_new_account}")
            return "\n".join(lines)
