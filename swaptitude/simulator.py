"""
Scripted lifecycle scenarios for the session phase controller.

Each scenario drives an in-memory session source and a deferred profile
source on a virtual clock, so a 10 second timeout replays instantly.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from .app import SwaptitudeApp
from .core.phase_controller import Phase, PhaseTransition, SessionPhaseController
from .core.timers import ManualTimerService
from .models.profile import ProfileSnapshot
from .services.profile_source import DeferredProfileSource
from .services.session_source import InMemorySessionSource
from .utils.config import Settings


@dataclass
class ScenarioHarness:
    app: SwaptitudeApp
    controller: SessionPhaseController
    session: InMemorySessionSource
    profiles: DeferredProfileSource
    timers: ManualTimerService
    notes: List[str] = field(default_factory=list)

    def note(self, text: str) -> None:
        self.notes.append(f"{self.controller.current_phase.value}: {text}")


@dataclass
class ScenarioResult:
    name: str
    final_phase: Phase
    transitions: List[PhaseTransition]
    sign_out_calls: int
    notes: List[str]


def build_harness(settings: Optional[Settings] = None) -> ScenarioHarness:
    timers = ManualTimerService()
    session = InMemorySessionSource()
    profiles = DeferredProfileSource()
    app = SwaptitudeApp(
        settings=settings or Settings(),
        session_source=session,
        profile_source=profiles,
        timers=timers,
        clock=timers.clock,
        configure_logging=False,
    )
    controller = app.start()
    return ScenarioHarness(app, controller, session, profiles, timers)


def _new_user(h: ScenarioHarness) -> None:
    h.session.sign_in("u-new")
    created_at = h.timers.now
    h.profiles.resolve_latest(ProfileSnapshot(account_id="u-new", is_verified=False, created_at=created_at))
    h.timers.advance(30)
    h.note("verification email confirmed")
    h.controller.on_profile_resolved(ProfileSnapshot(account_id="u-new", is_verified=True, created_at=created_at))
    h.controller.dismiss_onboarding()
    h.controller.force_logout()


def _returning_user(h: ScenarioHarness) -> None:
    h.session.sign_in("u-old")
    h.profiles.resolve_latest(
        ProfileSnapshot(account_id="u-old", is_verified=True, created_at=h.timers.now - timedelta(hours=1))
    )


def _stalled_fetch(h: ScenarioHarness) -> None:
    h.session.sign_in("u-stalled")
    h.timers.advance(5)
    h.note(f"fallback control visible={h.controller.fallback_control_visible}")
    h.timers.advance(5)


def _deleted_account(h: ScenarioHarness) -> None:
    h.session.sign_in("u-deleted")
    h.profiles.resolve_latest(None)
    h.timers.advance(3)


SCENARIOS: Dict[str, Callable[[ScenarioHarness], None]] = {
    "new-user": _new_user,
    "returning-user": _returning_user,
    "stalled-fetch": _stalled_fetch,
    "deleted-account": _deleted_account,
}


def run_scenario(name: str, settings: Optional[Settings] = None) -> ScenarioResult:
    if name not in SCENARIOS:
        raise ValueError(f"Unknown scenario: {name}")

    harness = build_harness(settings)
    try:
        SCENARIOS[name](harness)
        return ScenarioResult(
            name=name,
            final_phase=harness.controller.current_phase,
            transitions=harness.controller.get_transition_history(limit=100),
            sign_out_calls=harness.session.sign_out_calls,
            notes=harness.notes,
        )
    finally:
        harness.app.shutdown()
