from datetime import datetime, timedelta, timezone

import pytest

from swaptitude.core.phase_controller import SessionPhaseController
from swaptitude.core.timers import ManualTimerService
from swaptitude.models.profile import ProfileSnapshot
from swaptitude.services.profile_source import DeferredProfileSource
from swaptitude.services.session_source import InMemorySessionSource

START = datetime(2025, 4, 7, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def timers():
    return ManualTimerService(start=START)


@pytest.fixture
def session():
    return InMemorySessionSource()


@pytest.fixture
def profiles():
    return DeferredProfileSource()


@pytest.fixture
def controller(session, profiles, timers):
    controller = SessionPhaseController(session, profiles, timers=timers, clock=timers.clock)
    controller.attach()
    yield controller
    controller.shutdown()


@pytest.fixture
def make_profile(timers):
    """Build a profile whose age is relative to the virtual clock"""

    def _make(account_id="u1", verified=True, minutes_old=0.0):
        return ProfileSnapshot(
            account_id=account_id,
            is_verified=verified,
            created_at=timers.now - timedelta(minutes=minutes_old),
        )

    return _make
