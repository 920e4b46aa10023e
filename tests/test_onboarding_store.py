import json

import pytest

from swaptitude.core.phase_controller import Phase, SessionPhaseController
from swaptitude.services.onboarding_store import (
    AccountDismissals,
    SessionDismissals,
    create_dismissal_store,
)


def _reach_onboarding(controller, session, profiles, make_profile):
    session.sign_in("u1")
    profiles.resolve_latest(make_profile(verified=True))
    assert controller.current_phase == Phase.ONBOARDING


def test_session_dismissal_is_forgotten_after_logout(controller, session, profiles, make_profile):
    _reach_onboarding(controller, session, profiles, make_profile)
    controller.dismiss_onboarding()
    assert controller.current_phase == Phase.ACTIVE

    controller.force_logout()
    _reach_onboarding(controller, session, profiles, make_profile)


def test_account_dismissal_survives_logout(tmp_path, session, profiles, timers, make_profile):
    store_path = tmp_path / "dismissals.json"
    controller = SessionPhaseController(
        session,
        profiles,
        timers=timers,
        dismissals=AccountDismissals(store_path),
        clock=timers.clock,
    )
    controller.attach()

    _reach_onboarding(controller, session, profiles, make_profile)
    controller.dismiss_onboarding()
    controller.force_logout()

    session.sign_in("u1")
    profiles.resolve_latest(make_profile(verified=True))
    assert controller.current_phase == Phase.ACTIVE

    saved = json.loads(store_path.read_text(encoding="utf-8"))
    assert "u1" in saved["dismissed"]
    assert AccountDismissals(store_path).is_dismissed("u1")
    controller.shutdown()


def test_session_dismissals_clear():
    store = SessionDismissals()
    store.dismiss("u1")
    assert store.is_dismissed("u1")
    store.clear_session()
    assert not store.is_dismissed("u1")


def test_corrupt_dismissal_file_starts_empty(tmp_path):
    path = tmp_path / "dismissals.json"
    path.write_text("{not json", encoding="utf-8")
    store = AccountDismissals(path)
    assert store.is_dismissed("u1") is False


def test_create_dismissal_store(tmp_path):
    assert isinstance(create_dismissal_store("session", str(tmp_path / "x.json")), SessionDismissals)
    assert isinstance(create_dismissal_store("account", str(tmp_path / "x.json")), AccountDismissals)
    with pytest.raises(ValueError, match="Unknown onboarding dismissal scope"):
        create_dismissal_store("forever", str(tmp_path / "x.json"))


@pytest.mark.parametrize("content", ["[1, 2]", '{"dismissed": ["u1"]}', '"u1"'])
def test_malformed_dismissal_file_starts_empty(tmp_path, content):
    path = tmp_path / "dismissals.json"
    path.write_text(content, encoding="utf-8")

    store = AccountDismissals(path)
    assert store.is_dismissed("u1") is False

    store.dismiss("u1")
    assert json.loads(path.read_text(encoding="utf-8"))["dismissed"].keys() == {"u1"}
