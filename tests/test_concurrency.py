"""Signals delivered from several threads at once are applied one at a time"""

import random
import threading

from swaptitude.core.phase_controller import ControllerTimings, Phase, SessionPhaseController
from swaptitude.core.timers import ManualTimerService

WORKERS = 8
ITERATIONS = 300


def test_concurrent_signals_produce_a_consistent_history(session, profiles, make_profile):
    timers = ManualTimerService()
    controller = SessionPhaseController(
        session,
        profiles,
        timers=timers,
        timings=ControllerTimings(history_limit=WORKERS * ITERATIONS * 4),
        clock=timers.clock,
    )
    transitions = []
    controller.on_phase_changed(transitions.append)

    snapshots = [
        None,
        make_profile(verified=False),
        make_profile(verified=True),
        make_profile(verified=True, minutes_old=60),
    ]
    barrier = threading.Barrier(WORKERS)
    errors = []

    def worker(seed):
        rng = random.Random(seed)
        try:
            barrier.wait()
            for _ in range(ITERATIONS):
                action = rng.randrange(3)
                if action == 0:
                    controller.on_session_changed(rng.random() < 0.6)
                elif action == 1:
                    controller.on_profile_resolved(rng.choice(snapshots))
                else:
                    controller.dismiss_onboarding()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(WORKERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert not any(thread.is_alive() for thread in threads)
    assert errors == []

    controller.on_session_changed(False)
    assert controller.current_phase == Phase.LOGGED_OUT

    assert transitions, "workers should have driven at least one transition"
    assert transitions[0].from_phase == Phase.LOGGED_OUT
    for transition in transitions:
        assert transition.from_phase != transition.to_phase
    for earlier, later in zip(transitions, transitions[1:]):
        assert later.from_phase == earlier.to_phase
        assert later.epoch >= earlier.epoch
    assert transitions[-1].to_phase == Phase.LOGGED_OUT
    assert controller.get_transition_history(limit=len(transitions)) == transitions
    controller.shutdown()
