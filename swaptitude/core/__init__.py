"""Core session lifecycle components for Swaptitude"""

from .phase_controller import (
    SessionPhaseController,
    Phase,
    PhaseTransition,
    LogoutReason,
    ResolutionOutcome,
    ControllerTimings,
)
from .timers import ThreadTimerService, ManualTimerService

__all__ = [
    "SessionPhaseController",
    "Phase",
    "PhaseTransition",
    "LogoutReason",
    "ResolutionOutcome",
    "ControllerTimings",
    "ThreadTimerService",
    "ManualTimerService",
]
