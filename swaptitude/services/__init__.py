"""Collaborators of the session phase controller"""

from .session_source import SessionSource, InMemorySessionSource
from .profile_source import ProfileSource, ExecutorProfileSource, DeferredProfileSource
from .profile_store import ProfileStore
from .onboarding_store import (
    DismissalStore,
    SessionDismissals,
    AccountDismissals,
    create_dismissal_store,
)

__all__ = [
    "SessionSource",
    "InMemorySessionSource",
    "ProfileSource",
    "ExecutorProfileSource",
    "DeferredProfileSource",
    "ProfileStore",
    "DismissalStore",
    "SessionDismissals",
    "AccountDismissals",
    "create_dismissal_store",
]
