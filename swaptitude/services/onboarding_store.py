"""
Onboarding dismissal tracking.

Whether a dismissal outlives the session is a deployment choice
(``onboarding.dismissal_scope``): ``session`` forgets it at logout,
``account`` persists it per account in a JSON file.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Dict, Protocol, Set

from ..utils.files import atomic_write_json
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DismissalStore(Protocol):
    def is_dismissed(self, account_id: str) -> bool: ...

    def dismiss(self, account_id: str) -> None: ...

    def clear_session(self) -> None: ...


class SessionDismissals:
    """Dismissals held in memory until the session ends"""

    def __init__(self):
        self._dismissed: Set[str] = set()

    def is_dismissed(self, account_id: str) -> bool:
        return account_id in self._dismissed

    def dismiss(self, account_id: str) -> None:
        self._dismissed.add(account_id)

    def clear_session(self) -> None:
        self._dismissed.clear()


class AccountDismissals:
    """Dismissals persisted per account; survive logout and restarts"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()
        self._dismissed: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read onboarding dismissals", path=str(self.path), error=str(e))
            return {}
        if not isinstance(raw, dict) or not isinstance(raw.get("dismissed", {}), dict):
            logger.warning("Ignoring malformed onboarding dismissals", path=str(self.path))
            return {}
        return dict(raw.get("dismissed", {}))

    def is_dismissed(self, account_id: str) -> bool:
        with self._lock:
            return account_id in self._dismissed

    def dismiss(self, account_id: str) -> None:
        with self._lock:
            if account_id in self._dismissed:
                return
            self._dismissed[account_id] = datetime.now(timezone.utc).isoformat()
            payload = {"dismissed": dict(self._dismissed)}
        atomic_write_json(self.path, payload)
        logger.info("Onboarding dismissal persisted", account_id=account_id)

    def clear_session(self) -> None:
        pass


def create_dismissal_store(scope: str, store_path: str) -> DismissalStore:
    if scope == "account":
        return AccountDismissals(Path(store_path))
    if scope == "session":
        return SessionDismissals()
    raise ValueError(f"Unknown onboarding dismissal scope: {scope}")
