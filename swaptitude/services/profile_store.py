"""
Profile storage with JSON-based persistence.

Stands in for the remote profile document collection: one document per
account, keyed by account id, written atomically.
"""

import json
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from pydantic import ValidationError

from ..models.profile import ProfileSnapshot
from ..utils.exceptions import ProfileStoreError
from ..utils.files import atomic_write_json
from ..utils.logger import get_logger

logger = get_logger(__name__)

PROFILES_FILE = Path("data") / "profiles.json"


class ProfileStore:
    """Reads and writes profile documents in a single JSON file"""

    def __init__(self, path: Path = PROFILES_FILE):
        self.path = Path(path)
        self._lock = Lock()

    def load_profiles(self) -> Dict[str, ProfileSnapshot]:
        """Load every profile document, keyed by account id"""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            profiles = {}
            for account_id, doc in data.get("profiles", {}).items():
                profiles[account_id] = ProfileSnapshot.model_validate(doc)
            return profiles
        except (json.JSONDecodeError, AttributeError, ValidationError) as e:
            raise ProfileStoreError(f"Failed to load profiles from {self.path}: {str(e)}")

    def get_profile(self, account_id: str) -> Optional[ProfileSnapshot]:
        """Return the profile for an account, or None if it does not exist"""
        return self.load_profiles().get(account_id)

    def save_profile(self, profile: ProfileSnapshot) -> None:
        with self._lock:
            profiles = self.load_profiles()
            profiles[profile.account_id] = profile
            self._save(profiles)
        logger.info("Profile saved", account_id=profile.account_id)

    def mark_verified(self, account_id: str) -> Optional[ProfileSnapshot]:
        """Set isVerified on a stored profile and return the updated copy"""
        with self._lock:
            profiles = self.load_profiles()
            profile = profiles.get(account_id)
            if profile is None:
                return None
            profile = profile.model_copy(update={"is_verified": True})
            profiles[account_id] = profile
            self._save(profiles)
        logger.info("Profile marked verified", account_id=account_id)
        return profile

    def delete_profile(self, account_id: str) -> bool:
        with self._lock:
            profiles = self.load_profiles()
            if profiles.pop(account_id, None) is None:
                return False
            self._save(profiles)
        logger.info("Profile deleted", account_id=account_id)
        return True

    def _save(self, profiles: Dict[str, ProfileSnapshot]) -> None:
        payload = {
            "profiles": {
                account_id: p.model_dump(mode="json", by_alias=True)
                for account_id, p in profiles.items()
            }
        }
        atomic_write_json(self.path, payload)
