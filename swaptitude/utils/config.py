"""
Configuration management with schema validation and atomic writes.
Single source of truth for Swaptitude session settings.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigError
from .logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

DATA_DIR = Path(os.getenv("SWAPTITUDE_DATA_DIR", "data"))
SETTINGS_FILE = DATA_DIR / "settings.yaml"


class AppSettings(BaseModel):
    name: str = "Swaptitude"
    version: str = "1.0.0"
    environment: str = "production"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "json"
    file_path: Optional[str] = "logs/swaptitude.log"
    max_bytes: int = 10485760
    backup_count: int = 5


class SessionSettings(BaseModel):
    """Timeouts and windows used by the session phase controller"""
    fallback_after_seconds: float = Field(default=5.0, gt=0)
    force_logout_after_seconds: float = Field(default=10.0, gt=0)
    missing_profile_grace_seconds: Optional[float] = 3.0  # null disables the deleted-account check
    new_account_window_minutes: float = Field(default=5.0, gt=0)
    transition_history_limit: int = Field(default=100, ge=1)

    @field_validator("missing_profile_grace_seconds")
    @classmethod
    def _grace_positive(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("missing_profile_grace_seconds must be positive or null")
        return value

    @model_validator(mode="after")
    def _logout_after_fallback(self) -> "SessionSettings":
        if self.force_logout_after_seconds <= self.fallback_after_seconds:
            raise ValueError(
                "force_logout_after_seconds must be greater than fallback_after_seconds"
            )
        return self


class OnboardingSettings(BaseModel):
    # "session" forgets a dismissal at logout, "account" remembers it on disk
    dismissal_scope: Literal["session", "account"] = "session"
    store_path: str = "data/onboarding_dismissals.json"


class ProfileSettings(BaseModel):
    store_path: str = "data/profiles.json"
    fetch_workers: int = Field(default=2, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    onboarding: OnboardingSettings = Field(default_factory=OnboardingSettings)
    profiles: ProfileSettings = Field(default_factory=ProfileSettings)


class ConfigManager:
    """Singleton configuration manager"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.settings_path = SETTINGS_FILE
        self._settings: Optional[Settings] = None

        # Create data directory if it doesn't exist
        DATA_DIR.mkdir(exist_ok=True, parents=True)

        self._initialized = True

    def _substitute_env_vars(self, value: Any) -> Any:
        """Recursively substitute ${VAR} and ${VAR:default} values"""
        if isinstance(value, str):
            if value.startswith("${") and value.endswith("}"):
                var_expr = value[2:-1]
                if ":" in var_expr:
                    var_name, default = var_expr.split(":", 1)
                    return os.getenv(var_name.strip(), default.strip())
                else:
                    return os.getenv(var_expr, value)
        elif isinstance(value, dict):
            return {k: self._substitute_env_vars(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._substitute_env_vars(item) for item in value]
        return value

    def load_settings(self) -> Settings:
        """Load and validate settings.yaml"""
        if not self.settings_path.exists():
            raise ConfigError(f"Settings file not found: {self.settings_path}")

        try:
            with open(self.settings_path, "r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.settings_path}: {str(e)}")

        processed_data = self._substitute_env_vars(raw_data)
        try:
            self._settings = Settings(**processed_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings in {self.settings_path}: {str(e)}")

        logger.debug("Settings loaded", path=str(self.settings_path))
        return self._settings

    def get_settings(self) -> Settings:
        """Return cached settings, loading them on first use"""
        if self._settings is None:
            return self.load_settings()
        return self._settings

    def save_settings(self, settings: Settings) -> None:
        """Atomically save settings to YAML"""
        data = settings.model_dump(mode="json")
        self._atomic_write(self.settings_path, data)
        self._settings = settings

    def _atomic_write(self, path: Path, data: Dict[str, Any]) -> None:
        """Write YAML file atomically"""
        # Temp file in the same directory keeps the move on one filesystem
        dir_path = path.parent
        dir_path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(mode="w", dir=dir_path, delete=False, encoding="utf-8") as tf:
            yaml.dump(data, tf, default_flow_style=False, sort_keys=False, allow_unicode=True)
            temp_path = Path(tf.name)

        try:
            shutil.move(str(temp_path), str(path))
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config to {path}: {str(e)}")


# Global instance
config_manager = ConfigManager()
