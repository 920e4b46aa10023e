"""Application wiring for the Swaptitude session services"""

from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .core.phase_controller import ControllerTimings, SessionPhaseController
from .core.timers import TimerService
from .models.profile import ProfileSnapshot
from .services.onboarding_store import create_dismissal_store
from .services.profile_source import ExecutorProfileSource, ProfileSource
from .services.profile_store import ProfileStore
from .services.session_source import InMemorySessionSource, SessionSource
from .utils.config import Settings, config_manager
from .utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


class SwaptitudeApp:
    """Builds the session phase controller and its collaborators from settings"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_source: Optional[SessionSource] = None,
        profile_source: Optional[ProfileSource] = None,
        timers: Optional[TimerService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        configure_logging: bool = True,
    ):
        self.settings = settings
        self.session_source = session_source
        self.profile_source = profile_source
        self.timers = timers
        self.clock = clock
        self.configure_logging = configure_logging
        self.profile_store: Optional[ProfileStore] = None
        self.controller: Optional[SessionPhaseController] = None

    def initialize(self) -> SessionPhaseController:
        """Load configuration and build the controller"""
        logger.info("Initializing Swaptitude session services")

        if self.settings is None:
            self.settings = config_manager.load_settings()

        if self.configure_logging:
            setup_logger(
                log_level=self.settings.logging.level,
                log_format=self.settings.logging.format,
                file_path=self.settings.logging.file_path,
                max_bytes=self.settings.logging.max_bytes,
                backup_count=self.settings.logging.backup_count,
            )

        logger.info(
            "Configuration loaded",
            app_name=self.settings.app.name,
            version=self.settings.app.version,
            environment=self.settings.app.environment,
            dismissal_scope=self.settings.onboarding.dismissal_scope,
        )

        if self.session_source is None:
            self.session_source = InMemorySessionSource()

        # Default profile source reads the local profile store off-thread
        if self.profile_source is None:
            self.profile_store = ProfileStore(Path(self.settings.profiles.store_path))
            self.profile_source = ExecutorProfileSource(
                lookup=self._lookup_profile,
                max_workers=self.settings.profiles.fetch_workers,
            )

        dismissals = create_dismissal_store(
            self.settings.onboarding.dismissal_scope,
            self.settings.onboarding.store_path,
        )

        self.controller = SessionPhaseController(
            session_source=self.session_source,
            profile_source=self.profile_source,
            timers=self.timers,
            timings=ControllerTimings.from_settings(self.settings.session),
            dismissals=dismissals,
            clock=self.clock,
        )

        logger.info("Application initialized successfully")
        return self.controller

    def _lookup_profile(self, account_id: Optional[str]) -> Optional[ProfileSnapshot]:
        account_id = account_id or getattr(self.session_source, "account_id", None)
        if not account_id:
            return None
        return self.profile_store.get_profile(account_id)

    def start(self) -> SessionPhaseController:
        """Initialize if needed and start listening to the session source"""
        if self.controller is None:
            self.initialize()
        self.controller.attach()
        return self.controller

    def shutdown(self) -> None:
        logger.info("Shutting down Swaptitude session services")
        if self.controller is not None:
            self.controller.shutdown()
        if isinstance(self.profile_source, ExecutorProfileSource):
            self.profile_source.shutdown()
