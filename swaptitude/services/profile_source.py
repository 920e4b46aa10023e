"""Profile sources: asynchronous lookups of the signed-in user's profile"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol, Tuple

from ..models.profile import ProfileSnapshot
from ..utils.logger import get_logger

logger = get_logger(__name__)

ProfileLookup = Callable[[Optional[str]], Optional[ProfileSnapshot]]


class ProfileSource(Protocol):
    """
    Resolves a profile asynchronously.

    ``account_id=None`` means "the account of the current session". The
    returned future may never complete; a future that raises is treated by
    callers the same as a ``None`` result.
    """

    def fetch(self, account_id: Optional[str] = None) -> "Future[Optional[ProfileSnapshot]]": ...


class ExecutorProfileSource:
    """Runs a blocking profile lookup on a small worker pool"""

    def __init__(self, lookup: ProfileLookup, max_workers: int = 2):
        self._lookup = lookup
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="profile-fetch")

    def fetch(self, account_id: Optional[str] = None) -> "Future[Optional[ProfileSnapshot]]":
        logger.debug("Profile fetch submitted", account_id=account_id)
        return self._executor.submit(self._lookup, account_id)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


class DeferredProfileSource:
    """
    Hands out futures that are completed explicitly by the caller.

    Lets simulations and tests decide when (and whether) a fetch resolves.
    """

    def __init__(self):
        self.requests: List[Tuple[Optional[str], "Future[Optional[ProfileSnapshot]]"]] = []

    def fetch(self, account_id: Optional[str] = None) -> "Future[Optional[ProfileSnapshot]]":
        future: "Future[Optional[ProfileSnapshot]]" = Future()
        self.requests.append((account_id, future))
        return future

    @property
    def fetch_count(self) -> int:
        return len(self.requests)

    @property
    def latest(self) -> "Future[Optional[ProfileSnapshot]]":
        return self.requests[-1][1]

    def resolve_latest(self, snapshot: Optional[ProfileSnapshot]) -> None:
        self.latest.set_result(snapshot)

    def fail_latest(self, error: Exception) -> None:
        self.latest.set_exception(error)
