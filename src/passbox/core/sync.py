"""
Background ahead/behind polling for a store with a remote.

The monitor only fetches; it never takes the store lock and never pulls, so
the status it reports is advisory.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .exceptions import VersionControlError
from .models import SyncStatus
from ..vcs.gateway import VersionControlGateway


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 300  # seconds


class SyncMonitor:
    def __init__(
        self,
        vcs: VersionControlGateway,
        interval: float = DEFAULT_INTERVAL,
        on_status: Optional[Callable[[SyncStatus], None]] = None,
    ):
        self.vcs = vcs
        self.interval = interval
        self.on_status = on_status
        self.latest: Optional[SyncStatus] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check(self) -> Optional[SyncStatus]:
        """Fetch once; returns None (and keeps the previous status) when the fetch fails."""
        try:
            ahead, behind = self.vcs.fetch()
        except VersionControlError as e:
            logger.warning("Unable to fetch remote: %s", e)
            return None

        status = SyncStatus(ahead, behind)
        self.latest = status
        logger.debug("Sync status: %s", status.describe())
        if self.on_status is not None:
            self.on_status(status)
        return status

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.check()
            # wait() returns early once stop() is called
            self._stop_event.wait(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="passbox-sync", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
