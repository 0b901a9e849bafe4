"""
Shared state handling for the page controllers.

A page owns its lists and an `error` string. Failures of a load are logged,
reported through the `notify(level, message)` callback and stored in `error`;
the page keeps whatever it displayed before. retry() re-runs the last load.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from schooldash.errors import SchoolDashError

log = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


def _log_notify(level: str, message: str) -> None:
    log.log(logging.ERROR if level == "error" else logging.INFO, message)


def run_parallel(*calls: Callable[[], Any]) -> list[Any]:
    """
    Run independent fetches concurrently and return their results in order.

    The first exception raised by any call is re-raised after all of them
    have finished.
    """
    with ThreadPoolExecutor(max_workers=max(1, len(calls))) as pool:
        futures = [pool.submit(call) for call in calls]
        return [f.result() for f in futures]


class Page:
    def __init__(self, notify: Optional[Notifier] = None) -> None:
        self.notify: Notifier = notify or _log_notify
        self.error: Optional[str] = None
        self.loading = False
        self._last_load: Optional[Callable[[], bool]] = None

    def _load_guarded(self, load: Callable[[], None], failure: str) -> bool:
        """
        Run `load`, remembering it for retry(). Returns False on failure.
        """
        self._last_load = lambda: self._load_guarded(load, failure)
        self.loading = True
        self.error = None
        try:
            load()
        except SchoolDashError as e:
            log.error("%s: %s", failure, e)
            self.error = f"{failure}: {e}"
            self.notify("error", str(e))
            return False
        finally:
            self.loading = False
        return True

    def _act(self, action: Callable[[], Any], success: str, failure: str) -> bool:
        """Run a user action and report its outcome. Does not touch `error`."""
        try:
            action()
        except SchoolDashError as e:
            log.error("%s: %s", failure, e)
            self.notify("error", f"{failure}: {e}")
            return False
        self.notify("success", success)
        return True

    def retry(self) -> bool:
        if self._last_load is None:
            return False
        return self._last_load()
