"""Exclusive-ownership handle over one driven browser window."""

import threading
from enum import Enum
from typing import Optional

import structlog

from .automation import BrowserAutomation

logger = structlog.get_logger()


class SessionOwner(str, Enum):
    """Flows that may hold a browser session."""
    RECORDER = "recorder"
    PLAYER = "player"
    SCRAPER = "scraper"


class BrowserSession:
    """A driven browser window plus the flow that currently owns it.

    ``acquire`` is an atomic check-and-set: a second flow is rejected
    immediately, never queued. Ownership only changes through ``release``.
    """

    def __init__(self, automation: BrowserAutomation, session_id: str = "default"):
        self.automation = automation
        self.session_id = session_id
        self._owner: Optional[SessionOwner] = None
        self._lock = threading.Lock()
        self.log = logger.bind(component="session", session_id=session_id)

    @property
    def owner(self) -> Optional[SessionOwner]:
        return self._owner

    @property
    def is_owned(self) -> bool:
        return self._owner is not None

    def acquire(self, owner: SessionOwner) -> bool:
        """Claim the session for ``owner``. Returns False when already held."""
        with self._lock:
            if self._owner is not None:
                self.log.warning(
                    "Session busy",
                    requested_by=owner.value,
                    held_by=self._owner.value,
                )
                return False
            self._owner = owner
        self.log.debug("Session acquired", owner=owner.value)
        return True

    def release(self, owner: Optional[SessionOwner] = None) -> None:
        """Release ownership. With ``owner`` given, only that holder is released."""
        with self._lock:
            if owner is not None and self._owner is not owner:
                return
            previous = self._owner
            self._owner = None
        if previous is not None:
            self.log.debug("Session released", owner=previous.value)

    def busy_message(self) -> str:
        held = self._owner.value if self._owner else "nobody"
        return f"Browser session '{self.session_id}' is busy ({held})"
