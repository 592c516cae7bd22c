"""Browser automation and session ownership."""

from .automation import (
    ActionResult,
    BrowserAutomation,
    BrowserConfig,
    PlaywrightAutomation,
    create_automation,
)
from .session import BrowserSession, SessionOwner

__all__ = [
    "ActionResult",
    "BrowserAutomation",
    "BrowserConfig",
    "PlaywrightAutomation",
    "create_automation",
    "BrowserSession",
    "SessionOwner",
]
