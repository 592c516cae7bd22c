"""Browser automation layer driving the bank page.

Everything above this module talks to ``BrowserAutomation`` only, so the
recorder, player and scraper are testable against an in-memory fake and
run against Playwright in production.

Architecture:
                      ┌─────────────────────────────┐
                      │     BrowserAutomation       │
                      │     (Abstract Interface)    │
                      └─────────────┬───────────────┘
                                    │
                                    ▼
                      ┌─────────────────────────────┐
                      │    PlaywrightAutomation     │
                      │  (headed, human-attended)   │
                      └─────────────────────────────┘
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import structlog

from ..config import Settings
from ..recording.recorder_snippet import RecorderSnippetGenerator

logger = structlog.get_logger()

InteractionCallback = Callable[[dict], None]


@dataclass
class BrowserConfig:
    """Configuration for browser automation."""

    headless: bool = False  # A human reaches the bank page, so headed by default
    browser_type: str = "chromium"  # chromium, firefox, webkit
    viewport_width: int = 1440
    viewport_height: int = 900
    timeout_ms: int = 30000
    navigation_timeout_ms: int = 30000
    slow_mo_ms: int = 0
    extra_options: dict = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "BrowserConfig":
        return cls(
            timeout_ms=settings.selector_timeout_ms,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            **overrides,
        )


@dataclass
class ActionResult:
    """Result from a browser action."""

    success: bool
    action: str
    duration_ms: int
    error: Optional[str] = None
    data: Any = None


class BrowserAutomation(ABC):
    """Abstract base class for the driven browser page."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.log = logger.bind(component="browser", browser_type=self.config.browser_type)

    @abstractmethod
    async def start(self) -> None:
        """Start the browser session."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the browser session."""

    @abstractmethod
    async def goto(self, url: str, wait_until: str = "load") -> ActionResult:
        """Navigate to a URL."""

    @abstractmethod
    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> ActionResult:
        """Click an element."""

    @abstractmethod
    async def fill(self, selector: str, value: str) -> ActionResult:
        """Fill a form field."""

    @abstractmethod
    async def select_option(self, selector: str, value: str) -> ActionResult:
        """Select from dropdown."""

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout_ms: Optional[int] = None) -> ActionResult:
        """Wait for element to appear."""

    @abstractmethod
    async def wait_for_settle(self, timeout_ms: Optional[int] = None) -> ActionResult:
        """Wait until the page stops loading."""

    @abstractmethod
    async def screenshot(self, full_page: bool = False) -> bytes:
        """Take a screenshot of the viewport."""

    @abstractmethod
    async def content(self) -> str:
        """Serialized DOM of the current page."""

    @abstractmethod
    async def get_current_url(self) -> str:
        """Get the current page URL."""

    @abstractmethod
    async def page_metrics(self) -> dict:
        """Return ``scroll_height`` and ``client_height`` in pixels."""

    @abstractmethod
    async def scroll_to(self, y: int) -> ActionResult:
        """Scroll the page to an absolute vertical offset."""

    @abstractmethod
    async def start_interaction_capture(self, callback: InteractionCallback) -> None:
        """Forward user interactions on the page to ``callback``.

        Each interaction is a dict with ``type`` (click, input, select,
        navigate), ``selector``, ``value``, ``url``, ``inputType``,
        ``label`` and ``timestamp`` (epoch milliseconds).
        """

    @abstractmethod
    async def stop_interaction_capture(self) -> None:
        """Stop forwarding interactions."""

    async def __aenter__(self) -> "BrowserAutomation":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


async def _timed(action: str, fn: Callable[[], Awaitable[Any]]) -> ActionResult:
    start = time.time()
    try:
        data = await fn()
        return ActionResult(
            success=True,
            action=action,
            duration_ms=int((time.time() - start) * 1000),
            data=data,
        )
    except Exception as e:
        return ActionResult(
            success=False,
            action=action,
            duration_ms=int((time.time() - start) * 1000),
            error=str(e),
        )


class PlaywrightAutomation(BrowserAutomation):
    """Playwright-based browser automation."""

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        snippet_generator: Optional[RecorderSnippetGenerator] = None,
    ):
        super().__init__(config)
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._snippet = snippet_generator or RecorderSnippetGenerator()
        self._capture_callback: Optional[InteractionCallback] = None
        self._binding_installed = False

    async def start(self) -> None:
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()

        browser_type = getattr(self._playwright, self.config.browser_type)
        self._browser = await browser_type.launch(
            headless=self.config.headless,
            slow_mo=self.config.slow_mo_ms,
        )

        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            }
        )
        self._context.set_default_timeout(self.config.timeout_ms)
        self._page = await self._context.new_page()
        self.log.info("Playwright browser started")

    async def stop(self) -> None:
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self.log.info("Playwright browser stopped")

    async def goto(self, url: str, wait_until: str = "load") -> ActionResult:
        return await _timed("goto", lambda: self._page.goto(
            url,
            wait_until=wait_until,
            timeout=self.config.navigation_timeout_ms,
        ))

    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> ActionResult:
        return await _timed(
            "click",
            lambda: self._page.click(selector, timeout=timeout_ms or self.config.timeout_ms),
        )

    async def fill(self, selector: str, value: str) -> ActionResult:
        return await _timed("fill", lambda: self._page.fill(selector, value))

    async def select_option(self, selector: str, value: str) -> ActionResult:
        return await _timed("select", lambda: self._page.select_option(selector, value))

    async def wait_for_selector(self, selector: str, timeout_ms: Optional[int] = None) -> ActionResult:
        return await _timed(
            "wait_for_selector",
            lambda: self._page.wait_for_selector(
                selector,
                state="attached",
                timeout=timeout_ms or self.config.timeout_ms,
            ),
        )

    async def wait_for_settle(self, timeout_ms: Optional[int] = None) -> ActionResult:
        return await _timed(
            "wait_for_settle",
            lambda: self._page.wait_for_load_state(
                "networkidle",
                timeout=timeout_ms or self.config.timeout_ms,
            ),
        )

    async def screenshot(self, full_page: bool = False) -> bytes:
        return await self._page.screenshot(full_page=full_page, type="png")

    async def content(self) -> str:
        return await self._page.content()

    async def get_current_url(self) -> str:
        return self._page.url

    async def page_metrics(self) -> dict:
        return await self._page.evaluate(
            "() => ({"
            "scroll_height: document.documentElement.scrollHeight,"
            "client_height: document.documentElement.clientHeight"
            "})"
        )

    async def scroll_to(self, y: int) -> ActionResult:
        return await _timed("scroll", lambda: self._page.evaluate("(y) => window.scrollTo(0, y)", y))

    async def start_interaction_capture(self, callback: InteractionCallback) -> None:
        self._capture_callback = callback

        if not self._binding_installed:
            await self._context.expose_binding(
                self._snippet.config.binding_name,
                lambda source, payload: self._forward(payload),
            )
            script = self._snippet.generate_listener_script()
            await self._context.add_init_script(script)
            self._binding_installed = True

        # Init scripts only apply to future documents
        await self._page.evaluate(self._snippet.generate_listener_script())
        self._page.on("framenavigated", self._on_frame_navigated)
        self.log.info("Interaction capture started")

    async def stop_interaction_capture(self) -> None:
        self._capture_callback = None
        self._page.remove_listener("framenavigated", self._on_frame_navigated)
        try:
            await self._page.evaluate(self._snippet.generate_stop_script())
        except Exception as e:
            self.log.warning("Could not detach in-page listener", error=str(e))
        self.log.info("Interaction capture stopped")

    def _forward(self, payload: dict) -> None:
        if self._capture_callback is not None and isinstance(payload, dict):
            self._capture_callback(payload)

    def _on_frame_navigated(self, frame) -> None:
        if frame is not self._page.main_frame:
            return
        self._forward({
            "type": "navigate",
            "url": frame.url,
            "timestamp": int(time.time() * 1000),
        })


def create_automation(
    config: Optional[BrowserConfig] = None,
    settings: Optional[Settings] = None,
) -> BrowserAutomation:
    """Factory for the production automation (not started).

    Timeouts come from ``settings`` when no explicit config is given.
    """
    if config is None and settings is not None:
        config = BrowserConfig.from_settings(settings)
    return PlaywrightAutomation(config)
