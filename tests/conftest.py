"""Shared fixtures for bankfeed tests."""

import os
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from bankfeed.browser.automation import ActionResult, BrowserAutomation
from bankfeed.browser.session import BrowserSession
from bankfeed.config import Settings, VisionConfig, VisionProvider
from bankfeed.extraction.dom import parse_html


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a real browser or API key"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# Keep a developer's .env from leaking into tests
os.environ.setdefault("VISION_PROVIDER", "none")


TRANSACTIONS_HTML = """
<html>
  <body>
    <table id="activity">
      <thead>
        <tr><th>Date</th><th>Description</th><th>Amount</th><th>Balance</th></tr>
      </thead>
      <tbody>
        <tr data-testid="transaction-row-1">
          <td class="date-cell"><span>Feb 10, 2026</span><span>February 10 2026</span></td>
          <td class="description">SQ *SHAKE SHACK, NEW YORK NY</td>
          <td class="amount">-31.60</td>
          <td class="balance">1,529.97</td>
        </tr>
        <tr data-testid="transaction-row-2">
          <td class="date-cell">Feb 09, 2026</td>
          <td class="description">SHELL OIL 5744</td>
          <td class="amount">-45.00</td>
          <td class="balance">1,561.57</td>
        </tr>
        <tr data-testid="transaction-row-3">
          <td class="date-cell">Feb 08, 2026</td>
          <td class="description">Pending NETFLIX.COM</td>
          <td class="amount">-15.99</td>
          <td class="balance">1,606.57</td>
        </tr>
        <tr data-testid="transaction-row-4">
          <td class="date-cell">Feb 07, 2026</td>
          <td class="description">PAYROLL DEPOSIT</td>
          <td class="amount">2,500.00</td>
          <td class="balance">1,622.56</td>
        </tr>
      </tbody>
    </table>
  </body>
</html>
"""


class FakeAutomation(BrowserAutomation):
    """In-memory browser: pages are HTML strings keyed by URL.

    ``calls`` records every driver call in order (never typed values),
    ``filled`` holds the last value written to each selector.
    """

    def __init__(
        self,
        pages: Optional[dict[str, str]] = None,
        url: str = "https://bank.example/login",
        links: Optional[dict[str, str]] = None,
    ):
        super().__init__()
        self.pages = pages or {}
        self.url = url
        self.links = links or {}
        self.calls: list[tuple] = []
        self.filled: dict[str, str] = {}
        self.capture_callback = None
        self.metrics = {"scroll_height": 900, "client_height": 900}
        self.screenshot_bytes = b"\x89PNG fake"
        self.content_error: Optional[Exception] = None
        self.fail_goto: set[str] = set()

    async def start(self) -> None:
        self.calls.append(("start",))

    async def stop(self) -> None:
        self.calls.append(("stop",))

    async def goto(self, url: str, wait_until: str = "load") -> ActionResult:
        self.calls.append(("goto", url))
        if url in self.fail_goto:
            return ActionResult(success=False, action="goto", duration_ms=0, error="net::ERR_FAILED")
        self.url = url
        return ActionResult(success=True, action="goto", duration_ms=0)

    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> ActionResult:
        self.calls.append(("click", selector))
        if selector in self.links:
            self.url = self.links[selector]
        return ActionResult(success=True, action="click", duration_ms=0)

    async def fill(self, selector: str, value: str) -> ActionResult:
        self.calls.append(("fill", selector))
        self.filled[selector] = value
        return ActionResult(success=True, action="fill", duration_ms=0)

    async def select_option(self, selector: str, value: str) -> ActionResult:
        self.calls.append(("select", selector))
        self.filled[selector] = value
        return ActionResult(success=True, action="select", duration_ms=0)

    async def wait_for_selector(self, selector: str, timeout_ms: Optional[int] = None) -> ActionResult:
        self.calls.append(("wait_for_selector", selector))
        html = self.pages.get(self.url, "")
        if html and parse_html(html).has(selector):
            return ActionResult(success=True, action="wait_for_selector", duration_ms=0)
        return ActionResult(
            success=False,
            action="wait_for_selector",
            duration_ms=timeout_ms or 0,
            error=f"Timeout waiting for {selector}",
        )

    async def wait_for_settle(self, timeout_ms: Optional[int] = None) -> ActionResult:
        self.calls.append(("settle",))
        return ActionResult(success=True, action="wait_for_settle", duration_ms=0)

    async def screenshot(self, full_page: bool = False) -> bytes:
        self.calls.append(("screenshot",))
        return self.screenshot_bytes

    async def content(self) -> str:
        self.calls.append(("content",))
        if self.content_error is not None:
            raise self.content_error
        return self.pages.get(self.url, "")

    async def get_current_url(self) -> str:
        return self.url

    async def page_metrics(self) -> dict:
        return dict(self.metrics)

    async def scroll_to(self, y: int) -> ActionResult:
        self.calls.append(("scroll", y))
        return ActionResult(success=True, action="scroll", duration_ms=0)

    async def start_interaction_capture(self, callback) -> None:
        self.calls.append(("capture_start",))
        self.capture_callback = callback

    async def stop_interaction_capture(self) -> None:
        self.calls.append(("capture_stop",))
        self.capture_callback = None

    def emit(self, payload: dict) -> None:
        """Simulate the in-page listener reporting an interaction."""
        if self.capture_callback is not None:
            self.capture_callback(payload)


@pytest.fixture
def transactions_html():
    return TRANSACTIONS_HTML


def _bank_automation() -> FakeAutomation:
    """Fake browser showing a login page and a transactions page."""
    return FakeAutomation(
        pages={
            "https://bank.example/login": """
                <form>
                  <input id="username" name="username">
                  <input id="password" type="password" name="password">
                  <button id="sign-in">Sign in</button>
                </form>
            """,
            "https://bank.example/accounts": """
                <a id="checking" href="/activity">Checking</a>
            """,
            "https://bank.example/activity": TRANSACTIONS_HTML,
        },
        links={
            "#sign-in": "https://bank.example/accounts",
            "#checking": "https://bank.example/activity",
        },
    )


@pytest.fixture
def fake_automation():
    return _bank_automation()


@pytest.fixture
def automation_factory():
    """Builds fresh, independent copies of the fake bank browser."""
    return _bank_automation


@pytest.fixture
def session(fake_automation):
    return BrowserSession(fake_automation, session_id="test")


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test-key-12345")
    monkeypatch.setenv("VISION_PROVIDER", "claude")
    monkeypatch.setenv("MAX_SCRAPED_ROWS", "25")
    monkeypatch.setenv("PLAYBACK_PACE_FACTOR", "0.5")
    # get_settings() caches the first Settings it builds
    from bankfeed.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        vision_provider=VisionProvider.NONE,
        playback_pace_factor=0.0,
        recipe_dir="./recipes-test",
    )


@pytest.fixture
def vision_config():
    """Vision config with a provider and key, so the vision path runs."""
    return VisionConfig(
        provider=VisionProvider.CLAUDE,
        api_key="sk-ant-test-key-12345",
        timeout_seconds=5.0,
    )


@pytest.fixture
def mock_async_anthropic_client():
    """Create a mock AsyncAnthropic client answering with one transaction."""
    mock_client = AsyncMock()
    mock_response = MagicMock()
    mock_response.content = [MagicMock(
        type="text",
        text='[{"date": "Feb 04, 2026", "description": "Shake Shack", '
             '"amount": "-28.50", "balance": "2380.52", "category": "", "confidence": 95}]',
    )]
    mock_response.usage = MagicMock(input_tokens=100, output_tokens=50)
    mock_client.messages.create = AsyncMock(return_value=mock_response)
    return mock_client
