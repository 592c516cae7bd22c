"""Vision-first scraping with a single structural fallback.

Flow for one scrape:
1. No vision provider configured -> step 3
2. Screenshots -> vision model. Failure, timeout or zero rows -> step 3
3. DOM snapshot -> StructuralExtractor -> dedupe

Vision always runs before the DOM path and the two never run together.
Nothing is retried.
"""

import asyncio
from typing import Optional

import structlog

from ..browser.automation import BrowserAutomation
from ..config import VisionConfig
from .dedupe import dedupe
from .models import PageSnapshot, ScrapeMethod, ScrapeResult
from .structural import StructuralExtractor
from .vision import VisionExtractor, capture_screenshots, save_debug_screenshot

logger = structlog.get_logger()


class ScrapeError(Exception):
    """Raised when neither vision nor the DOM snapshot is available."""

    pass


class ScrapeOrchestrator:
    """Chooses between vision and structural extraction for one page."""

    def __init__(
        self,
        vision_config: Optional[VisionConfig] = None,
        extractor: Optional[StructuralExtractor] = None,
        vision_extractor: Optional[VisionExtractor] = None,
    ):
        self.vision_config = vision_config or VisionConfig()
        self.extractor = extractor or StructuralExtractor()
        self._vision_extractor = vision_extractor
        self.log = logger.bind(component="scrape_orchestrator")

    @property
    def vision_extractor(self) -> VisionExtractor:
        if self._vision_extractor is None:
            self._vision_extractor = VisionExtractor(self.vision_config)
        return self._vision_extractor

    async def scrape(self, automation: BrowserAutomation) -> ScrapeResult:
        url = await automation.get_current_url()
        vision_error: Optional[str] = None

        if self.vision_config.enabled:
            try:
                snapshot = PageSnapshot(url=url)
                candidates = await asyncio.wait_for(
                    self._run_vision(automation, snapshot),
                    timeout=self.vision_config.timeout_seconds,
                )
                if candidates:
                    return ScrapeResult(candidates=candidates, method=ScrapeMethod.VISION, url=url)
                vision_error = "Vision returned no transactions"
                self._save_debug(snapshot)
                self.log.warning("Vision returned no rows, using DOM extraction", url=url)
            except Exception as e:
                vision_error = str(e) or type(e).__name__
                self.log.warning("Vision extraction failed, using DOM extraction", url=url, error=vision_error)
        else:
            self.log.debug("Vision disabled, using DOM extraction")

        try:
            html = await automation.content()
        except Exception as e:
            raise ScrapeError(f"Page snapshot unavailable: {e}") from e
        if not html:
            raise ScrapeError("Page snapshot unavailable: empty document")

        candidates = self.extractor.extract(PageSnapshot(url=url, html=html))
        return ScrapeResult(
            candidates=candidates,
            method=ScrapeMethod.DOM,
            url=url,
            vision_error=vision_error,
        )

    async def _run_vision(self, automation: BrowserAutomation, snapshot: PageSnapshot):
        snapshot.screenshots = await capture_screenshots(
            automation, self.vision_config.max_screenshots
        )
        candidates = await self.vision_extractor.extract(snapshot.screenshots)
        return dedupe(candidates)

    def _save_debug(self, snapshot: PageSnapshot) -> None:
        directory = self.vision_config.debug_screenshot_dir
        if not directory or not snapshot.screenshots:
            return
        try:
            path = save_debug_screenshot(directory, snapshot.screenshots[0])
            self.log.warning("Saved screenshot of empty vision result", path=str(path))
        except OSError as e:
            self.log.error("Failed to save debug screenshot", error=str(e))


async def scrape(
    automation: BrowserAutomation,
    config: Optional[VisionConfig] = None,
    extractor: Optional[StructuralExtractor] = None,
    vision_extractor: Optional[VisionExtractor] = None,
) -> ScrapeResult:
    """Scrape the page currently loaded in ``automation``."""
    orchestrator = ScrapeOrchestrator(config, extractor, vision_extractor)
    return await orchestrator.scrape(automation)
