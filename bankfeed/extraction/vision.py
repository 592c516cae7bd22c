"""Screenshot-based transaction extraction with Claude.

Captures overlapping viewport screenshots of the transaction page and asks
the model for a JSON array of posted transactions. Any provider error or
malformed response raises ``VisionExtractionError``; deciding what to do
about it is the orchestrator's job.
"""

import base64
import json
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import anthropic
import structlog

from ..browser.automation import BrowserAutomation
from ..config import VisionConfig
from .cleaner import clean_amount, clean_category, clean_date, clean_description, has_pending_marker
from .models import CandidateTransaction
from .strategies import infer_category

logger = structlog.get_logger()

DEFAULT_VISION_CONFIDENCE = 90
SCROLL_STEP_RATIO = 0.6

EXTRACTION_PROMPT = """You are analyzing screenshots of a bank transaction page. Extract ONLY the visible posted transactions.

WHAT TO LOOK FOR:
- Transaction tables or lists showing financial activity
- Columns typically include: Date, Description/Merchant, Amount, Balance
- Dates in any format (Feb 04, 2026 or 02/04/2026)

RULES:
1. Screenshots overlap; report each transaction once
2. Skip any transaction marked as "pending" or "processing"
3. Use negative amounts for expenses and positive amounts for income
4. Include the running balance when the page shows one
5. Leave category empty unless the page shows one explicitly
6. If there is no transaction data (login page, loading spinner), return []

Return ONLY a JSON array with this structure:
[
  {
    "date": "Feb 04, 2026",
    "description": "Shake Shack",
    "amount": "-28.50",
    "balance": "2380.52",
    "category": "",
    "confidence": 95
  }
]"""


class VisionExtractionError(Exception):
    """Exception raised when the vision provider cannot produce rows."""

    pass


class VisionExtractor:
    """Extracts candidate transactions from page screenshots."""

    def __init__(self, config: VisionConfig, client: Optional[Any] = None):
        self.config = config
        if client is None:
            api_key = config.api_key.get_secret_value() if config.api_key else None
            client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=config.timeout_seconds,
                max_retries=0,
            )
        self.client = client
        self.log = logger.bind(component="vision_extractor", model=config.model)

    async def extract(self, images: list[bytes]) -> list[CandidateTransaction]:
        """Send screenshots to the model and map its answer to candidates."""
        if not images:
            raise VisionExtractionError("No screenshots to analyze")

        content: list[dict[str, Any]] = []
        for image in images:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/png",
                    "data": base64.standard_b64encode(image).decode("utf-8"),
                },
            })
        content.append({"type": "text", "text": EXTRACTION_PROMPT})

        self.log.info("Requesting vision extraction", screenshots=len(images))
        try:
            response = await self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.APIError as e:
            raise VisionExtractionError(f"Claude API error: {e}") from e

        text = next(
            (block.text for block in response.content if getattr(block, "type", None) == "text"),
            None,
        )
        if text is None:
            raise VisionExtractionError("No text content in Claude response")

        candidates = parse_vision_response(text)
        self.log.info("Vision extraction complete", rows=len(candidates))
        return candidates


def parse_vision_response(text: str) -> list[CandidateTransaction]:
    """Parse the model's JSON array, tolerating markdown code fences."""
    content = text.strip()
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0]
    elif "```" in content:
        content = content.split("```")[1].split("```")[0]

    try:
        entries = json.loads(content.strip())
    except json.JSONDecodeError as e:
        raise VisionExtractionError(f"Response is not valid JSON: {e}") from e

    if not isinstance(entries, list):
        raise VisionExtractionError("Response is not a JSON array")

    candidates: list[CandidateTransaction] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        description = str(entry.get("description") or "")
        amount = str(entry.get("amount") or "")
        if not description and not amount:
            continue
        category = str(entry.get("category") or "")
        # Pending rows are dropped here as well as by the prompt
        if has_pending_marker(description, category, str(entry.get("status") or "")):
            continue
        cleaned = clean_description(description)

        confidence = entry.get("confidence")
        try:
            confidence = DEFAULT_VISION_CONFIDENCE if confidence is None else int(confidence)
        except (TypeError, ValueError):
            confidence = DEFAULT_VISION_CONFIDENCE

        candidates.append(CandidateTransaction(
            date=clean_date(str(entry.get("date") or "")),
            description=cleaned,
            amount=clean_amount(amount),
            balance=clean_amount(str(entry.get("balance") or "")) or None,
            category=clean_category(category) or infer_category(cleaned),
            ordinal=len(candidates) + 1,
            confidence=max(0, min(100, confidence)),
        ))
    return candidates


async def capture_screenshots(automation: BrowserAutomation, max_screenshots: int = 6) -> list[bytes]:
    """Capture overlapping viewport screenshots from top to bottom.

    Each step scrolls 60% of the viewport so rows cut at an edge appear
    whole in the next capture. The page is scrolled back to the top after.
    """
    metrics = await automation.page_metrics()
    total_height = int(metrics.get("scroll_height", 0))
    viewport_height = int(metrics.get("client_height", 0))
    screenshots: list[bytes] = []

    if viewport_height <= 0 or total_height <= viewport_height:
        await automation.scroll_to(0)
        screenshots.append(await automation.screenshot())
        return screenshots

    max_scroll = total_height - viewport_height
    step = max(1, int(viewport_height * SCROLL_STEP_RATIO))
    count = min(math.ceil(max_scroll / step) + 1, max(1, max_screenshots))

    try:
        for i in range(count):
            y = min(i * step, max_scroll)
            await automation.scroll_to(y)
            screenshots.append(await automation.screenshot())
            if y >= max_scroll - 10:
                break
    finally:
        await automation.scroll_to(0)

    return screenshots


def save_debug_screenshot(directory: str, image: bytes) -> Path:
    """Write a screenshot for inspecting an empty vision result."""
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")
    target = path / f"empty-result-{timestamp}.png"
    target.write_bytes(image)
    return target
