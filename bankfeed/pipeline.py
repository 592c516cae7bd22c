"""Entry points consumed by the application shell.

Each operation takes an explicit BrowserSession. Contention and playback
failures come back as ``OperationResult(success=False, error=...)`` rather
than exceptions so the caller can show a specific message.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from .browser.session import BrowserSession, SessionOwner
from .config import Settings, VisionConfig, get_settings
from .extraction.orchestrator import ScrapeError, ScrapeOrchestrator
from .extraction.models import CandidateTransaction
from .extraction.structural import StructuralExtractor
from .reconciliation.csv_source import read_candidates
from .reconciliation.history import TransactionHistory
from .reconciliation.matcher import ReconciliationMatcher
from .reconciliation.models import ImportPreview
from .recording.models import Recipe, RecipeDraft
from .recording.player import RecipePlayer, SensitiveInputCallback
from .recording.recorder import ActionRecorder
from .recording.scheduler import RecipeScheduler
from .utils.logging import configure_logging, log_operation

logger = structlog.get_logger()


@dataclass
class OperationResult:
    """Outcome of a pipeline operation."""

    success: bool
    error: Optional[str] = None
    data: Any = None


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Apply the configured log level and format."""
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)


def _orchestrator(settings: Settings, vision_config: Optional[VisionConfig]) -> ScrapeOrchestrator:
    return ScrapeOrchestrator(
        vision_config=vision_config or VisionConfig.from_settings(settings),
        extractor=StructuralExtractor(max_rows=settings.max_scraped_rows),
    )


async def scrape_transactions(
    session: BrowserSession,
    vision_config: Optional[VisionConfig] = None,
    settings: Optional[Settings] = None,
) -> OperationResult:
    """Scrape the page currently shown in ``session``."""
    settings = settings or get_settings()
    if not session.acquire(SessionOwner.SCRAPER):
        return OperationResult(success=False, error=session.busy_message())

    try:
        with log_operation("scrape_transactions", session_id=session.session_id) as op:
            result = await _orchestrator(settings, vision_config).scrape(session.automation)
            op["rows"] = len(result.candidates)
            op["method"] = result.method.value
        return OperationResult(success=True, data=result)
    except ScrapeError as e:
        return OperationResult(success=False, error=str(e))
    finally:
        session.release(SessionOwner.SCRAPER)


async def start_recording(
    session: BrowserSession,
    settings: Optional[Settings] = None,
) -> OperationResult:
    """Start recording; ``data`` is the running ActionRecorder."""
    recorder = ActionRecorder.from_settings(settings or get_settings())
    if not await recorder.start(session):
        return OperationResult(success=False, error=session.busy_message())
    return OperationResult(success=True, data=recorder)


async def stop_recording(recorder: ActionRecorder) -> RecipeDraft:
    return await recorder.stop()


async def play_recipe(
    session: BrowserSession,
    recipe: Recipe,
    on_sensitive_input: SensitiveInputCallback,
    vision_config: Optional[VisionConfig] = None,
    settings: Optional[Settings] = None,
) -> OperationResult:
    """Start replaying ``recipe``; ``data`` is the PlaybackHandle."""
    settings = settings or get_settings()
    player = RecipePlayer.from_settings(settings, _orchestrator(settings, vision_config))
    handle = player.play(session, recipe, on_sensitive_input)
    if handle is None:
        return OperationResult(success=False, error=session.busy_message())
    return OperationResult(success=True, data=handle)


def create_scheduler(
    session: BrowserSession,
    on_sensitive_input: SensitiveInputCallback,
    vision_config: Optional[VisionConfig] = None,
    settings: Optional[Settings] = None,
) -> RecipeScheduler:
    """Build a scheduler over the configured recipe directory.

    When ``schedule_cron`` is set the schedule starts immediately, which
    needs a running event loop.
    """
    settings = settings or get_settings()
    scheduler = RecipeScheduler.from_settings(
        session, on_sensitive_input, settings, _orchestrator(settings, vision_config)
    )
    if settings.schedule_cron:
        scheduler.start(settings.schedule_cron)
    return scheduler


def preview_import(
    candidates: list[CandidateTransaction],
    account_id: str,
    history: TransactionHistory,
    settings: Optional[Settings] = None,
) -> ImportPreview:
    """Classify candidates against the account's stored transactions."""
    matcher = ReconciliationMatcher.from_settings(settings or get_settings())
    preview = matcher.reconcile(candidates, history.transactions_for_account(account_id))
    preview.account_id = account_id
    return preview


def preview_csv_import(
    text: str,
    account_id: str,
    history: TransactionHistory,
    settings: Optional[Settings] = None,
) -> ImportPreview:
    """Same as ``preview_import`` for a CSV export. Raises CsvFormatError."""
    return preview_import(read_candidates(text), account_id, history, settings)
