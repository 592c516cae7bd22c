"""Unattended replay of every stored recipe on a cron schedule.

Each scheduled run plays the recipes one after another, sorted by name,
through the shared browser session. A recipe that fails is logged and the
run moves on to the next one. A tick that fires while a run is still in
progress is skipped.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

import structlog
from croniter import croniter

from ..browser.session import BrowserSession
from ..config import Settings
from ..extraction.orchestrator import ScrapeOrchestrator
from .models import Recipe
from .player import PlaybackState, RecipePlayer, SensitiveInputCallback
from .store import RecipeStore

logger = structlog.get_logger()

INTERVAL_TO_CRON = {
    "hourly": "0 * * * *",
    "every_4h": "0 */4 * * *",
    "every_6h": "0 */6 * * *",
    "every_12h": "0 */12 * * *",
    "daily": "0 6 * * *",
    "weekly": "0 6 * * 1",
}

CRON_TO_INTERVAL = {cron: interval for interval, cron in INTERVAL_TO_CRON.items()}


def resolve_cron(schedule: str) -> str:
    """Map a named interval to its cron expression; pass other values through."""
    return INTERVAL_TO_CRON.get(schedule.strip(), schedule.strip())


def seconds_until_next(cron_expression: str, now: Optional[datetime] = None) -> float:
    """Seconds from ``now`` until the next time ``cron_expression`` fires."""
    now = now or datetime.now(UTC)
    next_run = croniter(cron_expression, now).get_next(datetime)
    return max((next_run - now).total_seconds(), 0.0)


@dataclass
class ScheduledRecipeRun:
    """Outcome of one recipe within a scheduled run."""

    recipe_id: str
    recipe_name: str
    status: str
    error: Optional[str] = None
    rows: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipeId": self.recipe_id,
            "recipeName": self.recipe_name,
            "status": self.status,
            "error": self.error,
            "rows": self.rows,
        }


@dataclass
class ScheduleStatus:
    is_running: bool
    current_recipe_name: Optional[str]
    last_run_at: Optional[datetime]
    cron_expression: Optional[str]
    interval: Optional[str]
    enabled: bool
    last_results: list[ScheduledRecipeRun] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "currentRecipeName": self.current_recipe_name,
            "lastRunAt": self.last_run_at.isoformat() if self.last_run_at else None,
            "cronExpr": self.cron_expression,
            "interval": self.interval,
            "enabled": self.enabled,
            "lastResults": [r.to_dict() for r in self.last_results],
        }


class RecipeScheduler:
    """Plays all stored recipes sequentially, on demand or on a cron schedule.

    Usage:
        scheduler = RecipeScheduler.from_settings(session, ask_user, settings)
        scheduler.start("every_4h")
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        session: BrowserSession,
        store: RecipeStore,
        player: RecipePlayer,
        on_sensitive_input: SensitiveInputCallback,
        gap_seconds: float = 2.0,
    ):
        self.session = session
        self.store = store
        self.player = player
        self.on_sensitive_input = on_sensitive_input
        self.gap_seconds = gap_seconds

        self.is_running = False
        self.current_recipe_name: Optional[str] = None
        self.last_run_at: Optional[datetime] = None
        self.last_results: list[ScheduledRecipeRun] = []
        self.cron_expression: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self.log = logger.bind(component="scheduler")

    @classmethod
    def from_settings(
        cls,
        session: BrowserSession,
        on_sensitive_input: SensitiveInputCallback,
        settings: Settings,
        orchestrator: Optional[ScrapeOrchestrator] = None,
    ) -> "RecipeScheduler":
        return cls(
            session=session,
            store=RecipeStore.from_settings(settings),
            player=RecipePlayer.from_settings(settings, orchestrator),
            on_sensitive_input=on_sensitive_input,
            gap_seconds=settings.schedule_gap_seconds,
        )

    @property
    def enabled(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> ScheduleStatus:
        return ScheduleStatus(
            is_running=self.is_running,
            current_recipe_name=self.current_recipe_name,
            last_run_at=self.last_run_at,
            cron_expression=self.cron_expression if self.enabled else None,
            interval=CRON_TO_INTERVAL.get(self.cron_expression or "") if self.enabled else None,
            enabled=self.enabled,
            last_results=list(self.last_results),
        )

    def start(self, schedule: str) -> bool:
        """Schedule runs for a named interval or cron expression.

        Replaces any active schedule. Returns False, leaving nothing
        scheduled, when the expression is invalid. Must be called from a
        running event loop.
        """
        self._cancel_task()
        cron_expression = resolve_cron(schedule)
        if not croniter.is_valid(cron_expression):
            self.log.warning("Invalid cron expression", cron=cron_expression)
            self.cron_expression = None
            return False

        self.cron_expression = cron_expression
        self._task = asyncio.get_running_loop().create_task(self._loop(cron_expression))
        self.log.info("Scheduler started", cron=cron_expression)
        return True

    async def stop(self) -> None:
        """Stop scheduling. A run already in progress is cancelled."""
        task = self._task
        self._cancel_task()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.cron_expression = None
        self.log.info("Scheduler stopped")

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _loop(self, cron_expression: str) -> None:
        while True:
            await asyncio.sleep(seconds_until_next(cron_expression))
            try:
                await self.run_all()
            except Exception as e:
                self.log.exception("Scheduled run crashed", error=str(e))

    async def run_all(self) -> Optional[list[ScheduledRecipeRun]]:
        """Play every stored recipe in name order.

        Returns None without doing anything when a run is already in
        progress.
        """
        if self.is_running:
            self.log.info("Scheduled run already in progress, skipping")
            return None

        self.is_running = True
        results: list[ScheduledRecipeRun] = []
        try:
            recipes = self.store.list_recipes()
            self.log.info("Starting scheduled run", recipes=len(recipes))

            for position, recipe in enumerate(recipes):
                if position and self.gap_seconds > 0:
                    await asyncio.sleep(self.gap_seconds)
                self.current_recipe_name = recipe.name
                results.append(await self._run_recipe(recipe))

            self.last_run_at = datetime.now(UTC)
            self.last_results = results
            self.log.info(
                "Scheduled run complete",
                recipes=len(results),
                failed=sum(1 for r in results if r.status != PlaybackState.COMPLETED.value),
            )
        finally:
            self.current_recipe_name = None
            self.is_running = False
        return results

    async def _run_recipe(self, recipe: Recipe) -> ScheduledRecipeRun:
        self.log.info("Running recipe", recipe_id=recipe.id, recipe_name=recipe.name)
        try:
            handle = self.player.play(self.session, recipe, self.on_sensitive_input)
            if handle is None:
                return ScheduledRecipeRun(
                    recipe_id=recipe.id,
                    recipe_name=recipe.name,
                    status=PlaybackState.FAILED.value,
                    error=self.session.busy_message(),
                )
            result = await handle.wait()
        except Exception as e:
            self.log.exception("Recipe run crashed", recipe_id=recipe.id, error=str(e))
            return ScheduledRecipeRun(
                recipe_id=recipe.id,
                recipe_name=recipe.name,
                status=PlaybackState.FAILED.value,
                error=str(e) or type(e).__name__,
            )

        if not result.success:
            self.log.warning(
                "Recipe run failed",
                recipe_id=recipe.id,
                status=result.status.value,
                error=result.error,
            )
        return ScheduledRecipeRun(
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            status=result.status.value,
            error=result.error,
            rows=len(result.candidates),
        )
