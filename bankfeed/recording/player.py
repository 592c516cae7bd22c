"""Deterministic replay of recorded recipes.

States: IDLE -> PLAYING -> (PAUSED_FOR_INPUT -> PLAYING)* -> COMPLETED,
FAILED or CANCELLED.

Steps run strictly in recorded order. A step that cannot be performed
stops playback with its index; nothing is skipped or retried, and the
browser stays open so a human can take over. Cancellation is checked at
step boundaries, during pacing delays and while waiting for sensitive
input.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from ..browser.automation import BrowserAutomation
from ..browser.session import BrowserSession, SessionOwner
from ..config import Settings
from ..extraction.models import CandidateTransaction, ScrapeResult
from ..extraction.orchestrator import ScrapeOrchestrator
from ..utils.logging import LogContext, PlaybackLogger
from .models import Recipe, RecordingStep, StepType

logger = structlog.get_logger()


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED_FOR_INPUT = "paused_for_input"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


FINISHED_STATES = frozenset({PlaybackState.COMPLETED, PlaybackState.FAILED, PlaybackState.CANCELLED})


@dataclass(frozen=True)
class SensitiveInputRequest:
    """Asks the caller for a value that is never stored."""

    label: str
    step_index: int
    total_steps: int


SensitiveInputCallback = Callable[
    [SensitiveInputRequest], Union[Awaitable[Optional[str]], Optional[str]]
]


@dataclass
class PlaybackResult:
    """Outcome of one recipe execution."""

    status: PlaybackState
    steps_executed: int = 0
    failed_step: Optional[int] = None
    error: Optional[str] = None
    scrape: Optional[ScrapeResult] = None
    duration_ms: int = 0
    executed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == PlaybackState.COMPLETED

    @property
    def candidates(self) -> list[CandidateTransaction]:
        return self.scrape.candidates if self.scrape else []

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "stepsExecuted": self.steps_executed,
            "failedStep": self.failed_step,
            "error": self.error,
            "candidates": [c.to_dict() for c in self.candidates],
            "durationMs": self.duration_ms,
        }


class PlaybackHandle:
    """Live view of one playback: state, progress, cancel and completion."""

    def __init__(self, recipe: Recipe):
        self.recipe = recipe
        self.state = PlaybackState.IDLE
        self.current_step: Optional[int] = None
        self._cancel_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def total_steps(self) -> int:
        return len(self.recipe.steps)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self.state in FINISHED_STATES

    def cancel(self) -> None:
        """Stop at the next step boundary, leaving the page as it is."""
        if not self.done:
            self._cancel_event.set()

    async def wait(self) -> PlaybackResult:
        if self._task is None:
            raise RuntimeError("Playback was never started")
        return await asyncio.shield(self._task)


class _StepFailed(Exception):
    def __init__(self, step_index: Optional[int], message: str):
        super().__init__(message)
        self.step_index = step_index


class _Cancelled(Exception):
    pass


class RecipePlayer:
    """Replays recipes against a browser session."""

    def __init__(
        self,
        orchestrator: Optional[ScrapeOrchestrator] = None,
        pace_factor: float = 1.0,
        max_step_delay_ms: int = 3000,
        selector_timeout_ms: int = 10000,
        settle_timeout_ms: int = 15000,
    ):
        self.orchestrator = orchestrator or ScrapeOrchestrator()
        self.pace_factor = pace_factor
        self.max_step_delay_ms = max_step_delay_ms
        self.selector_timeout_ms = selector_timeout_ms
        self.settle_timeout_ms = settle_timeout_ms
        self.log = logger.bind(component="player")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        orchestrator: Optional[ScrapeOrchestrator] = None,
    ) -> "RecipePlayer":
        return cls(
            orchestrator=orchestrator,
            pace_factor=settings.playback_pace_factor,
            max_step_delay_ms=settings.max_step_delay_ms,
            selector_timeout_ms=settings.selector_timeout_ms,
            settle_timeout_ms=settings.settle_timeout_ms,
        )

    def play(
        self,
        session: BrowserSession,
        recipe: Recipe,
        on_sensitive_input: SensitiveInputCallback,
    ) -> Optional[PlaybackHandle]:
        """Start playback in the background.

        Returns None without touching the page when the session is owned
        by another flow. Must be called from a running event loop.
        """
        if not session.acquire(SessionOwner.PLAYER):
            return None

        handle = PlaybackHandle(recipe)
        handle.state = PlaybackState.PLAYING
        handle._task = asyncio.get_running_loop().create_task(
            self._run(session, handle, on_sensitive_input)
        )
        return handle

    async def _run(
        self,
        session: BrowserSession,
        handle: PlaybackHandle,
        on_sensitive_input: SensitiveInputCallback,
    ) -> PlaybackResult:
        # Runs in its own task, so the bound context ends with the playback
        with LogContext(recipe_id=handle.recipe.id):
            return await self._play(session, handle, on_sensitive_input)

    async def _play(
        self,
        session: BrowserSession,
        handle: PlaybackHandle,
        on_sensitive_input: SensitiveInputCallback,
    ) -> PlaybackResult:
        recipe = handle.recipe
        plog = PlaybackLogger(recipe.id, recipe.name)
        plog.playback_started(handle.total_steps, recipe.start_url)
        started = time.time()
        result = PlaybackResult(status=PlaybackState.PLAYING)

        try:
            await self._execute(session.automation, handle, on_sensitive_input, result, plog)
            result.status = PlaybackState.COMPLETED
        except _Cancelled:
            result.status = PlaybackState.CANCELLED
            self.log.info("Playback cancelled", step_index=handle.current_step)
        except _StepFailed as e:
            result.status = PlaybackState.FAILED
            result.failed_step = e.step_index
            result.error = str(e)
            if e.step_index is not None:
                plog.step_failed(e.step_index, recipe.steps[e.step_index].type.value, str(e))
            else:
                self.log.error("Playback failed", error=str(e))
        except Exception as e:
            result.status = PlaybackState.FAILED
            result.failed_step = handle.current_step
            result.error = str(e) or type(e).__name__
            self.log.error("Playback crashed", error=result.error)
        finally:
            session.release(SessionOwner.PLAYER)

        result.duration_ms = int((time.time() - started) * 1000)
        handle.state = result.status
        plog.playback_finished(result.status.value, result.duration_ms)
        return result

    async def _execute(
        self,
        automation: BrowserAutomation,
        handle: PlaybackHandle,
        on_sensitive_input: SensitiveInputCallback,
        result: PlaybackResult,
        plog: PlaybackLogger,
    ) -> None:
        recipe = handle.recipe

        loaded = await automation.goto(recipe.start_url)
        if not loaded.success:
            raise _StepFailed(None, f"Could not load start URL: {loaded.error}")
        await self._settle(automation)

        for index, step in enumerate(recipe.steps):
            self._check_cancel(handle)
            handle.current_step = index

            if step.type != StepType.WAIT and step.delay_ms:
                await self._pause(handle, self._paced_delay(step.delay_ms))

            plog.step_started(index, step.type.value, step.selector or step.url)
            step_started = time.time()
            await self._run_step(automation, handle, index, step, on_sensitive_input, plog)
            result.steps_executed = index + 1
            result.executed.append(_describe(step))
            plog.step_completed(index, step.type.value, int((time.time() - step_started) * 1000))

        self._check_cancel(handle)
        try:
            result.scrape = await self.orchestrator.scrape(automation)
        except Exception as e:
            raise _StepFailed(None, f"Extraction after playback failed: {e}") from e

    async def _run_step(
        self,
        automation: BrowserAutomation,
        handle: PlaybackHandle,
        index: int,
        step: RecordingStep,
        on_sensitive_input: SensitiveInputCallback,
        plog: PlaybackLogger,
    ) -> None:
        if step.type == StepType.WAIT:
            await self._pause(handle, step.delay_ms or 0)
            return

        if step.type == StepType.NAVIGATE:
            if not step.url:
                raise _StepFailed(index, "Navigate step has no URL")
            loaded = await automation.goto(step.url)
            if not loaded.success:
                raise _StepFailed(index, f"Navigation failed: {loaded.error}")
            await self._settle(automation)
            return

        if not step.selector:
            raise _StepFailed(index, f"{step.type.value} step has no selector")

        value = step.value
        if step.is_sensitive and step.type in (StepType.TYPE, StepType.SELECT):
            value = await self._request_value(handle, index, step, on_sensitive_input, plog)

        found = await automation.wait_for_selector(step.selector, timeout_ms=self.selector_timeout_ms)
        if not found.success:
            raise _StepFailed(index, f"Selector not found: {step.selector}")

        if step.type == StepType.CLICK:
            action = await automation.click(step.selector, timeout_ms=self.selector_timeout_ms)
        elif step.type == StepType.TYPE:
            action = await automation.fill(step.selector, value or "")
        else:
            action = await automation.select_option(step.selector, value or "")

        if not action.success:
            raise _StepFailed(index, f"{step.type.value} failed: {action.error}")

    async def _request_value(
        self,
        handle: PlaybackHandle,
        index: int,
        step: RecordingStep,
        on_sensitive_input: SensitiveInputCallback,
        plog: PlaybackLogger,
    ) -> str:
        request = SensitiveInputRequest(
            label=step.field_label or step.selector or f"Step {index + 1}",
            step_index=index,
            total_steps=handle.total_steps,
        )
        handle.state = PlaybackState.PAUSED_FOR_INPUT
        plog.awaiting_input(index, request.label)

        supplied = on_sensitive_input(request)
        if inspect.isawaitable(supplied):
            input_task = asyncio.ensure_future(supplied)
            cancel_task = asyncio.ensure_future(handle._cancel_event.wait())
            done, pending = await asyncio.wait(
                {input_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in pending:
                task.cancel()
            if cancel_task in done:
                raise _Cancelled()
            try:
                value = input_task.result()
            except Exception as e:
                raise _StepFailed(index, f"Sensitive input failed: {e}") from e
        else:
            value = supplied

        self._check_cancel(handle)
        if not value:
            raise _StepFailed(index, "No value supplied for sensitive step")
        handle.state = PlaybackState.PLAYING
        return value

    def _paced_delay(self, delay_ms: int) -> int:
        return int(min(delay_ms * self.pace_factor, self.max_step_delay_ms))

    async def _pause(self, handle: PlaybackHandle, delay_ms: int) -> None:
        if delay_ms <= 0:
            return
        try:
            await asyncio.wait_for(handle._cancel_event.wait(), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            return
        raise _Cancelled()

    async def _settle(self, automation: BrowserAutomation) -> None:
        settled = await automation.wait_for_settle(timeout_ms=self.settle_timeout_ms)
        if not settled.success:
            # Pages with long-polling never reach network idle
            self.log.warning("Page did not settle", error=settled.error)

    def _check_cancel(self, handle: PlaybackHandle) -> None:
        if handle.cancel_requested:
            raise _Cancelled()


def _describe(step: RecordingStep) -> str:
    target = step.url if step.type == StepType.NAVIGATE else step.selector
    if step.type == StepType.WAIT:
        target = str(step.delay_ms or 0)
    return f"{step.type.value}:{target}"
