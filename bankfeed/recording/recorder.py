"""Records user interactions on the driven page into recipe steps.

States: IDLE -> RECORDING -> IDLE. While recording the recorder owns the
browser session; stopping freezes the captured steps into a RecipeDraft
and releases it.
"""

import time
from enum import Enum
from typing import Callable, Optional

import structlog

from ..browser.session import BrowserSession, SessionOwner
from ..config import Settings
from .models import RecipeDraft, RecordingStep, StepType, is_sensitive_target

logger = structlog.get_logger()


class RecorderState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


class ActionRecorder:
    """Turns captured page interactions into RecordingSteps.

    Consecutive text entries on the same field become one ``type`` step
    holding the final value. Values typed into sensitive fields are never
    kept, not even in memory.
    """

    def __init__(
        self,
        max_recorded_delay_ms: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_recorded_delay_ms = max_recorded_delay_ms
        self._clock = clock
        self.state = RecorderState.IDLE
        self.start_url = ""
        self._steps: list[RecordingStep] = []
        self._session: Optional[BrowserSession] = None
        self._last_event_at: Optional[float] = None
        self.log = logger.bind(component="recorder")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ActionRecorder":
        return cls(max_recorded_delay_ms=settings.max_recorded_delay_ms)

    @property
    def steps(self) -> tuple[RecordingStep, ...]:
        return tuple(self._steps)

    @property
    def is_recording(self) -> bool:
        return self.state == RecorderState.RECORDING

    async def start(self, session: BrowserSession) -> bool:
        """Begin recording on ``session``. Returns False if it is busy."""
        if self.is_recording:
            self.log.warning("Recorder already running")
            return False
        if not session.acquire(SessionOwner.RECORDER):
            return False

        try:
            self.start_url = await session.automation.get_current_url()
            self._steps = []
            self._last_event_at = self._clock()
            self._session = session
            self.state = RecorderState.RECORDING
            await session.automation.start_interaction_capture(self.handle_interaction)
        except Exception:
            self.state = RecorderState.IDLE
            self._session = None
            session.release(SessionOwner.RECORDER)
            raise

        self.log.info("Recording started", start_url=self.start_url)
        return True

    async def stop(self) -> RecipeDraft:
        """Freeze captured steps into a draft and release the session."""
        if not self.is_recording or self._session is None:
            raise RuntimeError("Recorder is not recording")

        session = self._session
        self.state = RecorderState.IDLE
        self._session = None
        draft = RecipeDraft(start_url=self.start_url, steps=tuple(self._steps))

        try:
            await session.automation.stop_interaction_capture()
        except Exception as e:
            self.log.warning("Failed to detach interaction capture", error=str(e))
        finally:
            session.release(SessionOwner.RECORDER)

        self.log.info(
            "Recording stopped",
            steps=len(draft.steps),
            sensitive_steps=sum(1 for s in draft.steps if s.is_sensitive),
        )
        return draft

    def add_wait(self, delay_ms: Optional[int] = None) -> None:
        """Insert a manual wait marker.

        Without ``delay_ms`` the wait lasts as long as the user has been
        idle since the previous step.
        """
        if not self.is_recording:
            return
        elapsed = self._elapsed_ms()
        self._steps.append(RecordingStep(
            type=StepType.WAIT,
            delay_ms=delay_ms if delay_ms is not None else elapsed,
        ))

    def handle_interaction(self, payload: dict) -> None:
        """Callback for interactions forwarded by the browser."""
        if not self.is_recording:
            return

        kind = payload.get("type")
        if kind == "navigate":
            self._record_navigation(payload.get("url") or "")
        elif kind == "click":
            self._record_click(payload)
        elif kind == "input":
            self._record_input(payload)
        elif kind == "select":
            self._record_select(payload)
        else:
            self.log.debug("Ignoring unsupported interaction", type=kind)

    def _elapsed_ms(self) -> int:
        now = self._clock()
        previous = self._last_event_at if self._last_event_at is not None else now
        self._last_event_at = now
        return min(int((now - previous) * 1000), self.max_recorded_delay_ms)

    def _record_navigation(self, url: str) -> None:
        if not url or url == "about:blank":
            return
        last_url = self.start_url
        for step in reversed(self._steps):
            if step.type == StepType.NAVIGATE:
                last_url = step.url
                break
        if url == last_url and (not self._steps or self._steps[-1].type == StepType.NAVIGATE):
            return
        self._steps.append(RecordingStep(type=StepType.NAVIGATE, url=url, delay_ms=self._elapsed_ms()))

    def _record_click(self, payload: dict) -> None:
        selector = payload.get("selector")
        if not selector:
            return
        self._steps.append(RecordingStep(
            type=StepType.CLICK,
            selector=selector,
            delay_ms=self._elapsed_ms(),
            field_label=payload.get("label") or None,
        ))

    def _record_input(self, payload: dict) -> None:
        selector = payload.get("selector")
        if not selector:
            return
        label = payload.get("label") or None
        sensitive = is_sensitive_target(selector, label, payload.get("inputType"))
        value = None if sensitive else payload.get("value", "")

        last = self._steps[-1] if self._steps else None
        if last is not None and last.type == StepType.TYPE and last.selector == selector:
            # Keep the first keystroke's delay, take the latest value
            last.is_sensitive = last.is_sensitive or sensitive
            last.value = None if last.is_sensitive else value
            self._last_event_at = self._clock()
            return

        self._steps.append(RecordingStep(
            type=StepType.TYPE,
            selector=selector,
            value=value,
            delay_ms=self._elapsed_ms(),
            is_sensitive=sensitive,
            field_label=label or selector,
        ))

    def _record_select(self, payload: dict) -> None:
        selector = payload.get("selector")
        if not selector:
            return
        label = payload.get("label") or None
        sensitive = is_sensitive_target(selector, label)
        self._steps.append(RecordingStep(
            type=StepType.SELECT,
            selector=selector,
            value=None if sensitive else payload.get("value", ""),
            delay_ms=self._elapsed_ms(),
            is_sensitive=sensitive,
            field_label=label or selector,
        ))
