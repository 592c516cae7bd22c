"""Tests for RecipePlayer."""

import asyncio

import pytest
import structlog

from bankfeed.browser.session import BrowserSession, SessionOwner
from bankfeed.recording.models import Recipe, RecordingStep, StepType
from bankfeed.recording.player import (
    PlaybackState,
    RecipePlayer,
    SensitiveInputRequest,
)


def _login_recipe(*extra_steps: RecordingStep) -> Recipe:
    return Recipe(
        id="usaa-checking",
        name="Checking",
        institution="Example Bank",
        start_url="https://bank.example/login",
        steps=[
            RecordingStep(type=StepType.TYPE, selector="#username", value="alice", delay_ms=100),
            RecordingStep(
                type=StepType.TYPE,
                selector="#password",
                is_sensitive=True,
                field_label="Password",
                delay_ms=200,
            ),
            RecordingStep(type=StepType.CLICK, selector="#sign-in", delay_ms=300),
            RecordingStep(type=StepType.CLICK, selector="#checking", delay_ms=400),
            *extra_steps,
        ],
    )


async def _password(request: SensitiveInputRequest) -> str:
    return "s3cret"


async def _wait_for_state(handle, state):
    for _ in range(200):
        if handle.state == state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"Playback never reached {state}")


@pytest.fixture
def player():
    return RecipePlayer(pace_factor=0.0)


class TestPlayback:
    """Tests for a full replay."""

    @pytest.mark.asyncio
    async def test_completes_and_scrapes(self, player, session, fake_automation):
        recipe = _login_recipe()

        handle = player.play(session, recipe, _password)
        result = await handle.wait()

        assert result.status == PlaybackState.COMPLETED
        assert result.success
        assert result.steps_executed == 4
        assert result.failed_step is None
        assert [c.description for c in result.candidates] == [
            "SQ *SHAKE SHACK",
            "SHELL OIL 5744",
            "PAYROLL DEPOSIT",
        ]
        assert handle.state == PlaybackState.COMPLETED
        assert handle.done
        assert not session.is_owned

    @pytest.mark.asyncio
    async def test_sensitive_value_used_but_not_stored(self, player, session, fake_automation):
        recipe = _login_recipe()

        await player.play(session, recipe, _password).wait()

        assert fake_automation.filled["#password"] == "s3cret"
        assert fake_automation.filled["#username"] == "alice"
        assert recipe.steps[1].value is None

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, player, session, fake_automation):
        await player.play(session, _login_recipe(), _password).wait()

        assert fake_automation.calls == [
            ("goto", "https://bank.example/login"),
            ("settle",),
            ("wait_for_selector", "#username"),
            ("fill", "#username"),
            ("wait_for_selector", "#password"),
            ("fill", "#password"),
            ("wait_for_selector", "#sign-in"),
            ("click", "#sign-in"),
            ("wait_for_selector", "#checking"),
            ("click", "#checking"),
            ("content",),
        ]

    @pytest.mark.asyncio
    async def test_replay_is_deterministic(self, player, automation_factory):
        """The same recipe on the same pages performs the same actions."""
        runs = []
        for _ in range(2):
            automation = automation_factory()
            result = await player.play(BrowserSession(automation), _login_recipe(), _password).wait()
            runs.append((automation.calls, result.executed, [c.to_dict() for c in result.candidates]))

        assert runs[0] == runs[1]
        assert runs[0][1] == ["type:#username", "type:#password", "click:#sign-in", "click:#checking"]

    @pytest.mark.asyncio
    async def test_navigate_and_wait_steps(self, player, session, fake_automation):
        recipe = Recipe(
            id="direct",
            name="Direct",
            institution="",
            start_url="https://bank.example/accounts",
            steps=[
                RecordingStep(type=StepType.WAIT, delay_ms=10),
                RecordingStep(type=StepType.NAVIGATE, url="https://bank.example/activity"),
            ],
        )

        result = await player.play(session, recipe, _password).wait()

        assert result.success
        assert result.executed == ["wait:10", "navigate:https://bank.example/activity"]
        assert len(result.candidates) == 3

    @pytest.mark.asyncio
    async def test_sync_callback_supported(self, player, session, fake_automation):
        result = await player.play(session, _login_recipe(), lambda request: "pw").wait()
        assert result.success
        assert fake_automation.filled["#password"] == "pw"

    @pytest.mark.asyncio
    async def test_recipe_id_bound_to_log_context(self, player, session, fake_automation):
        """Logs emitted during playback carry the recipe id, and only there."""
        seen = {}

        def password(request):
            seen.update(structlog.contextvars.get_contextvars())
            return "pw"

        result = await player.play(session, _login_recipe(), password).wait()

        assert result.success
        assert seen["recipe_id"] == "usaa-checking"
        assert "recipe_id" not in structlog.contextvars.get_contextvars()


class TestFailures:
    """Tests for steps that cannot be performed."""

    @pytest.mark.asyncio
    async def test_missing_selector_fails_with_index(self, player, session, fake_automation):
        recipe = _login_recipe()
        recipe.steps.insert(2, RecordingStep(type=StepType.CLICK, selector="#remember-me"))

        result = await player.play(session, recipe, _password).wait()

        assert result.status == PlaybackState.FAILED
        assert result.failed_step == 2
        assert result.steps_executed == 2
        assert "#remember-me" in result.error
        assert ("click", "#sign-in") not in fake_automation.calls
        assert not session.is_owned

    @pytest.mark.asyncio
    async def test_start_url_failure(self, player, session, fake_automation):
        fake_automation.fail_goto.add("https://bank.example/login")

        result = await player.play(session, _login_recipe(), _password).wait()

        assert result.status == PlaybackState.FAILED
        assert result.failed_step is None
        assert result.steps_executed == 0

    @pytest.mark.asyncio
    async def test_empty_sensitive_value_fails(self, player, session, fake_automation):
        async def no_value(request):
            return ""

        result = await player.play(session, _login_recipe(), no_value).wait()

        assert result.status == PlaybackState.FAILED
        assert result.failed_step == 1
        assert "#password" not in fake_automation.filled

    @pytest.mark.asyncio
    async def test_scrape_failure_after_steps(self, player, session, fake_automation):
        fake_automation.content_error = RuntimeError("renderer crashed")

        result = await player.play(session, _login_recipe(), _password).wait()

        assert result.status == PlaybackState.FAILED
        assert result.steps_executed == 4
        assert result.failed_step is None
        assert "renderer crashed" in result.error

    @pytest.mark.asyncio
    async def test_busy_session_rejected(self, player, session, fake_automation):
        session.acquire(SessionOwner.RECORDER)

        assert player.play(session, _login_recipe(), _password) is None
        assert fake_automation.calls == []
        assert session.owner == SessionOwner.RECORDER


class TestSensitiveInputAndCancel:
    """Tests for suspension and cancellation."""

    @pytest.mark.asyncio
    async def test_pauses_for_input(self, player, session, fake_automation):
        requests = []
        answer = asyncio.get_running_loop().create_future()

        async def ask(request):
            requests.append(request)
            return await answer

        handle = player.play(session, _login_recipe(), ask)
        await _wait_for_state(handle, PlaybackState.PAUSED_FOR_INPUT)

        assert handle.current_step == 1
        assert requests == [SensitiveInputRequest(label="Password", step_index=1, total_steps=4)]
        assert session.owner == SessionOwner.PLAYER

        answer.set_result("s3cret")
        result = await handle.wait()
        assert result.success

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_for_input(self, player, session, fake_automation):
        never = asyncio.get_running_loop().create_future()

        async def ask(request):
            return await never

        handle = player.play(session, _login_recipe(), ask)
        await _wait_for_state(handle, PlaybackState.PAUSED_FOR_INPUT)
        handle.cancel()
        result = await handle.wait()

        assert result.status == PlaybackState.CANCELLED
        assert result.steps_executed == 1
        assert "#password" not in fake_automation.filled
        assert ("content",) not in fake_automation.calls
        assert not session.is_owned

    @pytest.mark.asyncio
    async def test_cancel_before_first_step(self, player, session, fake_automation):
        handle = player.play(session, _login_recipe(), _password)
        handle.cancel()
        result = await handle.wait()

        assert result.status == PlaybackState.CANCELLED
        assert result.steps_executed == 0

    @pytest.mark.asyncio
    async def test_cancel_interrupts_pacing_delay(self, session, fake_automation):
        player = RecipePlayer(pace_factor=1.0, max_step_delay_ms=3000)
        recipe = _login_recipe()
        recipe.steps[0].delay_ms = 60000

        handle = player.play(session, recipe, _password)
        await asyncio.sleep(0.05)
        handle.cancel()
        result = await handle.wait()

        assert result.status == PlaybackState.CANCELLED
        assert result.steps_executed == 0
        assert result.duration_ms < 3000

    def test_paced_delay_capped(self):
        player = RecipePlayer(pace_factor=0.5, max_step_delay_ms=3000)
        assert player._paced_delay(1000) == 500
        assert player._paced_delay(60000) == 3000
