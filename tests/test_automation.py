"""
Tests for the Income Conductor automation: result parsing, run state,
the workflow against a fake Playwright page, and the run registry.

No browser is launched: `_open_page` is patched to yield a MagicMock page.
"""

import sys
import threading
from contextlib import nullcontext
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from playwright.sync_api import Error as PlaywrightError

sys.path.insert(0, str(Path(__file__).parent.parent))

from paycheck_agent.automation import (
    AutomationBusyError,
    AutomationError,
    AutomationRegistry,
    AutomationState,
    IncomeConductorAutomation,
    PlanResult,
    StepStatus,
    parse_monthly_income,
    parse_start_of_plan,
)
from paycheck_agent.automation import income_conductor
from paycheck_agent.config import Settings
from paycheck_agent.extraction import AutomationFormData
from paycheck_agent.relay import ProgressRelay

SUMMARY_ITEMS = [
    {"label": "Plan Start", "badge": "Jan 2030"},
    {"label": "  Income /mo\n (Net) ", "badge": " $5,432 "},
]
TABLE_ROWS = [
    ["Segment", "A", "B", "C"],
    ["Start of Plan", "$100,000", "$150,000", "$250,000"],
]


def _settings(**overrides):
    values = {
        "income_conductor_username": "advisor@example.com",
        "income_conductor_password": "secret",
        "automation_screenshot_path": "",
    }
    values.update(overrides)
    return Settings(**values)


def _fake_page(summary=None, rows=None, clicks=True, login_form=True):
    page = MagicMock()
    page.url = "https://app.incomeconductor.com/plans/1"
    page.title.return_value = "Plan Summary"

    def evaluate(script, arg=None):
        if script == income_conductor._SUMMARY_ITEMS_JS:
            return SUMMARY_ITEMS if summary is None else summary
        if script == income_conductor._TABLE_ROWS_JS:
            return TABLE_ROWS if rows is None else rows
        return clicks

    def wait_for_selector(selector, timeout=None):
        if not login_form and selector in income_conductor.LOGIN_SELECTORS:
            raise PlaywrightError("Timeout waiting for selector")
        return MagicMock()

    page.evaluate.side_effect = evaluate
    page.wait_for_selector.side_effect = wait_for_selector
    return page


def _automation(page, relay=None, settings=None, **kwargs):
    automation = IncomeConductorAutomation(
        AutomationFormData(session_id="sess-1", birthday="03/06/1964", investment_amount="250000"),
        settings=settings or _settings(),
        relay=relay,
        **kwargs,
    )
    return automation, patch.object(
        IncomeConductorAutomation, "_open_page", lambda self: nullcontext(page)
    )


# ═══════════════════════════════════════════════════════════════
# RESULT PARSING
# ═══════════════════════════════════════════════════════════════

class TestParsing:
    def test_monthly_income(self):
        assert parse_monthly_income(SUMMARY_ITEMS) == "$5,432"

    def test_monthly_income_missing(self):
        assert parse_monthly_income([{"label": "Income /mo (Net)", "badge": None}]) is None
        assert parse_monthly_income([]) is None

    def test_start_of_plan(self):
        assert parse_start_of_plan(TABLE_ROWS) == {
            "plan1": "$100,000",
            "plan2": "$150,000",
            "total": "$250,000",
        }

    def test_start_of_plan_needs_three_values(self):
        assert parse_start_of_plan([["Start of Plan", "$1", "$2"]]) is None


class TestState:
    def test_create_has_all_steps(self):
        state = AutomationState.create("abc")
        assert state.steps[0].step_id == "navigation"
        assert state.steps[-1].step_id == "data-extraction"
        assert state.get_step("login").fatal
        assert not state.get_step("plan-selection").fatal
        assert state.is_active

    def test_progress_counts_skipped(self):
        state = AutomationState.create("abc")
        state.steps[0].status = StepStatus.COMPLETED
        state.steps[1].status = StepStatus.SKIPPED
        assert state.get_overall_progress() == 20

    def test_plan_result_shapes(self):
        result = PlanResult(monthly_income_net="$5,432", segment1="$1", segment2="$2", total="$3")
        assert result.to_dict()["plan1"] == "$1"
        assert result.to_webhook_dict() == {
            "success": True,
            "Segment1": "$1",
            "Segment2": "$2",
            "Total": "$3",
            "monthlyIncomeNet": "$5,432",
        }
        assert not PlanResult().has_figures


# ═══════════════════════════════════════════════════════════════
# WORKFLOW
# ═══════════════════════════════════════════════════════════════

class TestWorkflow:
    def test_successful_run(self):
        relay = ProgressRelay()
        page = _fake_page()
        automation, open_page = _automation(page, relay=relay)

        with open_page:
            result = automation.run()

        assert result.monthly_income_net == "$5,432"
        assert (result.segment1, result.segment2, result.total) == ("$100,000", "$150,000", "$250,000")
        assert result.page_title == "Plan Summary"
        assert automation.state.status == StepStatus.COMPLETED
        assert all(s.status == StepStatus.COMPLETED for s in automation.state.steps)

        steps = [u["step"] for u in relay.history("sess-1")]
        assert steps[0] == "navigation"
        assert "login" in steps
        assert "data-extracted" in steps
        assert "plan-data-extracted" in steps
        assert steps[-1] == "completed"

        page.goto.assert_called_once()
        page.select_option.assert_any_call(
            'select[name="client_retirement_month"]', value="1", timeout=2000
        )

    def test_already_signed_in(self):
        page = _fake_page(login_form=False)
        automation, open_page = _automation(page, settings=_settings(income_conductor_password=None))
        with open_page:
            automation.run()
        assert automation.state.get_step("login").status == StepStatus.COMPLETED

    def test_missing_credentials_is_fatal(self):
        relay = ProgressRelay()
        automation, open_page = _automation(
            _fake_page(), relay=relay, settings=_settings(income_conductor_username=None)
        )
        with open_page, pytest.raises(AutomationError, match="credentials"):
            automation.run()

        assert automation.state.status == StepStatus.FAILED
        assert automation.state.get_step("login").status == StepStatus.FAILED
        assert relay.history("sess-1")[-1]["step"] == "error"

    def test_missing_elements_are_skipped(self):
        automation, open_page = _automation(_fake_page(clicks=False))
        with open_page:
            automation.run()
        assert automation.state.get_step("plan-selection").status == StepStatus.SKIPPED
        assert automation.state.get_step("client-selection").status == StepStatus.SKIPPED
        assert automation.state.status == StepStatus.COMPLETED

    def test_playwright_error_in_optional_step(self):
        page = _fake_page()
        page.keyboard.press.side_effect = PlaywrightError("detached")
        automation, open_page = _automation(page)
        with open_page:
            automation.run()
        assert automation.state.get_step("investment-input").status == StepStatus.SKIPPED

    def test_no_results_is_fatal(self):
        automation, open_page = _automation(_fake_page(summary=[], rows=[]))
        with open_page, pytest.raises(AutomationError, match="No results"):
            automation.run()
        assert automation.state.get_step("data-extraction").status == StepStatus.FAILED

    def test_navigation_failure_is_wrapped(self):
        page = _fake_page()
        page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        automation, open_page = _automation(page)
        with open_page, pytest.raises(AutomationError, match="Open Income Conductor failed"):
            automation.run()

    def test_broadcast_publishes_without_room(self):
        emit = MagicMock()
        relay = ProgressRelay(emit=emit)
        automation, open_page = _automation(_fake_page(), relay=relay, broadcast=True)
        with open_page:
            automation.run()
        assert all(c.kwargs == {} for c in emit.call_args_list)
        assert relay.sessions() == []

    def test_stopped_before_start(self):
        automation, open_page = _automation(_fake_page())
        automation.stop()
        with open_page, pytest.raises(AutomationError, match="stopped"):
            automation.run()
        assert automation.state.status == StepStatus.FAILED

    def test_on_progress_callback(self):
        seen = []
        automation, open_page = _automation(_fake_page())
        automation.on_progress = lambda state: seen.append(state.get_overall_progress())
        with open_page:
            automation.run()
        assert seen[-1] == 100


# ═══════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════

def _run(session_id):
    return IncomeConductorAutomation(
        AutomationFormData(session_id=session_id), settings=_settings()
    )


class TestRegistry:
    def test_register_and_get(self):
        registry = AutomationRegistry()
        automation = _run("a")
        assert registry.register(automation) == "a"
        assert registry.get("a") is automation
        assert len(registry) == 1

    def test_concurrent_run_rejected(self):
        registry = AutomationRegistry()
        registry.register(_run("a"))
        with pytest.raises(AutomationBusyError, match="already running"):
            registry.register(_run("b"))

    def test_finished_run_frees_the_slot(self):
        registry = AutomationRegistry()
        first = _run("a")
        registry.register(first)
        first.state.status = StepStatus.COMPLETED
        first.state.completed_at = datetime.now().isoformat()
        registry.register(_run("b"))
        assert len(registry) == 2

    def test_stop(self):
        registry = AutomationRegistry()
        registry.register(_run("a"))
        assert registry.stop("a") is True
        assert registry.get("a").state.status == StepStatus.FAILED
        assert registry.stop("missing") is False

    def test_stuck_run_times_out(self):
        registry = AutomationRegistry(timeout_seconds=60)
        automation = _run("a")
        registry.register(automation)
        automation.state.status = StepStatus.IN_PROGRESS
        automation.state.started_at = (datetime.now() - timedelta(minutes=5)).isoformat()

        assert registry.active() == []
        assert automation.state.error_message.startswith("Automation timed out")

    def test_prune_drops_old_runs(self):
        registry = AutomationRegistry(ttl_seconds=60)
        automation = _run("a")
        registry.register(automation)
        automation.state.status = StepStatus.COMPLETED
        automation.state.completed_at = (datetime.now() - timedelta(minutes=5)).isoformat()

        registry.prune()
        assert registry.get("a") is None


# ═══════════════════════════════════════════════════════════════
# STOPPING AND UNEXPECTED ERRORS
# ═══════════════════════════════════════════════════════════════

class TestStopping:
    def test_stopped_run_holds_slot_until_browser_closes(self):
        registry = AutomationRegistry()
        entered = threading.Event()
        release = threading.Event()
        page = _fake_page()

        def slow_goto(*args, **kwargs):
            entered.set()
            release.wait(5)

        page.goto.side_effect = slow_goto
        automation, open_page = _automation(page)
        registry.register(automation)
        errors = []

        def target():
            try:
                automation.run()
            except AutomationError as e:
                errors.append(str(e))

        with open_page:
            thread = threading.Thread(target=target)
            thread.start()
            assert entered.wait(5)

            assert registry.stop("sess-1") is True
            assert automation.state.status == StepStatus.IN_PROGRESS
            assert automation.is_running
            with pytest.raises(AutomationBusyError):
                registry.register(_run("next"))

            release.set()
            thread.join(5)

        assert errors == ["Automation stopped"]
        assert automation.state.status == StepStatus.FAILED
        assert not automation.is_running
        assert registry.register(_run("next")) == "next"

    def test_stop_during_last_step_is_not_completed(self):
        page = _fake_page()
        automation, open_page = _automation(page)

        def title():
            automation.stop()
            return "Plan Summary"

        page.title.side_effect = title
        with open_page, pytest.raises(AutomationError, match="stopped"):
            automation.run()
        assert automation.state.status == StepStatus.FAILED
        assert automation.state.error_message == "Automation stopped"

    def test_stop_before_start_fails_at_once(self):
        automation = _run("a")
        automation.stop()
        assert automation.state.status == StepStatus.FAILED
        assert not automation.is_running

    def test_timed_out_run_keeps_reason(self):
        registry = AutomationRegistry(timeout_seconds=60)
        page = _fake_page()
        automation, open_page = _automation(page)
        registry.register(automation)

        def goto(*args, **kwargs):
            automation.state.started_at = (datetime.now() - timedelta(minutes=5)).isoformat()
            registry.prune()

        page.goto.side_effect = goto
        with open_page, pytest.raises(AutomationError, match="timed out"):
            automation.run()
        assert automation.state.error_message == "Automation timed out after 15 minutes"

    def test_unexpected_error_fails_the_run(self):
        relay = ProgressRelay()
        registry = AutomationRegistry()
        page = _fake_page()
        page.goto.side_effect = OSError("browser crashed")
        automation, open_page = _automation(page, relay=relay)
        registry.register(automation)

        with open_page, pytest.raises(AutomationError, match="browser crashed"):
            automation.run()

        assert automation.state.status == StepStatus.FAILED
        assert relay.history("sess-1")[-1]["step"] == "error"
        assert registry.register(_run("next")) == "next"

    def test_malformed_summary_fails_the_run(self):
        automation, open_page = _automation(_fake_page(summary=["not a dict"]))
        with open_page, pytest.raises(AutomationError, match="Automation failed"):
            automation.run()
        assert automation.state.status == StepStatus.FAILED
