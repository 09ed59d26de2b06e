"""
Income Conductor browser automation.

Drives app.incomeconductor.com with Playwright (sync API, Chromium):
sign in, open the configured client, write the intake values into the
profile and plan screens, recalculate, and read the plan summary.

The site has no API, so most steps click elements found by visible text.
Navigation, login and result extraction must succeed; the intermediate
clicks are best effort and are marked skipped when their element is absent.
"""

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional

from playwright.sync_api import sync_playwright, Error as PlaywrightError

from ..config import Settings, get_settings
from ..extraction.form_builder import AutomationFormData
from ..relay.progress import ProgressRelay
from .state import (
    AutomationState,
    AutomationStep,
    PlanResult,
    StepStatus,
    parse_monthly_income,
    parse_start_of_plan,
)

LOGIN_SELECTORS = [
    'input[type="email"]',
    'input[name="email"]',
    'input[name="username"]',
    'input[placeholder*="email" i]',
    'input[placeholder*="username" i]',
    "#email",
    "#username",
]
PASSWORD_SELECTORS = ['input[type="password"]', 'input[name="password"]', "#password"]
LOGIN_BUTTON_SELECTORS = [
    'button[type="submit"]',
    'input[type="submit"]',
    ".login-button",
    "#login-button",
]
CONFIRM_SELECTORS = [
    "button.swal2-confirm.btn.btn-info",
    "button.swal2-confirm",
    ".swal2-confirm",
    ".swal2-actions button",
]
DONE_SELECTORS = ["button.wt-btn-next", ".wt-btn-next", "button.btn-next"]
UPDATE_SELECTORS = ["button.btn.btn-primary", "button.btn-primary", 'button[type="submit"]']

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

# Clicks the first element matching `selector` whose text matches `text`
# (or the first match at all when `text` is empty). Returns whether it clicked.
_CLICK_BY_TEXT_JS = """
(args) => {
    const wanted = (args.text || '').trim().toLowerCase();
    for (const el of document.querySelectorAll(args.selector)) {
        const text = (el.textContent || el.value || '').trim().toLowerCase();
        const hit = !wanted || (args.exact ? text === wanted : text.includes(wanted));
        if (hit) {
            (el.closest('button') || el).click();
            return true;
        }
    }
    return false;
}
"""

_SUMMARY_ITEMS_JS = """
() => Array.from(document.querySelectorAll('.list-plan-summary .list-group-item')).map(item => {
    const label = item.querySelector('span');
    const badge = item.querySelector('.badge');
    return {label: label ? label.textContent : '', badge: badge ? badge.textContent : null};
})
"""

_TABLE_ROWS_JS = """
() => Array.from(document.querySelectorAll('tr')).map(row => {
    const first = row.querySelector('td');
    if (!first) return [];
    const cells = Array.from(row.querySelectorAll('td.text-right')).map(td => td.textContent);
    return [first.textContent].concat(cells);
}).filter(row => row.length > 0)
"""


class AutomationError(Exception):
    """The planning-site workflow could not produce results."""


class StepSkipped(Exception):
    """A best-effort step found nothing to act on."""


class IncomeConductorAutomation:
    """
    One run of the Income Conductor workflow.

    Usage:
        automation = IncomeConductorAutomation(form_data, relay=relay, session_id=sid)
        automation.on_progress = my_callback  # Optional, receives AutomationState
        result = automation.run()
    """

    def __init__(
        self,
        form_data: AutomationFormData,
        settings: Optional[Settings] = None,
        relay: Optional[ProgressRelay] = None,
        session_id: Optional[str] = None,
        broadcast: bool = False,
    ):
        self.form_data = form_data
        self.broadcast = broadcast
        self.settings = settings or get_settings()
        self.relay = relay
        self.session_id = session_id or form_data.session_id or str(uuid.uuid4())
        self.state = AutomationState.create(self.session_id)
        self.on_progress: Optional[Callable[[AutomationState], None]] = None
        self._stop_event = threading.Event()
        self._stop_reason = "Automation stopped"
        self._running = False
        self._page = None

    # ── progress ────────────────────────────────────────────────

    def _notify_progress(self):
        if self.on_progress:
            self.on_progress(self.state)

    def _publish(self, step: str, message: str, **details):
        if self.relay is not None:
            room = None if self.broadcast else self.session_id
            self.relay.publish(room, step, message, **details)

    def _log(self, step: AutomationStep, message: str):
        timestamp = datetime.now().strftime("%H:%M:%S")
        step.logs.append(f"[{timestamp}] {message}")
        print(f"  [Automation] [{step.step_id}] {message}")

    def _run_step(self, step_id: str, action: Callable[[AutomationStep], None], message: Optional[str] = None):
        if self._stop_event.is_set():
            raise AutomationError(self._stop_reason)

        step = self.state.get_step(step_id)
        step.status = StepStatus.IN_PROGRESS
        step.started_at = datetime.now().isoformat()
        if message:
            self._publish(step_id, message)
        self._notify_progress()

        try:
            action(step)
        except StepSkipped as e:
            step.status = StepStatus.SKIPPED
            step.error_message = str(e)
            self._log(step, f"⚠️ Skipped: {e}")
        except (PlaywrightError, AutomationError) as e:
            if step.fatal:
                step.status = StepStatus.FAILED
                step.error_message = str(e)
                step.completed_at = datetime.now().isoformat()
                self._log(step, f"❌ {e}")
                self._notify_progress()
                if isinstance(e, AutomationError):
                    raise
                raise AutomationError(f"{step.name} failed: {e}") from e
            step.status = StepStatus.SKIPPED
            step.error_message = str(e)
            self._log(step, f"⚠️ Continuing after error: {e}")
        else:
            step.status = StepStatus.COMPLETED

        step.completed_at = datetime.now().isoformat()
        self._notify_progress()

    # ── page helpers ────────────────────────────────────────────

    def _pause(self, ms: int):
        self._page.wait_for_timeout(ms)

    def _first_selector(self, selectors, timeout: int = 1000):
        """First element any of `selectors` resolves to within `timeout` ms each."""
        for selector in selectors:
            try:
                handle = self._page.wait_for_selector(selector, timeout=timeout)
            except PlaywrightError:
                continue
            if handle:
                return handle
        return None

    def _click_text(self, selector: str, text: str = "", exact: bool = True) -> bool:
        return bool(self._page.evaluate(
            _CLICK_BY_TEXT_JS, {"selector": selector, "text": text, "exact": exact}
        ))

    def _fill(self, selector: str, value: str) -> bool:
        handle = self._page.query_selector(selector)
        if not handle:
            return False
        handle.click(click_count=3)
        handle.fill(value)
        return True

    # ── workflow steps ──────────────────────────────────────────

    def _navigate(self, step: AutomationStep):
        url = self.settings.income_conductor_url
        self._page.goto(url, wait_until="networkidle", timeout=30000)
        self._log(step, f"Loaded {url}")
        self._pause(2000)

    def _login(self, step: AutomationStep):
        email_input = self._first_selector(LOGIN_SELECTORS)
        if email_input is None:
            self._log(step, "No login form detected, session already signed in")
            return

        if not self.settings.has_site_credentials:
            raise AutomationError("Income Conductor credentials are not configured")

        self._publish("login", "Login form detected, entering credentials...")
        email_input.click(click_count=3)
        email_input.fill(self.settings.income_conductor_username)

        password_input = self._first_selector(PASSWORD_SELECTORS, timeout=500)
        if password_input is None:
            raise AutomationError("Password field not found")
        password_input.click(click_count=3)
        password_input.fill(self.settings.income_conductor_password)

        button = self._first_selector(LOGIN_BUTTON_SELECTORS, timeout=500)
        if button is not None:
            button.click()
        else:
            self._page.keyboard.press("Enter")

        try:
            self._page.wait_for_load_state("networkidle", timeout=5000)
        except PlaywrightError:
            self._log(step, "No navigation detected, continuing")
        self._log(step, "Login submitted")

    def _select_plan(self, step: AutomationStep):
        self._first_selector(["h5.card-title"])
        if not self._click_text("h5.card-title", "Plan"):
            raise StepSkipped("Plan card not found")
        self._pause(2000)

    def _select_client(self, step: AutomationStep):
        client = self.settings.income_conductor_client
        if not self._click_text('a[href*="/clients/view/"]', client, exact=False):
            raise StepSkipped(f"Client link '{client}' not found")
        self._pause(3000)
        if not self._click_text("a.nav-link", "Profile"):
            self._log(step, "Profile tab not found")
        self._pause(2000)

    def _update_profile(self, step: AutomationStep):
        birthday = self.form_data.birthday
        if not self._fill("#data\\.dob", birthday):
            raise StepSkipped("Date of birth field not found")
        self._log(step, f"Date of birth set to {birthday}")
        self._pause(1000)
        if not self._click_text("span", "Save changes"):
            self._log(step, "Save changes button not found")
        self._pause(1000)

    def _edit_plan(self, step: AutomationStep):
        if not self._click_text("a.nav-link", "Plans"):
            raise StepSkipped("Plans tab not found")
        self._pause(1000)
        self._click_text("i.fa-chevron-down")
        self._pause(1000)
        if not self._click_text("a.dropdown-item", "Edit"):
            raise StepSkipped("Edit menu item not found")
        self._pause(2000)

        confirm = self._first_selector(CONFIRM_SELECTORS, timeout=2000)
        if confirm is not None:
            confirm.click()
        else:
            self._log(step, "No confirmation dialog")
        self._pause(1000)

        done = self._first_selector(DONE_SELECTORS)
        if done is not None:
            done.click()
        elif not self._click_text("button", "done", exact=False):
            self._log(step, "Done button not found")
        self._pause(1000)

    def _enter_investment(self, step: AutomationStep):
        amount = self.form_data.investment_amount
        if not self._fill('input[name="investmentamount"]', amount):
            raise StepSkipped("Investment amount field not found")
        self._page.keyboard.press("Enter")
        self._log(step, f"Investment amount set to {amount}")
        self._pause(1000)

    def _enter_client_data(self, step: AutomationStep):
        form = self.form_data
        tab = self._page.query_selector('a.nav-link[data-tabid="8"]')
        if tab:
            tab.click()
            self._pause(1000)
        else:
            self._log(step, "Clients tab not found")

        filled = 0
        if self._fill('input[name="client_retirement_age"]', form.retirement_age):
            filled += 1
        if self._fill('input[name="client_longevity"]', form.longevity_estimate):
            filled += 1
        for name, value in (
            ("client_retirement_month", form.retirement_month),
            ("client_retirement_year", form.retirement_year),
        ):
            try:
                self._page.select_option(f'select[name="{name}"]', value=value, timeout=2000)
                filled += 1
            except PlaywrightError as e:
                self._log(step, f"Could not select {name}={value}: {e}")

        if filled == 0:
            raise StepSkipped("No client fields found")
        self._pause(1000)

    def _update_plan(self, step: AutomationStep):
        button = self._first_selector(UPDATE_SELECTORS)
        if button is not None:
            button.click()
        elif not self._click_text('button, input[type="submit"]', "update", exact=False):
            raise StepSkipped("Update button not found")
        self._pause(2000)

    def _extract_results(self, step: AutomationStep):
        result = PlanResult()

        monthly = parse_monthly_income(self._page.evaluate(_SUMMARY_ITEMS_JS))
        if monthly:
            result.monthly_income_net = monthly
            self._publish(
                "data-extracted",
                f"Monthly Income (Net) extracted: {monthly}",
                monthlyIncomeNet=monthly,
            )
        else:
            self._log(step, "Income /mo (Net) value not found in plan summary")

        start = parse_start_of_plan(self._page.evaluate(_TABLE_ROWS_JS))
        if start:
            result.segment1 = start["plan1"]
            result.segment2 = start["plan2"]
            result.total = start["total"]
            self._publish(
                "plan-data-extracted",
                f"Start of Plan values extracted: {start['plan1']}, {start['plan2']}",
                startOfPlanValues=start,
                targetValue1=start["plan1"],
                targetValue2=start["plan2"],
                referenceValue3=start["total"],
            )
        else:
            self._log(step, "Start of Plan values not found")

        if not result.has_figures:
            raise AutomationError("No results found on the plan summary")

        screenshot = self.settings.automation_screenshot_path
        if screenshot:
            try:
                self._page.screenshot(path=screenshot, full_page=True)
                result.screenshot_path = screenshot
            except PlaywrightError as e:
                self._log(step, f"Screenshot failed: {e}")

        result.page_title = self._page.title()
        result.current_url = self._page.url
        self.state.result = result

    # ── run ─────────────────────────────────────────────────────

    @contextmanager
    def _open_page(self) -> Iterator:
        with sync_playwright() as playwright:
            launch_kwargs = {
                "headless": self.settings.automation_headless,
                "slow_mo": self.settings.automation_slow_mo_ms,
                "args": BROWSER_ARGS,
            }
            proxy = self.settings.proxy_settings()
            if proxy:
                launch_kwargs["proxy"] = proxy
            print("  [Automation] Launching Chromium...")
            browser = playwright.chromium.launch(**launch_kwargs)
            try:
                context = browser.new_context(viewport={"width": 1366, "height": 768})
                yield context.new_page()
            finally:
                browser.close()

    def run(self) -> PlanResult:
        """
        Execute the whole workflow.

        The run owns its terminal status: a stop request only takes effect
        when the current step returns, so the run stays active until the
        browser is closed.

        Raises:
            AutomationError: When a required step fails or the run is stopped
        """
        form = self.form_data
        self._running = True
        self.state.status = StepStatus.IN_PROGRESS
        self.state.started_at = datetime.now().isoformat()
        self._notify_progress()

        try:
            if self._stop_event.is_set():
                raise AutomationError(self._stop_reason)

            with self._open_page() as page:
                self._page = page
                self._run_step("navigation", self._navigate, "Navigating to Income Conductor website...")
                self._run_step("login", self._login)
                self._run_step("plan-selection", self._select_plan, "Looking for Plan card...")
                self._run_step(
                    "client-selection", self._select_client,
                    f"Selecting {self.settings.income_conductor_client} client...",
                )
                self._run_step(
                    "profile-update", self._update_profile,
                    f"Updating client profile with date of birth: {form.birthday}...",
                )
                self._run_step("plan-edit", self._edit_plan, "Opening plan editor...")
                self._run_step(
                    "investment-input", self._enter_investment,
                    f"Entering investment amount: ${form.investment_amount}...",
                )
                self._run_step(
                    "client-data", self._enter_client_data,
                    f"Updating client retirement age: {form.retirement_age} "
                    f"and longevity: {form.longevity_estimate}...",
                )
                self._run_step("plan-update", self._update_plan, "Recalculating plan...")
                self._run_step(
                    "data-extraction", self._extract_results,
                    "Extracting Income /mo (Net) from plan summary...",
                )

            if self._stop_event.is_set():
                raise AutomationError(self._stop_reason)
        except AutomationError as e:
            self._fail(str(e))
            raise
        except Exception as e:
            self._fail(f"Automation failed: {e}")
            raise AutomationError(f"Automation failed: {e}") from e
        finally:
            self._page = None
            self._running = False

        self.state.status = StepStatus.COMPLETED
        self.state.completed_at = datetime.now().isoformat()
        result = self.state.result
        self._publish(
            "completed",
            "Automation completed successfully!",
            pageTitle=result.page_title,
            currentUrl=result.current_url,
        )
        self._notify_progress()
        print(f"  [Automation] ✓ Session {self.session_id} completed")
        return result

    def _fail(self, message: str):
        self.state.status = StepStatus.FAILED
        self.state.error_message = message
        self.state.completed_at = datetime.now().isoformat()
        self._publish("error", message, error=message)
        self._notify_progress()
        print(f"  [Automation] ❌ Session {self.session_id}: {message}")

    @property
    def is_running(self) -> bool:
        """True while run() holds the browser."""
        return self._running

    def stop(self, reason: str = "Automation stopped"):
        """
        Ask the run to stop before its next step.

        A run that never started is failed at once; a running one keeps its
        status until run() notices the request and fails itself.
        """
        self._stop_reason = reason
        self._stop_event.set()
        if self.state.status == StepStatus.PENDING and not self._running:
            self.state.status = StepStatus.FAILED
            self.state.error_message = reason
            self.state.completed_at = datetime.now().isoformat()
