import os
import re

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from stepflow.executor import interpreter as interpreter_module
from stepflow.executor.interpreter import Interpreter, Run, RunState, screenshot_path
from stepflow.executor.session import BrowserSession, PlaywrightSession
from stepflow.models.dsl import RunStatus, Selector, SelectorKind, StepStatus, Test, make_step
from stepflow.models.errors import NavigationError


class FakeSession(BrowserSession):
    """Records every call; ``elements`` maps a selector's raw value to its text."""

    def __init__(self, elements=None, unreachable=(), broken_screenshots=()):
        self.elements = dict(elements or {})
        self.unreachable = set(unreachable)
        self.broken_screenshots = set(broken_screenshots)
        self.calls = []
        self.screenshots = []
        self.close_count = 0

    def navigate(self, url):
        self.calls.append(("navigate", url))
        if url in self.unreachable:
            raise NavigationError(f"Could not load {url}: net::ERR_NAME_NOT_RESOLVED")

    def count(self, selector):
        self.calls.append(("count", selector.raw))
        return 1 if selector.raw in self.elements else 0

    def click(self, selector):
        self.calls.append(("click", selector.raw))

    def type_text(self, selector, text):
        self.calls.append(("type_text", selector.raw, text))

    def read_text(self, selector):
        self.calls.append(("read_text", selector.raw))
        return self.elements[selector.raw]

    def screenshot(self, path):
        self.calls.append(("screenshot", path))
        if os.path.basename(path) in self.broken_screenshots:
            raise OSError("disk full")
        self.screenshots.append(path)

    def close(self):
        self.calls.append(("close",))
        self.close_count += 1


def css(raw):
    return Selector(kind=SelectorKind.CSS, raw=raw)


def search_test():
    return Test(
        name="Search",
        steps=[
            make_step("navigate", "open", value="https://example.com"),
            make_step("type_text", "fill", selector=css("#q"), value="phones"),
            make_step("click", "submit", selector=css("#go")),
            make_step("assert_text", "check", selector=css("h1"), value="Results"),
            make_step("screenshot", "capture", value="results.png"),
        ],
    )


def run_with(session, test, tmp_path):
    return Interpreter(session_factory=lambda: session, screenshots_dir=str(tmp_path)).run(test)


def test_passing_run(tmp_path):
    session = FakeSession({"#q": "", "#go": "Go", "h1": "Results for phones"})

    outcome = run_with(session, search_test(), tmp_path)

    assert outcome.status == RunStatus.PASSED
    assert outcome.passed
    assert [r.status for r in outcome.results] == [StepStatus.PASSED] * 5
    assert outcome.diagnostic_path is None
    assert outcome.results[4].artifact == os.path.join(str(tmp_path), "results.png")
    assert session.close_count == 1
    assert session.calls[-1] == ("close",)


def test_steps_execute_in_order(tmp_path):
    session = FakeSession({"#q": "", "#go": "Go", "h1": "Results"})

    run_with(session, search_test(), tmp_path)

    actions = [call[0] for call in session.calls if call[0] != "count"]
    assert actions == ["navigate", "type_text", "click", "read_text", "screenshot", "close"]


def test_assert_text_failure_stops_the_run(tmp_path):
    session = FakeSession({"#q": "", "#go": "Go", "h1": "No results"})

    outcome = run_with(session, search_test(), tmp_path)

    assert outcome.status == RunStatus.FAILED
    assert [r.status for r in outcome.results] == [
        StepStatus.PASSED, StepStatus.PASSED, StepStatus.PASSED, StepStatus.FAILED, StepStatus.SKIPPED,
    ]
    failed = outcome.results[3]
    assert failed.error == 'Assertion failed! Expected text "Results" not found in selector "h1".'

    # exactly one diagnostic capture, and the screenshot step never ran
    assert len(session.screenshots) == 1
    assert session.screenshots[0] == outcome.diagnostic_path
    assert re.match(r"error-\d+(-\d+)?\.png$", os.path.basename(outcome.diagnostic_path))
    assert session.close_count == 1
    assert session.calls[-1] == ("close",)


def test_unresolved_target_fails_before_acting(tmp_path):
    session = FakeSession({"#q": ""})

    outcome = run_with(session, search_test(), tmp_path)

    assert outcome.status == RunStatus.FAILED
    assert outcome.results[2].status == StepStatus.FAILED
    assert "#go" in outcome.results[2].error
    assert ("click", "#go") not in session.calls
    assert session.close_count == 1


def test_navigation_failure(tmp_path):
    session = FakeSession(unreachable={"https://example.com"})

    outcome = run_with(session, search_test(), tmp_path)

    assert outcome.status == RunStatus.FAILED
    assert "Could not load https://example.com" in outcome.results[0].error
    assert [r.status for r in outcome.results[1:]] == [StepStatus.SKIPPED] * 4
    assert session.close_count == 1


def test_unexpected_session_error_fails_the_run(tmp_path):
    class ExplodingSession(FakeSession):
        def click(self, selector):
            raise RuntimeError("browser crashed")

    session = ExplodingSession({"#q": "", "#go": "Go", "h1": "Results"})

    outcome = run_with(session, search_test(), tmp_path)

    assert outcome.status == RunStatus.FAILED
    assert outcome.results[2].error == "browser crashed"
    assert session.close_count == 1


def test_screenshot_failure_does_not_fail_the_run(tmp_path):
    session = FakeSession({"#q": "", "#go": "Go", "h1": "Results"}, broken_screenshots={"results.png"})

    outcome = run_with(session, search_test(), tmp_path)

    assert outcome.status == RunStatus.PASSED
    assert outcome.results[4].status == StepStatus.PASSED
    assert outcome.results[4].artifact is None


def test_screenshot_without_name_gets_generated_path(tmp_path):
    session = FakeSession()
    test = Test(name="snap", steps=[make_step("screenshot", "capture")])

    outcome = run_with(session, test, tmp_path)

    assert re.match(r"screenshot-\d+(-\d+)?\.png$", os.path.basename(outcome.results[0].artifact))


def test_failed_session_acquisition(tmp_path):
    def no_browser():
        raise RuntimeError("browser not installed")

    outcome = Interpreter(session_factory=no_browser, screenshots_dir=str(tmp_path)).run(search_test())

    assert outcome.status == RunStatus.FAILED
    assert outcome.results == []
    assert outcome.diagnostic_path is None


def test_run_state_machine(tmp_path):
    session = FakeSession({"#q": "", "#go": "Go", "h1": "Results"})
    run = Run(search_test(), lambda: session, str(tmp_path))
    assert run.state == RunState.IDLE

    outcome = run.execute()

    assert run.state == RunState.CLOSED
    assert run.outcome is outcome
    with pytest.raises(RuntimeError):
        run.execute()
    assert session.close_count == 1


def test_concurrent_runs_get_their_own_sessions(tmp_path):
    sessions = []

    def factory():
        session = FakeSession({"#q": "", "#go": "Go", "h1": "Results"})
        sessions.append(session)
        return session

    test = search_test()
    with Interpreter(session_factory=factory, screenshots_dir=str(tmp_path), max_workers=2) as interpreter:
        handles = [interpreter.start(test) for _ in range(3)]
        outcomes = [handle.result(timeout=10) for handle in handles]

    assert all(outcome.passed for outcome in outcomes)
    assert len({outcome.run_id for outcome in outcomes}) == 3
    assert all(handle.done() and handle.state == RunState.CLOSED for handle in handles)
    assert all(handle.test_id == test.id for handle in handles)
    assert len(sessions) == 3
    assert all(session.close_count == 1 for session in sessions)


def test_generated_names_are_unique(tmp_path, monkeypatch):
    monkeypatch.setattr(interpreter_module.time, "time", lambda: 1700000000.0)

    first = screenshot_path(str(tmp_path), "error")
    second = screenshot_path(str(tmp_path), "error")

    assert first != second
    assert os.path.basename(first) == "error-1700000000000.png"
    assert os.path.basename(second) == "error-1700000000000-1.png"


def test_unwritable_screenshots_dir_does_not_fail_the_run(tmp_path):
    blocked = tmp_path / "shots"
    blocked.write_text("not a directory")
    session = FakeSession()
    test = Test(name="snap", steps=[make_step("screenshot", "capture", value="a.png")])

    outcome = Interpreter(session_factory=lambda: session, screenshots_dir=str(blocked)).run(test)

    assert outcome.status == RunStatus.PASSED
    assert outcome.results[0].artifact is None
    assert session.close_count == 1


def test_unwritable_screenshots_dir_keeps_failure_reason(tmp_path):
    blocked = tmp_path / "shots"
    blocked.write_text("not a directory")
    session = FakeSession()

    outcome = Interpreter(session_factory=lambda: session, screenshots_dir=str(blocked)).run(search_test())

    assert outcome.status == RunStatus.FAILED
    assert "#q" in outcome.results[1].error
    assert outcome.diagnostic_path is None
    assert session.close_count == 1


def test_name_registry_forgets_older_millis(tmp_path, monkeypatch):
    clock = [1700000000.0]
    monkeypatch.setattr(interpreter_module.time, "time", lambda: clock[0])

    screenshot_path(str(tmp_path), "error")
    screenshot_path(str(tmp_path), "screenshot")
    clock[0] += 1
    latest = screenshot_path(str(tmp_path), "error")

    assert os.path.basename(latest) == "error-1700000001000.png"
    assert interpreter_module._issued_names._names == {latest}


class FakeLocator:
    def __init__(self, matches):
        self.matches = matches
        self.waits = []

    @property
    def first(self):
        return self

    def wait_for(self, state=None, timeout=None):
        self.waits.append(state)
        if not self.matches:
            raise PlaywrightTimeoutError("Timeout 30000ms exceeded.")

    def count(self):
        return self.matches


class FakePage:
    def __init__(self, locator):
        self.fake_locator = locator
        self.selectors = []

    def locator(self, selector):
        self.selectors.append(selector)
        return self.fake_locator


def playwright_session_on(page):
    session = PlaywrightSession.__new__(PlaywrightSession)
    session.page = page
    return session


def test_playwright_count_waits_for_first_match():
    locator = FakeLocator(matches=2)
    page = FakePage(locator)

    assert playwright_session_on(page).count(css("#go")) == 2
    assert locator.waits == ["attached"]
    assert page.selectors == ["css=#go"]


def test_playwright_count_is_zero_after_timeout():
    locator = FakeLocator(matches=0)

    assert playwright_session_on(FakePage(locator)).count(css("#late")) == 0
    assert locator.waits == ["attached"]
