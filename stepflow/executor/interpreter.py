import logging
import os
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from stepflow import config
from stepflow.executor.session import BrowserSession, PlaywrightSession
from stepflow.models.dsl import (
    RunOutcome,
    RunStatus,
    StepKind,
    StepResult,
    StepStatus,
    Test,
)
from stepflow.models.errors import AssertionFailure, StepError, TargetResolutionError

LOGGER = logging.getLogger(__name__)


class _NameRegistry:
    """Generated names handed out within the current millisecond; older ones are forgotten."""

    def __init__(self):
        self._lock = threading.Lock()
        self._millis = None
        self._names = set()

    def claim(self, directory: str, prefix: str, millis: int) -> str:
        with self._lock:
            if millis != self._millis:
                self._millis = millis
                self._names = set()
            stem = f"{prefix}-{millis}"
            candidate = os.path.join(directory, f"{stem}.png")
            counter = 1
            while candidate in self._names or os.path.exists(candidate):
                candidate = os.path.join(directory, f"{stem}-{counter}.png")
                counter += 1
            self._names.add(candidate)
            return candidate


_issued_names = _NameRegistry()


def screenshot_path(directory: str, prefix: str, filename: Optional[str] = None) -> str:
    """
    Picks the file a capture is written to: ``filename`` when given, otherwise
    ``<prefix>-<epoch-millis>.png`` made unique within the directory.
    """
    os.makedirs(directory, exist_ok=True)
    if filename:
        return os.path.join(directory, filename)
    return _issued_names.claim(directory, prefix, int(time.time() * 1000))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    CLOSED = "closed"


class Run:
    """
    A single replay of a Test: idle -> running -> passed|failed -> closed.

    Steps execute one after another on one session. The first failing step
    aborts the rest, a diagnostic screenshot is taken, and the session is
    released exactly once whatever happened.
    """

    def __init__(self, test: Test, session_factory: Callable[[], BrowserSession], screenshots_dir: str):
        self.run_id = str(uuid.uuid4())
        self.test = test
        self.state = RunState.IDLE
        self.outcome: Optional[RunOutcome] = None
        self._session_factory = session_factory
        self._screenshots_dir = screenshots_dir
        self._handlers = {
            StepKind.NAVIGATE: self._navigate,
            StepKind.CLICK: self._click,
            StepKind.TYPE_TEXT: self._type_text,
            StepKind.ASSERT_TEXT: self._assert_text,
            StepKind.SCREENSHOT: self._screenshot,
        }
        missing = set(StepKind) - set(self._handlers)
        if missing:
            raise TypeError(f"No handler for step kinds: {sorted(k.value for k in missing)}")

    def _transition(self, state: RunState) -> None:
        LOGGER.debug("Run %s: %s -> %s", self.run_id, self.state.value, state.value)
        self.state = state

    def execute(self) -> RunOutcome:
        if self.state != RunState.IDLE:
            raise RuntimeError(f"Run {self.run_id} has already been executed")

        started_at = _utcnow()
        self._transition(RunState.RUNNING)
        LOGGER.info("Executing test: %s", self.test.name)

        session = None
        results: List[StepResult] = []
        diagnostic_path = None
        status = RunStatus.FAILED
        try:
            session = self._session_factory()
            status = self._execute_steps(session, results)
            if status == RunStatus.FAILED:
                diagnostic_path = self._capture_diagnostic(session)
        except Exception:
            LOGGER.exception("Run %s could not acquire a browser session", self.run_id)
        finally:
            self._transition(RunState.PASSED if status == RunStatus.PASSED else RunState.FAILED)
            if session is not None:
                self._release(session)
            self.outcome = RunOutcome(
                run_id=self.run_id,
                test_id=self.test.id,
                status=status,
                results=results,
                diagnostic_path=diagnostic_path,
                started_at=started_at,
                finished_at=_utcnow(),
            )
            self._transition(RunState.CLOSED)

        if status == RunStatus.PASSED:
            LOGGER.info('Test "%s" PASSED.', self.test.name)
        else:
            LOGGER.warning('Test "%s" FAILED.', self.test.name)
        return self.outcome

    def _execute_steps(self, session: BrowserSession, results: List[StepResult]) -> RunStatus:
        steps = self.test.steps
        for index, step in enumerate(steps):
            LOGGER.info("  - Executing step: %s (%s)", step.name, step.kind)
            try:
                artifact = self._handlers[StepKind(step.kind)](session, index, step)
            except Exception as exc:
                if isinstance(exc, StepError):
                    if exc.step_index is None:
                        exc.step_index = index
                    LOGGER.error("Step %d failed: %s", index + 1, exc)
                else:
                    LOGGER.exception("Step %d raised an unexpected error", index + 1)
                results.append(self._result(index, step, StepStatus.FAILED, error=str(exc)))
                for later_index in range(index + 1, len(steps)):
                    results.append(self._result(later_index, steps[later_index], StepStatus.SKIPPED))
                return RunStatus.FAILED
            results.append(self._result(index, step, StepStatus.PASSED, artifact=artifact))
        return RunStatus.PASSED

    @staticmethod
    def _result(index, step, status, error=None, artifact=None) -> StepResult:
        return StepResult(index=index, name=step.name, kind=step.kind, status=status, error=error, artifact=artifact)

    def _resolve(self, session: BrowserSession, index: int, step) -> None:
        if session.count(step.selector) == 0:
            kind = step.selector.kind.value if step.selector.kind else "native"
            raise TargetResolutionError(f"No element matches {kind} selector '{step.selector.raw}'", index)

    def _navigate(self, session, index, step):
        session.navigate(step.value)

    def _click(self, session, index, step):
        self._resolve(session, index, step)
        session.click(step.selector)

    def _type_text(self, session, index, step):
        self._resolve(session, index, step)
        session.type_text(step.selector, step.value)

    def _assert_text(self, session, index, step):
        self._resolve(session, index, step)
        text = session.read_text(step.selector)
        if step.value not in text:
            raise AssertionFailure(
                f'Assertion failed! Expected text "{step.value}" not found in selector "{step.selector.raw}".',
                index,
            )

    def _screenshot(self, session, index, step) -> Optional[str]:
        path = step.value or "screenshot"
        try:
            path = screenshot_path(self._screenshots_dir, "screenshot", step.value)
            session.screenshot(path)
        except Exception:
            # screenshots never fail a run
            LOGGER.warning("Screenshot %s could not be saved", path, exc_info=True)
            return None
        LOGGER.info("    Screenshot saved to %s", path)
        return path

    def _capture_diagnostic(self, session: BrowserSession) -> Optional[str]:
        path = "error screenshot"
        try:
            path = screenshot_path(self._screenshots_dir, "error")
            session.screenshot(path)
        except Exception:
            LOGGER.warning("Error screenshot %s could not be saved", path, exc_info=True)
            return None
        LOGGER.info("    Error screenshot saved to %s", path)
        return path

    def _release(self, session: BrowserSession) -> None:
        try:
            session.close()
        except Exception:
            LOGGER.warning("Browser session for run %s did not close cleanly", self.run_id, exc_info=True)


class RunHandle:
    """Returned by Interpreter.start(); the caller awaits or polls the outcome here."""

    def __init__(self, run: Run, future: Future):
        self._run = run
        self._future = future

    @property
    def run_id(self) -> str:
        return self._run.run_id

    @property
    def test_id(self) -> str:
        return self._run.test.id

    @property
    def state(self) -> RunState:
        return self._run.state

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> RunOutcome:
        return self._future.result(timeout=timeout)


class Interpreter:
    def __init__(
        self,
        session_factory: Callable[[], BrowserSession] = PlaywrightSession,
        screenshots_dir: Optional[str] = None,
        max_workers: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.screenshots_dir = screenshots_dir or config.SCREENSHOTS_DIR
        self.max_workers = max_workers or config.MAX_CONCURRENT_RUNS
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def _new_run(self, test: Test) -> Run:
        return Run(test, self.session_factory, self.screenshots_dir)

    def run(self, test: Test) -> RunOutcome:
        """Replays ``test`` in the calling thread."""
        return self._new_run(test).execute()

    def start(self, test: Test) -> RunHandle:
        """Replays ``test`` on a worker thread; each run gets its own session."""
        run = self._new_run(test)
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="stepflow-run")
            future = self._executor.submit(run.execute)
        LOGGER.info("Requested execution for test: %s (run %s)", test.name, run.run_id)
        return RunHandle(run, future)

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
