"""
pytest plugin that writes Allure results through AllureReporter.

Enabled with ``--allure-results-dir DIR`` or the ALLURE_RESULTS_DIR
environment variable. Tests can attach files or inline content with the
``attach`` fixture:

    def test_dashboard(page, attach):
        attach("screenshot", path="shot.png", content_type="image/png")
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from .config import load_reporter_config
from .config.models import RESULTS_DIR_ENV
from .reporting import (
    AllureReporter,
    ResultAttachment,
    RunnerStatus,
    TestCaseInfo,
    TestError,
    TestLocation,
    TestResultInfo,
)

logger = logging.getLogger(__name__)

PLUGIN_NAME = "peitho-allure"
TIMEOUT_MARKER = "Timeout >"  # pytest-timeout failure text


@dataclass
class Execution:
    """Everything gathered about one test item while it runs."""
    test: TestCaseInfo
    result: TestResultInfo
    reports: list[pytest.TestReport] = field(default_factory=list)
    error: TestError | None = None
    timed_out: bool = False


EXECUTION_KEY = pytest.StashKey[Execution]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("peitho", "Allure results reporting")
    group.addoption(
        "--allure-results-dir",
        dest="allure_results_dir",
        default=None,
        help=f"Write Allure results to DIR (overrides {RESULTS_DIR_ENV})",
    )
    group.addoption(
        "--allure-project",
        dest="allure_project",
        default=None,
        help="Project name recorded as the 'thread' label and 'Project' parameter",
    )
    group.addoption(
        "--peitho-config",
        dest="peitho_config",
        default=None,
        help="Path to a peitho.yaml settings file",
    )


def pytest_configure(config: pytest.Config) -> None:
    results_dir = config.getoption("allure_results_dir")
    if not results_dir and not os.environ.get(RESULTS_DIR_ENV):
        return

    settings_path = config.getoption("peitho_config")
    try:
        reporter_config = load_reporter_config(settings_path)
    except ValueError as e:
        raise pytest.UsageError(str(e)) from e
    if results_dir:
        reporter_config.results_dir = results_dir

    plugin = AllureResultsPlugin(
        reporter=AllureReporter(reporter_config),
        project_name=config.getoption("allure_project"),
        # pytest-xdist workers share the controller's directory
        is_worker=hasattr(config, "workerinput"),
    )
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is not None:
        config.pluginmanager.unregister(plugin)


@pytest.fixture
def attach(request: pytest.FixtureRequest) -> Callable[..., None]:
    """Attach a file or inline content to the running test's result."""
    def _attach(
        name: str,
        body: bytes | str | None = None,
        path: str | os.PathLike[str] | None = None,
        content_type: str | None = None,
    ) -> None:
        # Reruns start a new execution, so resolve it per call
        execution = request.node.stash.get(EXECUTION_KEY, None)
        if execution is None:
            logger.debug(f"Allure reporting disabled; dropping attachment '{name}'")
            return
        execution.result.attachments.append(
            ResultAttachment(
                name=name,
                content_type=content_type,
                path=os.fspath(path) if path is not None else None,
                body=body,
            )
        )

    return _attach


# ─────────────────────────────────────────────────────────────────────────────
# Item translation
# ─────────────────────────────────────────────────────────────────────────────

def describe_item(item: pytest.Item) -> TestCaseInfo:
    """Build the runner-neutral description of a collected item."""
    file_path, lineno, _ = item.location
    title_path: list[str] = []
    for node in item.listchain():
        if isinstance(node, pytest.File):
            title_path = [node.nodeid]
        elif isinstance(node, pytest.Class):
            title_path.append(node.name)
    title_path.append(item.name)
    return TestCaseInfo(
        id=item.nodeid,
        title_path=title_path,
        location=TestLocation(
            file=file_path,
            line=lineno + 1 if lineno is not None else None,
        ),
    )


def runner_status(execution: Execution, interrupted: bool = False) -> RunnerStatus | str | None:
    """
    Collapse per-phase reports into a single runner outcome.

    A failing setup or teardown yields "error", which the reporter
    treats as a failure when an error was captured.
    """
    if interrupted:
        return RunnerStatus.INTERRUPTED
    if execution.timed_out:
        return RunnerStatus.TIMED_OUT
    for report in execution.reports:
        # pytest-rerunfailures relabels a retried failure as "rerun"
        if report.failed or report.outcome == "rerun":
            return RunnerStatus.FAILED if report.when == "call" else "error"
    if any(report.skipped for report in execution.reports):
        return RunnerStatus.SKIPPED
    if execution.reports:
        return RunnerStatus.PASSED
    return None


def _error_from(report: pytest.TestReport, call: pytest.CallInfo[Any]) -> TestError:
    if call.excinfo is not None and not report.skipped:
        message = call.excinfo.exconly()
    elif isinstance(report.longrepr, tuple):
        # Skips carry (path, lineno, reason)
        message = str(report.longrepr[2])
    else:
        message = report.longreprtext.splitlines()[-1] if report.longreprtext else None
    return TestError(message=message, stack=report.longreprtext or None)


class AllureResultsPlugin:
    """
    Bridges pytest hooks to AllureReporter's lifecycle.

    Every attempt at an item is its own execution, bounded by
    ``pytest_runtest_logstart`` and ``pytest_runtest_logfinish``.
    pytest-rerunfailures fires that pair once per attempt inside a
    single ``pytest_runtest_protocol`` call.
    """

    def __init__(
        self,
        reporter: AllureReporter,
        project_name: str | None = None,
        is_worker: bool = False,
    ):
        self.reporter = reporter
        self.project_name = project_name
        self.is_worker = is_worker
        self._running: dict[str, pytest.Item] = {}

    @pytest.hookimpl(tryfirst=True)
    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.reporter.on_run_begin(clean=not self.is_worker)

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        self.reporter.on_run_end()

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: pytest.Item | None):
        self._running[item.nodeid] = item
        outcome = yield
        self._running.pop(item.nodeid, None)

        # An interrupt escapes before pytest_runtest_logfinish
        execution = item.stash.get(EXECUTION_KEY, None)
        if execution is not None:
            interrupted = outcome.excinfo is not None and issubclass(outcome.excinfo[0], KeyboardInterrupt)
            self._finish(item, execution, interrupted)

    def pytest_runtest_logstart(self, nodeid: str, location: tuple[str, int | None, str]) -> None:
        item = self._running.get(nodeid)
        if item is None:
            return

        test = describe_item(item)
        result = TestResultInfo(
            start_time=time.time() * 1000,
            project_name=self.project_name,
            # pytest-rerunfailures counts executions from 1
            retry=getattr(item, "execution_count", 1) - 1,
        )
        item.stash[EXECUTION_KEY] = Execution(test=test, result=result)
        self.reporter.on_test_begin(test, result)

    def pytest_runtest_logfinish(self, nodeid: str, location: tuple[str, int | None, str]) -> None:
        item = self._running.get(nodeid)
        execution = item.stash.get(EXECUTION_KEY, None) if item is not None else None
        if execution is not None:
            self._finish(item, execution)

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_makereport(self, item: pytest.Item, call: pytest.CallInfo[Any]):
        outcome = yield
        report: pytest.TestReport = outcome.get_result()
        execution = item.stash.get(EXECUTION_KEY, None)
        if execution is None:
            return

        execution.reports.append(report)
        if (report.failed or report.skipped) and execution.error is None:
            execution.error = _error_from(report, call)
            if report.failed and TIMEOUT_MARKER in (execution.error.message or ""):
                execution.timed_out = True

    def _finish(self, item: pytest.Item, execution: Execution, interrupted: bool = False) -> None:
        del item.stash[EXECUTION_KEY]
        result = execution.result
        result.status = runner_status(execution, interrupted)
        result.duration_ms = sum(report.duration for report in execution.reports) * 1000
        result.error = execution.error
        # Later phase reports repeat the sections of earlier phases
        sections = execution.reports[-1].sections if execution.reports else []
        for title, content in sections:
            if content:
                result.attachments.append(
                    ResultAttachment(name=title, content_type="text/plain", body=content)
                )
        self.reporter.on_test_end(execution.test, result)
