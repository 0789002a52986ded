"""Shared fixtures for peitho tests."""

from pathlib import Path

import pytest

from peitho.config import ReporterConfig
from peitho.reporting import AllureReporter, TestCaseInfo, TestLocation

pytest_plugins = ["pytester"]

# Variables the reporter and probe read; cleared so the host CI cannot leak in
ENV_VARS = (
    "ALLURE_RESULTS_DIR",
    "HOSTNAME",
    "GITHUB_SERVER_URL",
    "GITHUB_REPOSITORY",
    "GITHUB_WORKFLOW",
    "GITHUB_RUN_NUMBER",
    "GITHUB_RUN_ID",
    "PEITHO_HEALTHCHECK_URL",
    "PEITHO_HEALTH_MAX_ATTEMPTS",
    "PEITHO_HEALTH_INTERVAL_MS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def results_dir(tmp_path: Path) -> Path:
    return tmp_path / "allure-results"


@pytest.fixture
def reporter(results_dir: Path) -> AllureReporter:
    """A reporter whose run has already begun."""
    reporter = AllureReporter(ReporterConfig(results_dir=str(results_dir)))
    reporter.on_run_begin()
    return reporter


@pytest.fixture
def make_test():
    """Factory for test case descriptions."""

    def _make(
        *titles: str,
        test_id: str = "t1",
        file: str | None = "tests/e2e/test_auth.py",
        line: int | None = 10,
        column: int | None = 5,
    ) -> TestCaseInfo:
        return TestCaseInfo(
            id=test_id,
            title_path=list(titles),
            location=TestLocation(file=file, line=line, column=column),
        )

    return _make
