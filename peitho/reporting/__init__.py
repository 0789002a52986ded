"""
Allure Reporting for PeithoTest Runs

This package turns a test run's lifecycle into an Allure results
directory that ``allure generate`` / ``allure serve`` can render.

Features:
    - One result file per finished test execution
    - One container file per enclosing suite
    - Stable history and test case ids across runs and retries
    - Screenshot, trace and log attachments
    - CI build metadata in executor.json

Usage:
    from peitho.reporting import AllureReporter, TestCaseInfo, TestResultInfo

    reporter = AllureReporter()
    reporter.on_run_begin()

    test = TestCaseInfo(id="tests/test_auth.py::test_login",
                        title_path=["tests/test_auth.py", "Auth", "logs in"])
    result = TestResultInfo()
    reporter.on_test_begin(test, result)

    result.status = "passed"
    result.duration_ms = 120
    reporter.on_test_end(test, result)

    reporter.on_run_end()
"""

# Models
from .models import (
    Attachment,
    ExecutorInfo,
    GroupRecord,
    Label,
    Parameter,
    ReportRecord,
    ReportStatus,
    ResultAttachment,
    RunnerStatus,
    StatusDetails,
    TestCaseInfo,
    TestError,
    TestLocation,
    TestResultInfo,
    TrackedTest,
    build_full_name,
    container_name,
    describe_location,
    extension_for_content_type,
    map_status,
    stable_hash,
)

# Reporter
from .reporter import AllureReporter, ReportDirectoryError, is_failure

# Reading results back
from .results import ResultsSummary, load_containers, load_results, status_icon

__all__ = [
    # Models
    "Attachment",
    "ExecutorInfo",
    "GroupRecord",
    "Label",
    "Parameter",
    "ReportRecord",
    "ReportStatus",
    "ResultAttachment",
    "RunnerStatus",
    "StatusDetails",
    "TestCaseInfo",
    "TestError",
    "TestLocation",
    "TestResultInfo",
    "TrackedTest",
    # Naming and mapping
    "build_full_name",
    "container_name",
    "describe_location",
    "extension_for_content_type",
    "map_status",
    "stable_hash",
    # Reporter
    "AllureReporter",
    "ReportDirectoryError",
    "is_failure",
    # Results
    "ResultsSummary",
    "load_containers",
    "load_results",
    "status_icon",
]
