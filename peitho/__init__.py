"""
Peitho - Test Run Tooling for PeithoTest

This package provides the reporting and run-support pieces of the
PeithoTest end-to-end and API suites.

Subpackages:
    - reporting: Allure results writer and reader
    - config: Settings file and environment configuration
    - service: Readiness checks for the application under test

Usage:
    from peitho import AllureReporter, ReporterConfig

    reporter = AllureReporter(ReporterConfig.from_env())
    reporter.on_run_begin()
    reporter.on_test_begin(test, result)
    reporter.on_test_end(test, result)
    reporter.on_run_end()

With pytest the bundled plugin does this for you:

    pytest --allure-results-dir allure-results
"""

__version__ = "0.1.0"

# Re-export config for convenience
from .config import (
    CIEnvironment,
    ReporterConfig,
    ServiceWaitConfig,
    Settings,
    ValidationResult,
    load_reporter_config,
    load_settings,
)

# Re-export reporting for convenience
from .reporting import (
    AllureReporter,
    GroupRecord,
    ReportDirectoryError,
    ReportRecord,
    ReportStatus,
    ResultAttachment,
    RunnerStatus,
    TestCaseInfo,
    TestError,
    TestLocation,
    TestResultInfo,
    load_results,
)

# Re-export service checks for convenience
from .service import (
    ProbeResult,
    ServiceUnavailableError,
    ensure_healthy,
    wait_for_service,
)

__all__ = [
    # Package info
    "__version__",
    # Config
    "CIEnvironment",
    "ReporterConfig",
    "ServiceWaitConfig",
    "Settings",
    "ValidationResult",
    "load_reporter_config",
    "load_settings",
    # Reporting
    "AllureReporter",
    "GroupRecord",
    "ReportDirectoryError",
    "ReportRecord",
    "ReportStatus",
    "ResultAttachment",
    "RunnerStatus",
    "TestCaseInfo",
    "TestError",
    "TestLocation",
    "TestResultInfo",
    "load_results",
    # Service
    "ProbeResult",
    "ServiceUnavailableError",
    "ensure_healthy",
    "wait_for_service",
]
