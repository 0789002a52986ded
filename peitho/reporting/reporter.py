"""
Reporter that turns test lifecycle events into Allure result files.

This module provides the AllureReporter class, which a test runner
drives through ``on_run_begin`` / ``on_test_begin`` / ``on_test_end``.
"""

from __future__ import annotations

import json
import logging
import shutil
import threading
import time
import uuid
from collections import Counter
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

from ..config import ReporterConfig
from .models import (
    SUITE_SEPARATOR,
    Attachment,
    ExecutorInfo,
    GroupRecord,
    Label,
    Parameter,
    ReportRecord,
    ReportStatus,
    ResultAttachment,
    StatusDetails,
    TestCaseInfo,
    TestResultInfo,
    TrackedTest,
    build_full_name,
    container_name,
    describe_location,
    extension_for_content_type,
    map_status,
    stable_hash,
)

logger = logging.getLogger(__name__)

EXECUTOR_FILE = "executor.json"
RESULT_SUFFIX = "-result.json"
CONTAINER_SUFFIX = "-container.json"


class ReportDirectoryError(RuntimeError):
    """The results directory could not be prepared; no report is possible."""


def _framework_version() -> str:
    try:
        return version("pytest")
    except PackageNotFoundError:
        return "unknown"


def _now_ms() -> int:
    return int(time.time() * 1000)


class AllureReporter:
    """
    Writes an Allure results directory for one test run.

    The reporter keeps a map of in-flight executions keyed by the result
    object itself, so parallel executions of identically named tests
    never share identifiers or start times.

    Example:
        reporter = AllureReporter(ReporterConfig.from_env())
        reporter.on_run_begin()

        reporter.on_test_begin(test, result)
        ...  # the test runs
        reporter.on_test_end(test, result)

        reporter.on_run_end()
    """

    def __init__(
        self,
        config: ReporterConfig | None = None,
        framework: str = "pytest",
        language: str = "Python",
    ):
        self.config = config or ReporterConfig.from_env()
        self.framework = framework
        self.language = language
        self.framework_version = _framework_version()
        self._results_dir: Path | None = None
        self._tests: dict[TestResultInfo, TrackedTest] = {}
        self._lock = threading.Lock()
        self._written: Counter[str] = Counter()

    @property
    def results_dir(self) -> Path:
        if self._results_dir is None:
            raise RuntimeError("Results directory is not set; call on_run_begin() first")
        return self._results_dir

    @property
    def pending(self) -> int:
        """Number of executions that began but have not ended."""
        with self._lock:
            return len(self._tests)

    @property
    def written(self) -> dict[str, int]:
        """Count of result files written so far, by status."""
        with self._lock:
            return dict(self._written)

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def on_run_begin(
        self,
        config: ReporterConfig | None = None,
        test_count: int | None = None,
        clean: bool = True,
    ) -> Path:
        """
        Prepare a clean results directory and write ``executor.json``.

        Args:
            config: Replaces the reporter's configuration for this run
            test_count: Number of collected tests, for logging only
            clean: Clear the directory and write executor.json. Parallel
                workers pass False and leave that to the controller.

        Returns:
            The resolved results directory

        Raises:
            ReportDirectoryError: If the directory cannot be cleared,
                created or written to
        """
        if self._results_dir is not None:
            raise RuntimeError("on_run_begin() called more than once for this run")
        if config is not None:
            self.config = config

        results_dir = self.config.resolve_results_dir()
        try:
            if clean and results_dir.exists():
                shutil.rmtree(results_dir)
            results_dir.mkdir(parents=True, exist_ok=True)
            self._results_dir = results_dir
            if clean:
                self._write_json(EXECUTOR_FILE, self._build_executor().to_dict())
        except OSError as e:
            self._results_dir = None
            raise ReportDirectoryError(f"Cannot prepare results directory {results_dir}: {e}") from e

        if test_count is not None:
            logger.info(f"Writing Allure results for {test_count} test(s) to {results_dir}")
        else:
            logger.info(f"Writing Allure results to {results_dir}")
        return results_dir

    def on_test_begin(self, test: TestCaseInfo, result: TestResultInfo) -> TrackedTest:
        """Reserve identifiers and a start time for one execution."""
        start = int(result.start_time) if result.start_time is not None else _now_ms()
        tracked = TrackedTest(
            uuid=str(uuid.uuid4()),
            container_uuid=str(uuid.uuid4()),
            start=start,
        )
        with self._lock:
            self._tests[result] = tracked
        logger.debug(f"Tracking {test.id} as {tracked.uuid}")
        return tracked

    def on_test_end(self, test: TestCaseInfo, result: TestResultInfo) -> ReportRecord | None:
        """
        Write the result and container files for a finished execution.

        Returns:
            The written ReportRecord, or None when the execution was
            never announced through on_test_begin()
        """
        with self._lock:
            tracked = self._tests.get(result)
        if tracked is None:
            logger.debug(f"Ignoring end of untracked test {test.id}")
            return None

        stop = tracked.start + int(result.duration_ms or 0)
        full_name = build_full_name(test.title_path)
        error = result.error

        record = ReportRecord(
            uuid=tracked.uuid,
            name=test.title,
            full_name=full_name,
            history_id=stable_hash(full_name),
            test_case_id=stable_hash(describe_location(test)),
            status=map_status(result.status, error),
            start=tracked.start,
            stop=stop,
            status_details=StatusDetails(
                message=error.message if error else None,
                trace=error.stack if error else None,
            ),
            attachments=self._collect_attachments(test, result, tracked.uuid),
            parameters=self._build_parameters(result),
            labels=self._build_labels(test, result),
        )
        self._write_json(f"{record.uuid}{RESULT_SUFFIX}", record.to_dict())

        container = GroupRecord(
            uuid=tracked.container_uuid,
            name=container_name(test.title_path),
            children=[record.uuid],
            start=tracked.start,
            stop=stop,
        )
        self._write_json(f"{container.uuid}{CONTAINER_SUFFIX}", container.to_dict())

        with self._lock:
            self._tests.pop(result, None)
            self._written[record.status.value] += 1
        logger.debug(f"Wrote {record.status.value} result for {full_name}")
        return record

    def on_run_end(self) -> None:
        """Log a summary and report executions that never ended."""
        with self._lock:
            orphans = [tracked.uuid for tracked in self._tests.values()]
        if orphans:
            logger.warning(f"{len(orphans)} test(s) began but never ended; no results written for them")
        written = self.written
        total = sum(written.values())
        summary = ", ".join(f"{count} {status}" for status, count in sorted(written.items()))
        logger.info(f"Wrote {total} Allure result(s){': ' + summary if summary else ''}")

    # ─────────────────────────────────────────────────────────────────────
    # Record building
    # ─────────────────────────────────────────────────────────────────────

    def _build_executor(self) -> ExecutorInfo:
        ci = self.config.ci
        return ExecutorInfo(
            name=self.config.executor_name,
            type=self.config.executor_type,
            report_name=self.config.report_name,
            url=ci.repository_url,
            build_order=ci.run_number,
            build_name=ci.workflow,
            build_url=ci.build_url,
        )

    def _build_labels(self, test: TestCaseInfo, result: TestResultInfo) -> list[Label]:
        parent_suites = test.title_path[:-1]
        labels = [
            Label("language", self.language),
            Label("framework", self.framework),
            Label("package", (test.location.file if test.location else None) or ""),
        ]

        if parent_suites:
            labels.append(Label("parentSuite", parent_suites[0]))
            if len(parent_suites) > 1:
                labels.append(Label("suite", SUITE_SEPARATOR.join(parent_suites[1:])))
        if result.project_name:
            labels.append(Label("thread", result.project_name))
        labels.append(Label("host", self.config.host))
        labels.append(Label("frameworkVersion", self.framework_version))
        return labels

    def _build_parameters(self, result: TestResultInfo) -> list[Parameter]:
        parameters = []
        if result.project_name:
            parameters.append(Parameter("Project", result.project_name))
        if isinstance(result.retry, int):
            parameters.append(Parameter("Retry", str(result.retry)))
        return parameters

    def _collect_attachments(
        self,
        test: TestCaseInfo,
        result: TestResultInfo,
        base_uuid: str,
    ) -> list[Attachment]:
        attachments = []
        for index, attachment in enumerate(result.attachments):
            if not attachment.path and not attachment.body:
                continue
            extension = self._extension_for(attachment)
            file_name = f"{base_uuid}-attachment-{index}{extension}"
            try:
                self._persist_attachment(attachment, self.results_dir / file_name)
            except OSError as e:
                logger.warning(f"Failed to persist attachment '{attachment.name}' of {test.id}: {e}")
                continue
            attachments.append(Attachment(attachment.name, file_name, attachment.content_type))
        return attachments

    @staticmethod
    def _extension_for(attachment: ResultAttachment) -> str:
        extension = extension_for_content_type(attachment.content_type)
        if extension is not None:
            return extension
        if attachment.path:
            return Path(attachment.path).suffix
        return ""

    @staticmethod
    def _persist_attachment(attachment: ResultAttachment, destination: Path) -> None:
        if attachment.path:
            shutil.copyfile(attachment.path, destination)
        elif isinstance(attachment.body, str):
            destination.write_bytes(attachment.body.encode("utf-8"))
        else:
            destination.write_bytes(attachment.body)

    def _write_json(self, file_name: str, data: Any) -> None:
        path = self.results_dir / file_name
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def is_failure(status: ReportStatus) -> bool:
    """True for outcomes that should fail a CI job."""
    return status in (ReportStatus.FAILED, ReportStatus.BROKEN)
