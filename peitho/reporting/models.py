"""
Report data models for Allure-compatible test results.

This module defines the records the reporter writes to the results
directory, the run-level tracking state, and the runner-side inputs
the reporter consumes.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


FULL_NAME_SEPARATOR = " › "
SUITE_SEPARATOR = " > "
GLOBAL_CONTAINER_NAME = "Global"


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────

class ReportStatus(str, Enum):
    """Outcome of a test as understood by report viewers."""
    PASSED = "passed"
    FAILED = "failed"
    BROKEN = "broken"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"


class RunnerStatus(str, Enum):
    """Raw outcome reported by the test runner."""
    PASSED = "passed"
    FAILED = "failed"
    TIMED_OUT = "timedOut"
    SKIPPED = "skipped"
    INTERRUPTED = "interrupted"


# ─────────────────────────────────────────────────────────────────────────────
# Runner-side inputs
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class TestLocation:
    """Source location of a test case."""
    __test__ = False

    file: str | None = None
    line: int | None = None
    column: int | None = None


@dataclass
class TestError:
    """Error raised by a test, if any."""
    __test__ = False

    message: str | None = None
    stack: str | None = None


@dataclass
class ResultAttachment:
    """
    An artifact produced while a test ran.

    Either ``path`` (a file to copy) or ``body`` (inline content) is
    expected; attachments with neither are ignored by the reporter.
    """
    name: str
    content_type: str | None = None
    path: str | None = None
    body: bytes | str | None = None


@dataclass
class TestCaseInfo:
    """Static description of a test case."""
    __test__ = False

    id: str
    title_path: list[str] = field(default_factory=list)
    location: TestLocation | None = None

    @property
    def title(self) -> str:
        return self.title_path[-1] if self.title_path else ""


@dataclass(eq=False)
class TestResultInfo:
    """
    One execution of a test case.

    Compared by identity: every retry of a test is a distinct result
    instance, and the reporter tracks each one separately.
    """
    __test__ = False

    status: RunnerStatus | str | None = None
    start_time: float | None = None  # epoch milliseconds
    duration_ms: float | None = None
    retry: int | None = None
    project_name: str | None = None
    error: TestError | None = None
    attachments: list[ResultAttachment] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Run tracking
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TrackedTest:
    """Identifiers reserved for a test between begin and end."""
    uuid: str
    container_uuid: str
    start: int


# ─────────────────────────────────────────────────────────────────────────────
# Report records
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Label:
    name: str
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class Parameter:
    name: str
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class StatusDetails:
    message: str | None = None
    trace: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.message is not None:
            result["message"] = self.message
        if self.trace is not None:
            result["trace"] = self.trace
        return result


@dataclass(frozen=True)
class Attachment:
    """An attachment file stored next to its result record."""
    name: str
    source: str
    type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "source": self.source}
        if self.type is not None:
            result["type"] = self.type
        return result


@dataclass(frozen=True)
class ReportRecord:
    """
    Persisted outcome of one finished test execution.

    Written once as ``<uuid>-result.json`` and never modified.
    """
    uuid: str
    name: str
    full_name: str
    history_id: str
    test_case_id: str
    status: ReportStatus
    start: int
    stop: int
    status_details: StatusDetails = field(default_factory=StatusDetails)
    attachments: list[Attachment] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    labels: list[Label] = field(default_factory=list)
    stage: str = "finished"

    @property
    def duration(self) -> int:
        return max(0, self.stop - self.start)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the Allure result JSON layout."""
        return {
            "uuid": self.uuid,
            "name": self.name,
            "fullName": self.full_name,
            "historyId": self.history_id,
            "testCaseId": self.test_case_id,
            "status": self.status.value,
            "statusDetails": self.status_details.to_dict(),
            "stage": self.stage,
            "steps": [],
            "attachments": [a.to_dict() for a in self.attachments],
            "parameters": [p.to_dict() for p in self.parameters],
            "labels": [l.to_dict() for l in self.labels],
            "links": [],
            "time": {
                "start": self.start,
                "stop": self.stop,
                "duration": self.duration,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReportRecord:
        time = data.get("time", {})
        details = data.get("statusDetails") or {}
        return cls(
            uuid=data["uuid"],
            name=data.get("name", ""),
            full_name=data.get("fullName", ""),
            history_id=data.get("historyId", ""),
            test_case_id=data.get("testCaseId", ""),
            status=ReportStatus(data.get("status", ReportStatus.UNKNOWN.value)),
            start=int(time.get("start", 0)),
            stop=int(time.get("stop", 0)),
            status_details=StatusDetails(details.get("message"), details.get("trace")),
            attachments=[
                Attachment(a["name"], a["source"], a.get("type"))
                for a in data.get("attachments", [])
            ],
            parameters=[Parameter(p["name"], p["value"]) for p in data.get("parameters", [])],
            labels=[Label(l["name"], l["value"]) for l in data.get("labels", [])],
            stage=data.get("stage", "finished"),
        )

    def label(self, name: str) -> str | None:
        """Return the first label value with the given name."""
        for label in self.labels:
            if label.name == name:
                return label.value
        return None


@dataclass(frozen=True)
class GroupRecord:
    """Container grouping results under a shared suite path."""
    uuid: str
    name: str
    children: list[str]
    start: int
    stop: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "children": list(self.children),
            "befores": [],
            "afters": [],
            "links": [],
            "start": self.start,
            "stop": self.stop,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GroupRecord:
        return cls(
            uuid=data["uuid"],
            name=data.get("name", ""),
            children=list(data.get("children", [])),
            start=int(data.get("start", 0)),
            stop=int(data.get("stop", 0)),
        )


@dataclass
class ExecutorInfo:
    """Run-level metadata written to ``executor.json``."""
    name: str
    type: str
    report_name: str
    url: str | None = None
    build_order: str | None = None
    build_name: str | None = None
    build_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, leaving out CI fields that are not known."""
        data = {
            "name": self.name,
            "type": self.type,
            "url": self.url,
            "buildOrder": self.build_order,
            "buildName": self.build_name,
            "buildUrl": self.build_url,
            "reportName": self.report_name,
        }
        return {key: value for key, value in data.items() if value is not None}


# ─────────────────────────────────────────────────────────────────────────────
# Naming, hashing and status mapping
# ─────────────────────────────────────────────────────────────────────────────

# Checked in order; the first fragment found in the content type wins.
CONTENT_TYPE_EXTENSIONS: tuple[tuple[str, str], ...] = (
    ("png", ".png"),
    ("jpeg", ".jpg"),
    ("jpg", ".jpg"),
    ("zip", ".zip"),
    ("json", ".json"),
    ("plain", ".txt"),
    ("html", ".html"),
    ("webm", ".webm"),
    ("xml", ".xml"),
    ("csv", ".csv"),
)

_STATUS_MAP: dict[str, ReportStatus] = {
    RunnerStatus.PASSED.value: ReportStatus.PASSED,
    RunnerStatus.SKIPPED.value: ReportStatus.SKIPPED,
    RunnerStatus.FAILED.value: ReportStatus.FAILED,
    RunnerStatus.TIMED_OUT.value: ReportStatus.BROKEN,
    RunnerStatus.INTERRUPTED.value: ReportStatus.BROKEN,
}


def stable_hash(value: str) -> str:
    """
    Hash a string into a stable correlation id.

    Args:
        value: Input text, encoded as UTF-8

    Returns:
        32-character MD5 hex digest
    """
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def build_full_name(title_path: list[str]) -> str:
    return FULL_NAME_SEPARATOR.join(title_path)


def container_name(title_path: list[str]) -> str:
    """Name of the suite enclosing a test, or "Global" at top level."""
    return FULL_NAME_SEPARATOR.join(title_path[:-1]) or GLOBAL_CONTAINER_NAME


def describe_location(test: TestCaseInfo) -> str:
    """Join test id and source position, skipping unknown parts."""
    location = test.location or TestLocation()
    parts = [test.id, location.file, location.line, location.column]
    return ":".join(str(part) for part in parts if part is not None)


def map_status(status: RunnerStatus | str | None, error: TestError | None = None) -> ReportStatus:
    """
    Map a runner outcome onto a report status.

    Timeouts and interruptions are "broken" (the test did not complete),
    which report viewers keep apart from assertion failures. Unrecognized
    outcomes are "failed" when an error was captured, "unknown" otherwise.
    """
    key = status.value if isinstance(status, RunnerStatus) else status
    mapped = _STATUS_MAP.get(key) if key is not None else None
    if mapped is not None:
        return mapped
    return ReportStatus.FAILED if error is not None else ReportStatus.UNKNOWN


def extension_for_content_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    lowered = content_type.lower()
    for fragment, extension in CONTENT_TYPE_EXTENSIONS:
        if fragment in lowered:
            return extension
    return None
