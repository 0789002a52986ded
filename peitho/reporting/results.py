"""
Reading back a results directory.

Used by the CLI to summarize a run after the fact, and by tests to
inspect what the reporter wrote.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import GroupRecord, ReportRecord, ReportStatus
from .reporter import is_failure

logger = logging.getLogger(__name__)


@dataclass
class ResultsSummary:
    """Aggregate view of the records in one results directory."""
    results_dir: Path
    records: list[ReportRecord] = field(default_factory=list)
    executor: dict[str, Any] | None = None

    @property
    def counts(self) -> Counter[ReportStatus]:
        return Counter(record.status for record in self.records)

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def has_failures(self) -> bool:
        return any(is_failure(record.status) for record in self.records)

    @property
    def duration_ms(self) -> int:
        if not self.records:
            return 0
        return max(r.stop for r in self.records) - min(r.start for r in self.records)

    def to_dict(self) -> dict[str, Any]:
        counts = self.counts
        return {
            "results_dir": str(self.results_dir),
            "executor": self.executor,
            "duration_ms": self.duration_ms,
            "summary": {
                "total": self.total,
                **{status.value: counts[status] for status in ReportStatus},
            },
            "results": [
                {
                    "name": r.full_name,
                    "status": r.status.value,
                    "duration_ms": r.duration,
                }
                for r in self.records
            ],
        }

    def summary(self) -> str:
        """Generate a human-readable summary."""
        counts = self.counts
        report_name = (self.executor or {}).get("reportName", "Allure results")
        lines = [
            f"═══════════════════════════════════════════════════════════",
            f"  Results: {report_name}",
            f"═══════════════════════════════════════════════════════════",
            f"  Directory:  {self.results_dir}",
            f"  Duration:   {self.duration_ms}ms",
            f"───────────────────────────────────────────────────────────",
            "  Tests: " + ", ".join(f"{counts[s]} {s.value}" for s in ReportStatus),
            f"───────────────────────────────────────────────────────────",
        ]
        for record in self.records:
            lines.append(f"  {status_icon(record.status)} {record.full_name} - {record.duration}ms")
            if record.status_details.message and is_failure(record.status):
                lines.append(f"      └─ {record.status_details.message}")
        lines.append(f"═══════════════════════════════════════════════════════════")
        return "\n".join(lines)


def load_results(results_dir: str | Path) -> ResultsSummary:
    """
    Load every result record from a results directory.

    Files that cannot be parsed are skipped with a warning.

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    results_dir = Path(results_dir)
    if not results_dir.is_dir():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")

    summary = ResultsSummary(results_dir=results_dir)
    executor_path = results_dir / "executor.json"
    if executor_path.exists():
        summary.executor = json.loads(executor_path.read_text(encoding="utf-8"))

    for path in sorted(results_dir.glob("*-result.json")):
        try:
            record = ReportRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, KeyError) as e:
            logger.warning(f"Skipping unreadable result file {path.name}: {e}")
            continue
        summary.records.append(record)

    summary.records.sort(key=lambda r: (r.start, r.full_name))
    return summary


def load_containers(results_dir: str | Path) -> list[GroupRecord]:
    """Load every container record from a results directory."""
    return [
        GroupRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
        for path in sorted(Path(results_dir).glob("*-container.json"))
    ]


def status_icon(status: ReportStatus) -> str:
    """Get icon for a report status."""
    return {
        ReportStatus.PASSED: "✅",
        ReportStatus.FAILED: "❌",
        ReportStatus.BROKEN: "⚠️",
        ReportStatus.SKIPPED: "⏭️",
        ReportStatus.UNKNOWN: "❓",
    }.get(status, "❓")
