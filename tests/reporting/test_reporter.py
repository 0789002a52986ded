"""Tests for AllureReporter."""

import json
import logging
import threading
from pathlib import Path

import pytest

from peitho.config import CIEnvironment, ReporterConfig
from peitho.reporting import (
    AllureReporter,
    ReportDirectoryError,
    ReportStatus,
    ResultAttachment,
    TestError,
    TestResultInfo,
    load_containers,
    load_results,
)


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def result_files(results_dir: Path) -> list[Path]:
    return sorted(results_dir.glob("*-result.json"))


def run_test(reporter: AllureReporter, test, **result_fields):
    result = TestResultInfo(start_time=result_fields.pop("start_time", 1_000), **result_fields)
    reporter.on_test_begin(test, result)
    return reporter.on_test_end(test, result)


class TestRunBegin:
    """Preparing the results directory."""

    def test_given_stale_results_when_run_begins_then_directory_is_cleared(self, results_dir: Path) -> None:
        # Given
        results_dir.mkdir(parents=True)
        (results_dir / "old-result.json").write_text("{}")
        (results_dir / "nested").mkdir()
        (results_dir / "nested" / "trace.zip").write_bytes(b"zip")

        # When
        AllureReporter(ReporterConfig(results_dir=str(results_dir))).on_run_begin()

        # Then
        assert sorted(p.name for p in results_dir.iterdir()) == ["executor.json"]

    def test_given_no_ci_when_run_begins_then_executor_has_no_ci_fields(self, reporter: AllureReporter) -> None:
        executor = read_json(reporter.results_dir / "executor.json")

        assert executor == {"name": "pytest", "type": "pytest", "reportName": "PeithoTest Run"}

    def test_given_github_env_when_run_begins_then_executor_has_build_links(self, results_dir: Path) -> None:
        config = ReporterConfig(
            results_dir=str(results_dir),
            ci=CIEnvironment(
                server_url="https://github.com",
                repository="peitho/app",
                workflow="e2e",
                run_number="42",
                run_id="9001",
            ),
        )

        AllureReporter(config).on_run_begin()

        executor = read_json(results_dir / "executor.json")
        assert executor["url"] == "https://github.com/peitho/app"
        assert executor["buildUrl"] == "https://github.com/peitho/app/actions/runs/9001"
        assert executor["buildOrder"] == "42"
        assert executor["buildName"] == "e2e"

    def test_given_env_override_when_run_begins_then_uses_env_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ALLURE_RESULTS_DIR", str(tmp_path / "from-env"))

        results_dir = AllureReporter().on_run_begin()

        assert results_dir == (tmp_path / "from-env").resolve()
        assert (results_dir / "executor.json").exists()

    def test_given_no_override_when_run_begins_then_defaults_under_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)

        results_dir = AllureReporter(ReporterConfig()).on_run_begin()

        assert results_dir == (tmp_path / "allure-results").resolve()

    def test_given_path_under_a_file_when_run_begins_then_raises_fatal_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        reporter = AllureReporter(ReporterConfig(results_dir=str(blocker / "results")))

        with pytest.raises(ReportDirectoryError):
            reporter.on_run_begin()

    def test_given_started_run_when_run_begins_again_then_raises(self, reporter: AllureReporter) -> None:
        with pytest.raises(RuntimeError):
            reporter.on_run_begin()

    def test_given_worker_when_run_begins_without_clean_then_keeps_existing_files(self, results_dir: Path) -> None:
        results_dir.mkdir(parents=True)
        (results_dir / "other-worker-result.json").write_text("{}")

        AllureReporter(ReporterConfig(results_dir=str(results_dir))).on_run_begin(clean=False)

        assert (results_dir / "other-worker-result.json").exists()
        assert not (results_dir / "executor.json").exists()


class TestTestEnd:
    """Writing result and container records."""

    def test_given_passing_nested_test_when_ended_then_writes_result_and_container(
        self, reporter: AllureReporter, make_test
    ) -> None:
        # Given
        test = make_test("Auth", "logs in")

        # When
        record = run_test(reporter, test, status="passed", duration_ms=250)

        # Then
        data = read_json(reporter.results_dir / f"{record.uuid}-result.json")
        assert data["name"] == "logs in"
        assert data["fullName"] == "Auth › logs in"
        assert data["status"] == "passed"
        assert data["time"] == {"start": 1000, "stop": 1250, "duration": 250}

        containers = load_containers(reporter.results_dir)
        assert len(containers) == 1
        assert containers[0].name == "Auth"
        assert containers[0].children == [record.uuid]
        assert (containers[0].start, containers[0].stop) == (1000, 1250)

    def test_given_timed_out_test_when_ended_then_status_is_broken(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(
            reporter,
            make_test("Campaigns", "creates campaign"),
            status="timedOut",
            error=TestError(message="Timeout 30000ms exceeded", stack="at page.click"),
        )

        data = read_json(reporter.results_dir / f"{record.uuid}-result.json")
        assert data["status"] == "broken"
        assert data["statusDetails"] == {"message": "Timeout 30000ms exceeded", "trace": "at page.click"}

    def test_given_top_level_test_when_ended_then_container_is_global(
        self, reporter: AllureReporter, make_test
    ) -> None:
        run_test(reporter, make_test("health check"), status="passed")

        assert [c.name for c in load_containers(reporter.results_dir)] == ["Global"]

    def test_given_negative_duration_when_ended_then_duration_is_zero(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(reporter, make_test("A", "b"), status="passed", duration_ms=-50)

        data = read_json(reporter.results_dir / f"{record.uuid}-result.json")
        assert data["time"]["duration"] == 0

    def test_given_no_start_time_when_begun_then_uses_current_time(
        self, reporter: AllureReporter, make_test
    ) -> None:
        result = TestResultInfo(status="passed")

        tracked = reporter.on_test_begin(make_test("A", "b"), result)

        assert tracked.start > 1_600_000_000_000  # epoch milliseconds

    def test_given_unknown_status_without_error_when_ended_then_unknown(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(reporter, make_test("A", "b"), status="error")
        assert record.status == ReportStatus.UNKNOWN

    def test_given_end_without_begin_when_ended_then_nothing_is_written(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = reporter.on_test_end(make_test("A", "b"), TestResultInfo(status="passed"))

        assert record is None
        assert result_files(reporter.results_dir) == []

    def test_given_ended_test_when_ended_again_then_second_end_is_ignored(
        self, reporter: AllureReporter, make_test
    ) -> None:
        test = make_test("A", "b")
        result = TestResultInfo(status="passed", start_time=1_000)
        reporter.on_test_begin(test, result)

        assert reporter.on_test_end(test, result) is not None
        assert reporter.on_test_end(test, result) is None
        assert reporter.pending == 0
        assert len(result_files(reporter.results_dir)) == 1


class TestLabelsAndParameters:
    """Grouping metadata attached to each record."""

    def test_given_deep_suite_when_ended_then_parent_suite_and_suite_labels(
        self, reporter: AllureReporter, make_test, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        record = run_test(
            reporter,
            make_test("tests/e2e/test_campaigns.py", "Campaigns", "Wizard", "saves draft"),
            status="passed",
        )

        assert record.label("language") == "Python"
        assert record.label("framework") == "pytest"
        assert record.label("package") == "tests/e2e/test_auth.py"
        assert record.label("parentSuite") == "tests/e2e/test_campaigns.py"
        assert record.label("suite") == "Campaigns > Wizard"
        assert record.label("frameworkVersion") == pytest.__version__

    def test_given_single_ancestor_when_ended_then_no_suite_label(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(reporter, make_test("Auth", "logs in"), status="passed")

        assert record.label("parentSuite") == "Auth"
        assert record.label("suite") is None

    def test_given_top_level_test_when_ended_then_no_suite_labels(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(reporter, make_test("logs in"), status="passed")

        assert record.label("parentSuite") is None
        assert record.label("suite") is None

    def test_given_default_host_when_ended_then_host_is_localhost(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(reporter, make_test("A", "b"), status="passed")
        assert record.label("host") == "localhost"

    def test_given_hostname_env_when_ended_then_host_label_uses_it(
        self, results_dir: Path, make_test, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HOSTNAME", "ci-runner-7")
        reporter = AllureReporter(ReporterConfig.from_env())
        reporter.config.results_dir = str(results_dir)
        reporter.on_run_begin()

        record = run_test(reporter, make_test("A", "b"), status="passed")

        assert record.label("host") == "ci-runner-7"

    def test_given_project_and_retry_when_ended_then_thread_label_and_parameters(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(reporter, make_test("A", "b"), status="passed", project_name="ui", retry=1)

        assert record.label("thread") == "ui"
        assert [(p.name, p.value) for p in record.parameters] == [("Project", "ui"), ("Retry", "1")]

    def test_given_no_project_or_retry_when_ended_then_no_parameters(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(reporter, make_test("A", "b"), status="passed")

        assert record.parameters == []
        assert record.label("thread") is None


class TestCorrelationIds:
    """historyId and testCaseId stability."""

    def test_given_same_full_name_in_two_runs_when_ended_then_history_id_matches(
        self, tmp_path: Path, make_test
    ) -> None:
        first = AllureReporter(ReporterConfig(results_dir=str(tmp_path / "run1")))
        second = AllureReporter(ReporterConfig(results_dir=str(tmp_path / "run2")))
        first.on_run_begin()
        second.on_run_begin()

        a = run_test(first, make_test("Auth", "logs in", test_id="x", line=1), status="passed")
        b = run_test(second, make_test("Auth", "logs in", test_id="y", line=99), status="failed")

        assert a.history_id == b.history_id
        assert a.test_case_id != b.test_case_id
        assert a.uuid != b.uuid

    def test_given_retries_of_same_test_when_ended_then_case_id_matches_uuid_differs(
        self, reporter: AllureReporter, make_test
    ) -> None:
        test = make_test("Auth", "logs in")

        first = run_test(reporter, test, status="failed", retry=0, error=TestError("boom"))
        second = run_test(reporter, test, status="passed", retry=1)

        assert first.test_case_id == second.test_case_id
        assert first.history_id == second.history_id
        assert first.uuid != second.uuid
        assert len(result_files(reporter.results_dir)) == 2


class TestConcurrency:
    """Interleaved and parallel executions."""

    def test_given_interleaved_same_title_tests_when_ended_then_no_cross_talk(
        self, reporter: AllureReporter, make_test
    ) -> None:
        # Given two executions of identically titled tests
        test_a = make_test("Auth", "logs in", test_id="worker-a")
        test_b = make_test("Auth", "logs in", test_id="worker-b")
        result_a = TestResultInfo(start_time=1_000)
        result_b = TestResultInfo(start_time=5_000)

        # When they begin and end interleaved
        reporter.on_test_begin(test_a, result_a)
        reporter.on_test_begin(test_b, result_b)
        result_b.status, result_b.duration_ms = "passed", 10
        record_b = reporter.on_test_end(test_b, result_b)
        result_a.status, result_a.duration_ms = "passed", 20
        record_a = reporter.on_test_end(test_a, result_a)

        # Then
        assert record_a.uuid != record_b.uuid
        assert (record_a.start, record_a.stop) == (1_000, 1_020)
        assert (record_b.start, record_b.stop) == (5_000, 5_010)

    def test_given_parallel_threads_when_ended_then_every_result_is_written(
        self, reporter: AllureReporter, make_test
    ) -> None:
        def worker(index: int) -> None:
            for retry in range(10):
                run_test(reporter, make_test("Parallel", "same title"), status="passed",
                         start_time=index * 1000 + retry, retry=retry)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        records = load_results(reporter.results_dir).records
        assert len(records) == 80
        assert len({r.uuid for r in records}) == 80
        assert len(load_containers(reporter.results_dir)) == 80
        assert reporter.pending == 0


class TestAttachments:
    """Persisting screenshots, traces and logs."""

    def test_given_file_attachment_when_ended_then_copied_with_content_type_extension(
        self, reporter: AllureReporter, make_test, tmp_path: Path
    ) -> None:
        screenshot = tmp_path / "screenshot"
        screenshot.write_bytes(b"\x89PNG")

        record = run_test(
            reporter,
            make_test("A", "b"),
            status="failed",
            attachments=[ResultAttachment("screenshot", "image/png", path=str(screenshot))],
        )

        expected = f"{record.uuid}-attachment-0.png"
        assert [a.source for a in record.attachments] == [expected]
        assert (reporter.results_dir / expected).read_bytes() == b"\x89PNG"

    def test_given_unknown_type_when_ended_then_falls_back_to_path_suffix(
        self, reporter: AllureReporter, make_test, tmp_path: Path
    ) -> None:
        video = tmp_path / "video.mp4"
        video.write_bytes(b"video")

        record = run_test(
            reporter,
            make_test("A", "b"),
            status="passed",
            attachments=[ResultAttachment("video", "application/octet-stream", path=str(video))],
        )

        assert record.attachments[0].source == f"{record.uuid}-attachment-0.mp4"

    def test_given_inline_bodies_when_ended_then_written_without_extension_if_untyped(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(
            reporter,
            make_test("A", "b"),
            status="passed",
            attachments=[
                ResultAttachment("log", "text/plain", body="héllo"),
                ResultAttachment("blob", None, body=b"\x00\x01"),
            ],
        )

        log, blob = record.attachments
        assert log.source == f"{record.uuid}-attachment-0.txt"
        assert (reporter.results_dir / log.source).read_text(encoding="utf-8") == "héllo"
        assert blob.source == f"{record.uuid}-attachment-1"
        assert blob.type is None

    def test_given_empty_attachment_when_ended_then_skipped_but_index_preserved(
        self, reporter: AllureReporter, make_test
    ) -> None:
        record = run_test(
            reporter,
            make_test("A", "b"),
            status="passed",
            attachments=[
                ResultAttachment("nothing", "text/plain"),
                ResultAttachment("log", "text/plain", body="x"),
            ],
        )

        assert [a.source for a in record.attachments] == [f"{record.uuid}-attachment-1.txt"]

    def test_given_one_failing_attachment_when_ended_then_record_keeps_the_good_one(
        self, reporter: AllureReporter, make_test, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        # Given
        good = tmp_path / "trace.zip"
        good.write_bytes(b"PK")
        missing = tmp_path / "gone.png"

        # When
        with caplog.at_level(logging.WARNING, logger="peitho.reporting.reporter"):
            record = run_test(
                reporter,
                make_test("A", "b", test_id="attach-test"),
                status="failed",
                attachments=[
                    ResultAttachment("trace", "application/zip", path=str(good)),
                    ResultAttachment("screenshot", "image/png", path=str(missing)),
                ],
            )

        # Then
        data = read_json(reporter.results_dir / f"{record.uuid}-result.json")
        assert [a["name"] for a in data["attachments"]] == ["trace"]
        assert (reporter.results_dir / data["attachments"][0]["source"]).exists()
        assert "screenshot" in caplog.text
        assert "attach-test" in caplog.text


class TestRunEnd:
    """End-of-run bookkeeping."""

    def test_given_orphaned_test_when_run_ends_then_warns(
        self, reporter: AllureReporter, make_test, caplog: pytest.LogCaptureFixture
    ) -> None:
        reporter.on_test_begin(make_test("A", "never ends"), TestResultInfo())

        with caplog.at_level(logging.WARNING, logger="peitho.reporting.reporter"):
            reporter.on_run_end()

        assert reporter.pending == 1
        assert "never ended" in caplog.text
        assert result_files(reporter.results_dir) == []

    def test_given_written_results_when_run_ends_then_counts_by_status(
        self, reporter: AllureReporter, make_test
    ) -> None:
        run_test(reporter, make_test("A", "1"), status="passed")
        run_test(reporter, make_test("A", "2"), status="passed")
        run_test(reporter, make_test("A", "3"), status="interrupted")

        reporter.on_run_end()

        assert reporter.written == {"passed": 2, "broken": 1}

    def test_given_end_in_progress_when_counts_read_then_waits_for_lock(
        self, reporter: AllureReporter, make_test
    ) -> None:
        # Given another thread holds the tracking lock
        run_test(reporter, make_test("A", "1"), status="passed")
        snapshots: list[dict[str, int]] = []
        reader = threading.Thread(target=lambda: snapshots.append(reporter.written))

        # When the counts are read meanwhile
        with reporter._lock:
            reader.start()
            reader.join(timeout=0.2)
            blocked = reader.is_alive()
        reader.join()

        # Then the read waited and returned a detached copy
        assert blocked
        assert snapshots == [{"passed": 1}]
        snapshots[0]["passed"] = 99
        assert reporter.written == {"passed": 1}
