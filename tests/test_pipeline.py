"""Tests for the sequential check pipeline."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from accessepub.errors import CheckCancelled, EvaluationFailure, MissingCapability, NavigationFailure
from accessepub.models import DocumentDescriptor
from accessepub.pipeline import FailurePolicy, run_checks
from accessepub.preflight import ScriptBundle


def _violation(rule: str) -> dict:
    return {
        "id": rule,
        "impact": "serious",
        "help": f"{rule} help",
        "nodes": [{"target": ["img"], "html": "<img>", "failureSummary": "Fix it"}],
    }


def _run(descriptors, scripts, session, **kwargs):
    return asyncio.run(
        run_checks(descriptors, scripts, session_factory=lambda: session, settle_delay=0, **kwargs)
    )


class TestOrdering:
    def test_results_match_input_order(self, descriptors, scripts, session) -> None:
        run = _run(descriptors, scripts, session)
        assert len(run) == len(descriptors)
        assert [r.descriptor for r in run] == descriptors

    def test_empty_input(self, scripts, session) -> None:
        run = _run([], scripts, session)
        assert len(run) == 0
        assert session.open_count == 1
        assert session.close_count == 1

    def test_no_overlapping_operations(self, descriptors, scripts, session) -> None:
        session.evaluate_delay = 0.01
        _run(descriptors, scripts, session)
        assert session.max_in_flight == 1
        # each evaluate completes before the next navigate starts
        names = [name for name, _ in session.calls if name in ("navigate", "evaluate")]
        assert names == ["navigate", "evaluate"] * len(descriptors)

    def test_injection_order_per_document(self, descriptors, scripts, session) -> None:
        _run(descriptors, scripts, session)
        expected = ["axe.min.js", "outliner.min.js", "ace-axe.js", "ace-extraction.js"]
        assert session.injected_per_document() == [expected] * len(descriptors)

    def test_issue_counts_per_document(self, descriptors, scripts, session) -> None:
        session.payloads[descriptors[1].url] = {
            "axe": {"violations": [_violation("image-alt"), _violation("region")]},
        }
        run = _run(descriptors, scripts, session)
        assert [r.issue_count for r in run] == [0, 2, 0]
        assert run.total_issues == 2

    def test_progress_callback(self, descriptors, scripts, session) -> None:
        seen: list[str] = []
        _run(descriptors, scripts, session, progress=lambda r: seen.append(r.descriptor.relpath))
        assert seen == [d.relpath for d in descriptors]


class TestPreflight:
    def test_missing_script_never_opens_session(self, descriptors, scripts, session) -> None:
        scripts.outliner.unlink()
        with pytest.raises(MissingCapability) as excinfo:
            _run(descriptors, scripts, session)
        assert excinfo.value.artifact == "outliner"
        assert session.calls == []
        assert session.open_count == 0
        assert session.close_count == 0

    def test_missing_script_with_no_documents(self, tmp_path: Path, session) -> None:
        bundle = ScriptBundle(*(tmp_path / f"missing{i}.js" for i in range(4)))
        with pytest.raises(MissingCapability):
            _run([], bundle, session)
        assert session.open_count == 0

    def test_factory_not_called_on_preflight_failure(self, descriptors, scripts) -> None:
        scripts.axe.unlink()
        created: list[object] = []

        def factory():
            created.append(object())
            raise AssertionError("session should not be created")

        with pytest.raises(MissingCapability):
            asyncio.run(run_checks(descriptors, scripts, session_factory=factory))
        assert created == []


class TestFailurePolicy:
    def test_navigation_failure_aborts_and_closes(self, descriptors, scripts, session) -> None:
        session.fail_navigation.add(descriptors[1].url)
        with pytest.raises(NavigationFailure) as excinfo:
            _run(descriptors, scripts, session)
        assert excinfo.value.relpath == "chapter2.xhtml"
        assert session.close_count == 1
        navigated = [arg for name, arg in session.calls if name == "navigate"]
        assert descriptors[2].url not in navigated

    def test_evaluation_failure_aborts_and_closes(self, descriptors, scripts, session) -> None:
        session.fail_evaluation.add(descriptors[0].url)
        with pytest.raises(EvaluationFailure) as excinfo:
            _run(descriptors, scripts, session)
        assert excinfo.value.relpath == "chapter1.xhtml"
        assert session.close_count == 1
        assert session.calls[-1] == ("close", None)

    def test_continue_records_error_and_keeps_going(self, descriptors, scripts, session) -> None:
        session.fail_navigation.add(descriptors[0].url)
        run = _run(descriptors, scripts, session, on_error=FailurePolicy.CONTINUE)
        assert len(run) == 3
        assert run.results[0].error is not None
        assert "chapter1.xhtml" in run.results[0].error
        assert run.results[1].succeeded
        assert [r.descriptor for r in run] == descriptors
        assert len(run.failed_documents) == 1
        assert session.close_count == 1

    def test_rule_engine_error_is_reported_not_passed(self, descriptors, scripts, session) -> None:
        from accessepub.models import Outcome
        from accessepub.reporter import build_report

        session.payloads[descriptors[1].url] = {"axe": None, "data": None, "error": "Error: boom"}
        run = _run(descriptors, scripts, session, on_error=FailurePolicy.CONTINUE)
        assert [r.succeeded for r in run] == [True, False, True]
        report = build_report(run)
        assert report.outcome is Outcome.FAIL
        assert report.errors[0]["url"] == "chapter2.xhtml"
        assert "boom" in report.errors[0]["error"]

    def test_rule_engine_error_aborts_by_default(self, descriptors, scripts, session) -> None:
        session.payloads[descriptors[0].url] = {"axe": None, "error": "Error: boom"}
        with pytest.raises(EvaluationFailure):
            _run(descriptors, scripts, session)
        assert session.close_count == 1

    def test_malformed_image_entry_does_not_abort(self, descriptors, scripts, session) -> None:
        session.payloads[descriptors[0].url] = {
            "axe": {"violations": []},
            "data": {"images": [{"path": 5, "cfi": "/4/2"}]},
        }
        run = _run(descriptors, scripts, session)
        assert len(run) == 3
        img = run.results[0].data.images[0]
        assert img.filepath is None
        assert img.location == "chapter1.xhtml#epubcfi(/4/2)"
        assert session.close_count == 1

    def test_failed_open_skips_close(self, descriptors, scripts, session) -> None:
        async def broken_open() -> None:
            raise RuntimeError("browser missing")

        session.open = broken_open
        with pytest.raises(RuntimeError, match="browser missing"):
            _run(descriptors, scripts, session)
        assert session.close_count == 0
        assert not any(name == "navigate" for name, _ in session.calls)

    def test_close_runs_once_on_success(self, descriptors, scripts, session) -> None:
        _run(descriptors, scripts, session)
        assert session.open_count == 1
        assert session.close_count == 1

    def test_timeout_raises_evaluation_timeout(self, scripts, session) -> None:
        from accessepub.errors import EvaluationTimeout

        session.evaluate_delay = 1.0
        doc = DocumentDescriptor("slow.xhtml", "file:///slow.xhtml", Path("/slow.xhtml"))
        with pytest.raises(EvaluationTimeout) as excinfo:
            _run([doc], scripts, session, timeout=0.01)
        assert excinfo.value.relpath == "slow.xhtml"
        assert session.close_count == 1


class TestCancellation:
    def test_cancel_between_documents(self, descriptors, scripts, session) -> None:
        async def scenario():
            cancel = asyncio.Event()

            def on_progress(_result) -> None:
                cancel.set()

            return await run_checks(
                descriptors,
                scripts,
                session_factory=lambda: session,
                settle_delay=0,
                cancel_event=cancel,
                progress=on_progress,
            )

        with pytest.raises(CheckCancelled) as excinfo:
            asyncio.run(scenario())
        assert excinfo.value.completed == 1
        assert session.close_count == 1


class TestCheckPublication:
    def test_uses_config(self, descriptors, scripts, session) -> None:
        from accessepub.config import AccessEPUBConfig
        from accessepub.pipeline import check_publication

        config = AccessEPUBConfig.model_validate({
            "check": {"settle_delay_ms": 0, "on_error": "continue"},
            "scripts": {
                "axe": str(scripts.axe),
                "outliner": str(scripts.outliner),
                "glue_axe": str(scripts.glue_axe),
                "glue_extraction": str(scripts.glue_extraction),
            },
        })
        session.fail_evaluation.add(descriptors[2].url)
        run = check_publication(descriptors, config, session_factory=lambda: session)
        assert len(run) == 3
        assert run.results[2].error is not None
        assert session.close_count == 1

    def test_default_scripts_missing_is_fatal(self, descriptors, session, tmp_path: Path) -> None:
        from accessepub.config import AccessEPUBConfig
        from accessepub.pipeline import check_publication

        config = AccessEPUBConfig.model_validate({"scripts": {"axe": str(tmp_path / "none.js")}})
        with pytest.raises(MissingCapability):
            check_publication(descriptors, config, session_factory=lambda: session)
        assert session.open_count == 0
