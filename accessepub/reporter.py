"""Publication-level report aggregation and JSON output."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from accessepub import __version__
from accessepub.models import Impact, Outcome, RunResult


class PublicationReport(BaseModel):
    """Aggregated result of checking every content document of an EPUB."""

    title: str = ""
    generated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tool_version: str = __version__
    outcome: Outcome = Outcome.PASS
    document_count: int = 0
    issue_count: int = 0
    violation_counts: dict[str, int] = Field(default_factory=dict)
    documents: list[dict[str, Any]] = Field(default_factory=list)
    images: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[dict[str, str]] = Field(default_factory=list)


def build_report(run: RunResult, *, title: str = "") -> PublicationReport:
    """Merge per-document results into one publication report."""
    counts = {impact.value: 0 for impact in Impact}
    documents: list[dict[str, Any]] = []
    images: list[dict[str, Any]] = []
    errors: list[dict[str, str]] = []

    for result in run:
        relpath = result.descriptor.relpath
        for assertion in result.assertions:
            counts[assertion.impact.value] += 1
        documents.append({
            "url": relpath,
            "issue_count": result.issue_count,
            "assertions": [a.to_dict() for a in result.assertions],
        })
        if result.data is not None:
            images.extend(img.to_dict() for img in result.data.images)
        if result.error is not None:
            errors.append({"url": relpath, "error": result.error})

    # A document that could not be checked cannot be called a pass.
    failed = run.total_issues > 0 or bool(errors)
    counts["total"] = run.total_issues

    return PublicationReport(
        title=title,
        outcome=Outcome.FAIL if failed else Outcome.PASS,
        document_count=len(run),
        issue_count=run.total_issues,
        violation_counts=counts,
        documents=documents,
        images=images,
        errors=errors,
    )


def write_json_report(report: PublicationReport, output: Path) -> None:
    """Write a publication report as JSON."""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(report.model_dump_json(indent=2), encoding="utf-8")


def format_run_summary(report: PublicationReport) -> str:
    """Return a human-readable summary of a check run."""
    lines = [
        f"Check: {report.title or 'publication'} -> {report.outcome.value.upper()}",
        f"Documents: {report.document_count}, issues: {report.issue_count}",
    ]
    for doc in report.documents:
        lines.append(f"  {doc['url']}: {doc['issue_count']} issue(s)")
    for err in report.errors:
        lines.append(f"  [FAILED] {err['url']}: {err['error']}")
    return "\n".join(lines)
