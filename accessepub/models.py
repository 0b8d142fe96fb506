"""Shared data models used across the AccessEPUB pipeline."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def _text(raw: dict[str, Any], key: str) -> str | None:
    """Return ``raw[key]`` if it is a string, else None (logging anything else)."""
    value = raw.get(key)
    if value is None or isinstance(value, str):
        return value
    logger.warning("Ignoring non-string image %s: %r", key, value)
    return None


class Impact(str, enum.Enum):
    """Impact level reported by the rule engine for a violation."""

    MINOR = "minor"
    MODERATE = "moderate"
    SERIOUS = "serious"
    CRITICAL = "critical"


class Outcome(str, enum.Enum):
    """EARL outcome of an assertion."""

    PASS = "pass"
    FAIL = "fail"
    CANT_TELL = "cantTell"
    INAPPLICABLE = "inapplicable"


@dataclass(frozen=True)
class DocumentDescriptor:
    """One content document (spine item) to check."""

    relpath: str  # relative to the package document, used in reports
    url: str  # what the browser navigates to
    filepath: Path  # on-disk location, used to resolve sibling assets


@dataclass
class ImageRef:
    """An image reference found by the in-page extraction script."""

    path: str | None
    cfi: str | None
    alt: str | None = None
    role: str | None = None
    html: str = ""
    filepath: Path | None = None  # set by the transformer
    location: str | None = None  # set by the transformer

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ImageRef:
        return cls(
            path=_text(raw, "path") or _text(raw, "src"),
            cfi=_text(raw, "cfi"),
            alt=_text(raw, "alt"),
            role=_text(raw, "role"),
            html=_text(raw, "html") or "",
        )

    @property
    def is_well_formed(self) -> bool:
        return bool(self.path) and bool(self.cfi)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "cfi": self.cfi,
            "alt": self.alt,
            "role": self.role,
            "html": self.html,
            "filepath": str(self.filepath) if self.filepath is not None else None,
            "location": self.location,
        }


@dataclass
class ExtractionData:
    """Structural data extracted from a rendered document."""

    images: list[ImageRef] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)  # outline, headings, ...

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ExtractionData:
        images: list[ImageRef] = []
        for entry in raw.get("images") or []:
            if not isinstance(entry, dict):
                logger.warning("Dropping non-object image entry: %r", entry)
                continue
            images.append(ImageRef.from_dict(entry))
        extra = {k: v for k, v in raw.items() if k != "images"}
        return cls(images=images, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.extra)
        out["images"] = [img.to_dict() for img in self.images]
        return out


@dataclass
class RawFindings:
    """Unprocessed output of the in-page evaluator for one document.

    Either part may be absent: ``axe is None`` means the rule engine
    produced nothing, which is not an error.  ``error`` is set when the page
    reported that the rule engine itself failed.
    """

    axe: dict[str, Any] | None = None
    data: ExtractionData | None = None
    error: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> RawFindings:
        """Build findings from the JSON value returned by the page.

        Raises ``TypeError`` when the payload is not an object.
        """
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise TypeError(f"Expected an object from the evaluator, got {type(payload).__name__}")
        axe = payload.get("axe")
        if axe is not None and not isinstance(axe, dict):
            raise TypeError(f"Expected 'axe' to be an object, got {type(axe).__name__}")
        data = payload.get("data")
        error = payload.get("error")
        return cls(
            axe=axe,
            data=ExtractionData.from_dict(data) if isinstance(data, dict) else None,
            error=str(error) if error is not None else None,
        )


@dataclass
class Assertion:
    """A single normalized accessibility finding for one content document."""

    document: str
    rule: str
    impact: Impact
    title: str
    description: str = ""
    outcome: Outcome = Outcome.FAIL
    help_url: str = ""
    tags: list[str] = field(default_factory=list)
    target: list[str] = field(default_factory=list)  # CSS selectors
    html: str = ""
    failure_summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the EARL-flavored representation used in reports."""
        return {
            "@type": "earl:assertion",
            "earl:assertedBy": "aXe",
            "earl:mode": "automatic",
            "earl:testSubject": {"url": self.document},
            "earl:test": {
                "dct:title": self.rule,
                "dct:description": self.title,
                "earl:impact": self.impact.value,
                "help": {"url": self.help_url, "dct:description": self.description},
                "rulesetTags": list(self.tags),
            },
            "earl:result": {
                "earl:outcome": self.outcome.value,
                "dct:description": self.failure_summary,
                "html": self.html,
                "earl:pointer": {"css": list(self.target)},
            },
        }


@dataclass
class DocumentResult:
    """Transformed output for one content document."""

    descriptor: DocumentDescriptor
    assertions: list[Assertion] = field(default_factory=list)
    data: ExtractionData | None = None
    error: str | None = None  # only set when the run continues past failures

    @property
    def issue_count(self) -> int:
        return len(self.assertions)

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class RunResult:
    """Ordered per-document results for a whole publication."""

    results: list[DocumentResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[DocumentResult]:
        return iter(self.results)

    @property
    def total_issues(self) -> int:
        return sum(r.issue_count for r in self.results)

    @property
    def failed_documents(self) -> list[DocumentResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def assertions(self) -> list[Assertion]:
        out: list[Assertion] = []
        for r in self.results:
            out.extend(r.assertions)
        return out
