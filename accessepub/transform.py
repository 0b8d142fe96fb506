"""Convert raw axe-core findings into AccessEPUB assertions.

axe reports one *violation* per failed rule, each listing the DOM *nodes*
that failed it.  We emit one assertion per node so every failing element is
counted as an issue; a violation that lists no nodes still yields one
assertion.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from accessepub.models import (
    Assertion,
    DocumentDescriptor,
    DocumentResult,
    ExtractionData,
    Impact,
    RawFindings,
)

logger = logging.getLogger(__name__)

_IMPACTS = {impact.value: impact for impact in Impact}
_FALLBACK_IMPACT = Impact.MODERATE


def transform(descriptor: DocumentDescriptor, raw: RawFindings) -> DocumentResult:
    """Build the DocumentResult for one checked document."""
    if raw.axe is None:
        assertions: list[Assertion] = []
    else:
        assertions = axe_to_assertions(descriptor, raw.axe)

    logger.info("- %d issues found", len(assertions))

    if raw.data is not None:
        rewrite_images(descriptor, raw.data)

    return DocumentResult(descriptor=descriptor, assertions=assertions, data=raw.data)


def axe_to_assertions(descriptor: DocumentDescriptor, axe: dict[str, Any]) -> list[Assertion]:
    """Map every axe violation to one or more assertions."""
    assertions: list[Assertion] = []
    for violation in axe.get("violations") or []:
        assertions.extend(_violation_to_assertions(descriptor.relpath, violation))
    return assertions


def _violation_to_assertions(document: str, violation: dict[str, Any]) -> list[Assertion]:
    rule = violation.get("id")
    if not rule:
        logger.warning("No rule id on axe violation in %s; mapping as 'unknown'", document)
        rule = "unknown"

    impact = _map_impact(violation.get("impact"), rule)
    base = {
        "document": document,
        "rule": rule,
        "title": violation.get("help") or rule,
        "description": violation.get("description") or "",
        "help_url": violation.get("helpUrl") or "",
        "tags": list(violation.get("tags") or []),
    }

    nodes = violation.get("nodes") or []
    if not nodes:
        return [Assertion(impact=impact, **base)]

    out = []
    for node in nodes:
        out.append(
            Assertion(
                impact=_map_impact(node.get("impact"), rule) if node.get("impact") else impact,
                target=[str(t) for t in node.get("target") or []],
                html=node.get("html") or "",
                failure_summary=node.get("failureSummary") or "",
                **base,
            )
        )
    return out


def _map_impact(value: Any, rule: str) -> Impact:
    impact = _IMPACTS.get(value) if isinstance(value, str) else None
    if impact is None:
        logger.warning(
            "Unmapped axe impact %r for rule %s; reporting as %s",
            value, rule, _FALLBACK_IMPACT.value,
        )
        return _FALLBACK_IMPACT
    return impact


def rewrite_images(descriptor: DocumentDescriptor, data: ExtractionData) -> None:
    """Make image paths and locations resolvable against the publication.

    Entries missing a path or a CFI are kept as-is for the missing field and
    logged; they never fail the document.
    """
    base_dir = descriptor.filepath.parent
    for img in data.images:
        if img.path:
            img.filepath = Path(os.path.abspath(base_dir / img.path))
        if img.cfi:
            img.location = f"{descriptor.relpath}#epubcfi({img.cfi})"
        if not img.is_well_formed:
            logger.warning(
                "Incomplete image entry in %s (path=%r, cfi=%r)",
                descriptor.relpath, img.path, img.cfi,
            )
