"""Per-document check step: navigate, inject, settle, evaluate."""

from __future__ import annotations

import asyncio
import logging

from accessepub.errors import DocumentCheckError, EvaluationFailure, EvaluationTimeout
from accessepub.models import DocumentDescriptor, RawFindings
from accessepub.preflight import ScriptBundle
from accessepub.session import BrowserSession

logger = logging.getLogger(__name__)

ENTRY_POINT = "daisy.ace.run"
DEFAULT_SETTLE_DELAY = 0.05  # seconds


async def check_document(
    session: BrowserSession,
    descriptor: DocumentDescriptor,
    scripts: ScriptBundle,
    *,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    timeout: float | None = None,
) -> RawFindings:
    """Run the in-page checks on one document and return its raw findings.

    The settle delay is a fixed wait after injection, not a poll.  *timeout*
    bounds only the evaluator call.
    """
    logger.info("- %s", descriptor.relpath)
    try:
        await session.navigate(descriptor.url)
        for path in scripts.in_order():
            await session.inject_script(path)
        await asyncio.sleep(settle_delay)
        payload = await _evaluate(session, timeout)
    except DocumentCheckError as exc:
        raise exc.for_document(descriptor.relpath) from exc

    try:
        raw = RawFindings.from_payload(payload)
    except TypeError as exc:
        raise EvaluationFailure(descriptor.relpath, str(exc)) from exc
    if raw.error is not None:
        raise EvaluationFailure(descriptor.relpath, f"rule engine failed: {raw.error}")
    return raw


async def _evaluate(session: BrowserSession, timeout: float | None) -> object:
    if timeout is None:
        return await session.evaluate(ENTRY_POINT)
    try:
        return await asyncio.wait_for(session.evaluate(ENTRY_POINT), timeout)
    except asyncio.TimeoutError as exc:
        raise EvaluationTimeout("<page>", f"evaluator did not complete within {timeout:g}s") from exc
