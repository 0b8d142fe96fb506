"""Run every content document through one browser session.

Documents are processed strictly one after another: the session has a single
page, and the rule engine leaves globals behind that a concurrent navigation
must not observe.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable, Sequence

from accessepub.checker import DEFAULT_SETTLE_DELAY, check_document
from accessepub.config import AccessEPUBConfig
from accessepub.errors import CheckCancelled, DocumentCheckError
from accessepub.models import DocumentDescriptor, DocumentResult, RunResult
from accessepub.preflight import ScriptBundle, check_capabilities
from accessepub.session import BrowserSession, PlaywrightSession
from accessepub.transform import transform

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], BrowserSession]
ProgressCallback = Callable[[DocumentResult], None]


class FailurePolicy(str, enum.Enum):
    """What to do when one document cannot be checked."""

    ABORT = "abort"  # close the session and re-raise
    CONTINUE = "continue"  # record the error on that document and move on


async def run_checks(
    descriptors: Sequence[DocumentDescriptor],
    scripts: ScriptBundle,
    *,
    session_factory: SessionFactory = PlaywrightSession,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    timeout: float | None = None,
    on_error: FailurePolicy = FailurePolicy.ABORT,
    cancel_event: asyncio.Event | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    """Check every document in order and return their results.

    1. Verifies the injected scripts exist (before any browser starts).
    2. Opens one browser session.
    3. Checks and transforms each document in input order.
    4. Closes the session, whether or not a document failed.
    """
    check_capabilities(scripts)

    run = RunResult()
    session = session_factory()
    await session.open()
    try:
        for descriptor in descriptors:
            if cancel_event is not None and cancel_event.is_set():
                raise CheckCancelled(len(run))
            result = await _check_single(
                session, descriptor, scripts, settle_delay, timeout, on_error
            )
            run.results.append(result)
            if progress is not None:
                progress(result)
    finally:
        await session.close()

    return run


async def _check_single(
    session: BrowserSession,
    descriptor: DocumentDescriptor,
    scripts: ScriptBundle,
    settle_delay: float,
    timeout: float | None,
    on_error: FailurePolicy,
) -> DocumentResult:
    """Check and transform one document, applying the failure policy."""
    try:
        raw = await check_document(
            session, descriptor, scripts, settle_delay=settle_delay, timeout=timeout
        )
    except DocumentCheckError as exc:
        logger.error("Check failed for %s: %s", descriptor.relpath, exc.reason, exc_info=True)
        if on_error is FailurePolicy.ABORT:
            raise
        return DocumentResult(descriptor=descriptor, error=str(exc))
    return transform(descriptor, raw)


def check_publication(
    descriptors: Sequence[DocumentDescriptor],
    config: AccessEPUBConfig | None = None,
    *,
    session_factory: SessionFactory | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    """Synchronous entry point: run all checks with settings from *config*."""
    config = config or AccessEPUBConfig()
    browser = config.browser

    def default_factory() -> BrowserSession:
        return PlaywrightSession(
            engine=browser.engine,
            headless=browser.headless,
            navigation_timeout_ms=browser.navigation_timeout_ms,
        )

    return asyncio.run(
        run_checks(
            descriptors,
            ScriptBundle.from_config(config.scripts),
            session_factory=session_factory or default_factory,
            settle_delay=config.check.settle_delay_ms / 1000,
            timeout=config.check.document_timeout_s,
            on_error=FailurePolicy(config.check.on_error),
            progress=progress,
        )
    )
