"""Exception types raised by the check pipeline."""

from __future__ import annotations

from pathlib import Path


class AccessEPUBError(Exception):
    """Base class for every error raised by AccessEPUB."""


class MissingCapability(AccessEPUBError):
    """A required in-page script artifact could not be resolved.

    Fatal: raised before any browser session is opened.
    """

    def __init__(self, artifact: str, path: Path | None) -> None:
        self.artifact = artifact
        self.path = path
        where = str(path) if path is not None else "<not configured>"
        super().__init__(f"Missing required script {artifact!r}: {where}")


class DocumentCheckError(AccessEPUBError):
    """A single content document could not be checked.

    *relpath* identifies the document; the browser session only knows URLs,
    so errors raised there carry the URL until the check step relabels them.
    """

    def __init__(self, relpath: str, reason: str) -> None:
        self.relpath = relpath
        self.reason = reason
        super().__init__(f"{relpath}: {reason}")

    def for_document(self, relpath: str) -> DocumentCheckError:
        """Return a copy of this error attributed to *relpath*."""
        return type(self)(relpath, self.reason)


class NavigationFailure(DocumentCheckError):
    """The browser could not load a content document."""


class EvaluationFailure(DocumentCheckError):
    """The in-page evaluator failed or returned an unusable payload."""


class EvaluationTimeout(EvaluationFailure):
    """The in-page evaluator did not call back within the allowed time."""


class CheckCancelled(AccessEPUBError):
    """The run was cancelled between two documents."""

    def __init__(self, completed: int) -> None:
        self.completed = completed
        super().__init__(f"Check cancelled after {completed} document(s)")
