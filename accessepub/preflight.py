"""Make sure every injected script is on disk.

Runs once per check, before any browser is launched.  The rule engine
(axe-core) and the outliner (h5o) are not shipped with the package; drop
``axe.min.js`` and ``outliner.min.js`` into ``accessepub/scripts/vendor/`` or
point ``scripts.axe`` / ``scripts.outliner`` at them in ``accessepub.yaml``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from accessepub.config import ScriptsConfig
from accessepub.errors import MissingCapability

logger = logging.getLogger(__name__)

SCRIPTS_DIR = Path(__file__).parent / "scripts"
VENDOR_DIR = SCRIPTS_DIR / "vendor"


@dataclass(frozen=True)
class ScriptBundle:
    """The four scripts injected into every content document.

    Field order is injection order: later scripts use globals defined by
    earlier ones.
    """

    axe: Path
    outliner: Path
    glue_axe: Path
    glue_extraction: Path

    @classmethod
    def default(cls) -> ScriptBundle:
        return cls.from_config(ScriptsConfig())

    @classmethod
    def from_config(cls, cfg: ScriptsConfig) -> ScriptBundle:
        return cls(
            axe=cfg.axe or VENDOR_DIR / "axe.min.js",
            outliner=cfg.outliner or VENDOR_DIR / "outliner.min.js",
            glue_axe=cfg.glue_axe or SCRIPTS_DIR / "ace-axe.js",
            glue_extraction=cfg.glue_extraction or SCRIPTS_DIR / "ace-extraction.js",
        )

    def items(self) -> list[tuple[str, Path]]:
        """Return ``(name, path)`` pairs in injection order."""
        return [
            ("axe", self.axe),
            ("outliner", self.outliner),
            ("glue_axe", self.glue_axe),
            ("glue_extraction", self.glue_extraction),
        ]

    def in_order(self) -> list[Path]:
        return [path for _, path in self.items()]


def is_available(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)


def check_capabilities(scripts: ScriptBundle) -> None:
    """Raise ``MissingCapability`` for the first script that is not readable."""
    for name, path in scripts.items():
        if not is_available(path):
            logger.error("Required script %s not found at %s", name, path)
            raise MissingCapability(name, path)
        logger.debug("Resolved %s -> %s", name, path)


def list_capabilities(scripts: ScriptBundle) -> list[tuple[str, Path, bool]]:
    """Return ``(name, path, available)`` for every script, without raising."""
    return [(name, path, is_available(path)) for name, path in scripts.items()]
