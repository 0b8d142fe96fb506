"""Pydantic configuration model with YAML loading."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_NAME = "accessepub.yaml"
_ENV_VAR = "ACCESSEPUB_CONFIG"


class BrowserConfig(BaseModel):
    """Headless browser settings."""

    engine: Literal["chromium", "firefox", "webkit"] = "chromium"
    headless: bool = True
    navigation_timeout_ms: int = 30000


class CheckConfig(BaseModel):
    """Per-document check settings."""

    settle_delay_ms: int = 50
    document_timeout_s: Optional[float] = None  # noqa: UP007
    on_error: Literal["abort", "continue"] = "abort"


class ScriptsConfig(BaseModel):
    """Overrides for the injected script locations.

    Unset entries fall back to the files shipped in ``accessepub/scripts``.
    """

    axe: Optional[Path] = None  # noqa: UP007
    outliner: Optional[Path] = None  # noqa: UP007
    glue_axe: Optional[Path] = None  # noqa: UP007
    glue_extraction: Optional[Path] = None  # noqa: UP007


class OutputConfig(BaseModel):
    """Report output settings."""

    report_name: str = "report.json"


class AccessEPUBConfig(BaseModel):
    """Top-level configuration for AccessEPUB."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    check: CheckConfig = Field(default_factory=CheckConfig)
    scripts: ScriptsConfig = Field(default_factory=ScriptsConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> AccessEPUBConfig:
        """Load config from *path*, or from the first file ``config_search_path`` finds.

        Returns the defaults when no config file exists.
        """
        if path is None:
            path = next((p for p in config_search_path() if p.is_file()), None)
            if path is None:
                return cls()
        logger.debug("Loading config from %s", path)
        return cls._from_yaml(path)

    @classmethod
    def _from_yaml(cls, path: Path) -> AccessEPUBConfig:
        raw: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a mapping at the top level, got {type(raw).__name__}")
        return cls.model_validate(raw)


def config_search_path() -> list[Path]:
    """Config files tried in order when no explicit path is given.

    ``$ACCESSEPUB_CONFIG`` first, then ``./accessepub.yaml``, then
    ``accessepub/accessepub.yaml`` under ``$XDG_CONFIG_HOME`` (default
    ``~/.config``).
    """
    paths: list[Path] = []
    env_path = os.environ.get(_ENV_VAR)
    if env_path:
        paths.append(Path(env_path).expanduser())
    paths.append(Path.cwd() / _DEFAULT_CONFIG_NAME)
    config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    paths.append(Path(config_home) / "accessepub" / _DEFAULT_CONFIG_NAME)
    return paths
