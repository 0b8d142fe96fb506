"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from accessepub.errors import EvaluationFailure, NavigationFailure
from accessepub.models import DocumentDescriptor
from accessepub.preflight import ScriptBundle


class RecordingSession:
    """In-memory BrowserSession that records every call.

    ``payloads`` maps a URL to what ``evaluate`` returns after navigating
    there; ``fail_navigation`` / ``fail_evaluation`` hold URLs that raise.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.payloads: dict[str, Any] = {}
        self.fail_navigation: set[str] = set()
        self.fail_evaluation: set[str] = set()
        self.evaluate_delay: float = 0.0
        self.open_count = 0
        self.close_count = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._url: str | None = None

    async def _step(self, name: str, arg: Any, delay: float = 0.0) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append((name, arg))
            await asyncio.sleep(delay)
        finally:
            self.in_flight -= 1

    async def open(self) -> None:
        self.open_count += 1
        await self._step("open", None)

    async def navigate(self, url: str) -> None:
        await self._step("navigate", url)
        if url in self.fail_navigation:
            raise NavigationFailure(url, "net::ERR_FILE_NOT_FOUND")
        self._url = url

    async def inject_script(self, path: Path) -> None:
        await self._step("inject", path.name)

    async def evaluate(self, entry_point: str) -> Any:
        await self._step("evaluate", entry_point, self.evaluate_delay)
        if self._url in self.fail_evaluation:
            raise EvaluationFailure(self._url or "", "ReferenceError: axe is not defined")
        return self.payloads.get(self._url, {"axe": None, "data": None})

    async def close(self) -> None:
        self.close_count += 1
        await self._step("close", None)

    def injected_per_document(self) -> list[list[str]]:
        """Group injected script names by the navigation that preceded them."""
        groups: list[list[str]] = []
        for name, arg in self.calls:
            if name == "navigate":
                groups.append([])
            elif name == "inject":
                groups[-1].append(arg)
        return groups


@pytest.fixture
def scripts(tmp_path: Path) -> ScriptBundle:
    """A bundle of four readable (empty) script files."""
    script_dir = tmp_path / "scripts"
    script_dir.mkdir()
    names = ["axe.min.js", "outliner.min.js", "ace-axe.js", "ace-extraction.js"]
    for name in names:
        (script_dir / name).write_text("/* stub */\n", encoding="utf-8")
    return ScriptBundle(*(script_dir / name for name in names))


@pytest.fixture
def session() -> RecordingSession:
    return RecordingSession()


@pytest.fixture
def descriptors() -> list[DocumentDescriptor]:
    return [
        DocumentDescriptor(
            relpath=f"chapter{i}.xhtml",
            url=f"file:///book/OEBPS/chapter{i}.xhtml",
            filepath=Path(f"/book/OEBPS/chapter{i}.xhtml"),
        )
        for i in range(1, 4)
    ]


@pytest.fixture
def unpacked_epub(tmp_path: Path) -> Path:
    """Write a minimal unpacked EPUB 3 with two chapters and a nav document."""
    root = tmp_path / "book"
    (root / "META-INF").mkdir(parents=True)
    (root / "OEBPS" / "text").mkdir(parents=True)
    (root / "mimetype").write_text("application/epub+zip", encoding="utf-8")
    (root / "META-INF" / "container.xml").write_text(
        """\
<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/package.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
""",
        encoding="utf-8",
    )
    (root / "OEBPS" / "package.opf").write_text(
        """\
<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="uid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="uid">urn:uuid:1234</dc:identifier>
    <dc:title>Test Book</dc:title>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>
    <item id="c1" href="text/chapter%201.xhtml" media-type="application/xhtml+xml"/>
    <item id="c2" href="text/chapter2.xhtml" media-type="application/xhtml+xml"/>
    <item id="cover" href="images/cover.png" media-type="image/png"/>
  </manifest>
  <spine>
    <itemref idref="c2"/>
    <itemref idref="c1"/>
    <itemref idref="cover"/>
  </spine>
</package>
""",
        encoding="utf-8",
    )
    for name in ["nav.xhtml", "text/chapter 1.xhtml", "text/chapter2.xhtml"]:
        (root / "OEBPS" / name).write_text(
            "<html xmlns='http://www.w3.org/1999/xhtml'><body><p>x</p></body></html>",
            encoding="utf-8",
        )
    return root
