"""Turn an EPUB publication into ordered document descriptors."""

from __future__ import annotations

import logging
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote
from xml.etree import ElementTree

from accessepub.models import DocumentDescriptor

logger = logging.getLogger(__name__)

_CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
_OPF_NS = "http://www.idpf.org/2007/opf"
_DC_NS = "http://purl.org/dc/elements/1.1/"

_CONTENT_TYPES = frozenset({"application/xhtml+xml"})


class InvalidEPUB(ValueError):
    """The input is not a readable EPUB publication."""


@dataclass
class Publication:
    """An unpacked EPUB and its content documents in spine order.

    A publication unpacked into a temporary directory owns that directory;
    use it as a context manager (or call ``cleanup``) to remove it.
    """

    root: Path
    package_path: Path
    title: str = ""
    descriptors: list[DocumentDescriptor] = field(default_factory=list)
    tempdir: tempfile.TemporaryDirectory | None = field(default=None, repr=False)

    def cleanup(self) -> None:
        if self.tempdir is not None:
            self.tempdir.cleanup()
            self.tempdir = None

    def __enter__(self) -> Publication:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()


def load_publication(path: Path, *, workdir: Path | None = None) -> Publication:
    """Load an EPUB file or unpacked EPUB directory.

    Zipped EPUBs are extracted into *workdir*, or into a temporary directory
    owned by the returned publication when *workdir* is not given.
    """
    if not (path.is_dir() or path.is_file()):
        raise InvalidEPUB(f"No such file or directory: {path}")

    tempdir = None
    if path.is_file() and workdir is None:
        tempdir = tempfile.TemporaryDirectory(prefix="accessepub-")
        workdir = Path(tempdir.name)
    try:
        root = path if path.is_dir() else unpack(path, workdir)
        pub = _parse_package(root, _find_package_document(root))
    except BaseException:
        if tempdir is not None:
            tempdir.cleanup()
        raise
    pub.tempdir = tempdir
    return pub


def unpack(epub: Path, dest: Path) -> Path:
    """Extract *epub* into *dest* and return *dest*."""
    try:
        with zipfile.ZipFile(epub) as zf:
            dest_resolved = dest.resolve()
            for name in zf.namelist():
                target = (dest / name).resolve()
                if dest_resolved not in target.parents and target != dest_resolved:
                    raise InvalidEPUB(f"Unsafe path in archive: {name}")
            zf.extractall(dest)
    except zipfile.BadZipFile as exc:
        raise InvalidEPUB(f"Not a zip archive: {epub}") from exc
    logger.debug("Unpacked %s to %s", epub, dest)
    return dest


def _find_package_document(root: Path) -> Path:
    container = root / "META-INF" / "container.xml"
    if not container.is_file():
        raise InvalidEPUB(f"Missing META-INF/container.xml in {root}")

    tree = _parse_xml(container)
    rootfile = tree.find(f".//{{{_CONTAINER_NS}}}rootfile")
    if rootfile is None or not rootfile.get("full-path"):
        raise InvalidEPUB("container.xml has no rootfile")

    package_path = root / unquote(rootfile.get("full-path", ""))
    if not package_path.is_file():
        raise InvalidEPUB(f"Package document not found: {package_path}")
    return package_path


def _parse_package(root: Path, package_path: Path) -> Publication:
    tree = _parse_xml(package_path)
    base = package_path.parent

    title_el = tree.find(f".//{{{_DC_NS}}}title")
    title = (title_el.text or "").strip() if title_el is not None else ""

    manifest: dict[str, tuple[str, str]] = {}
    for item in tree.iterfind(f".//{{{_OPF_NS}}}manifest/{{{_OPF_NS}}}item"):
        manifest[item.get("id", "")] = (item.get("href", ""), item.get("media-type", ""))

    pub = Publication(root=root, package_path=package_path, title=title)
    for itemref in tree.iterfind(f".//{{{_OPF_NS}}}spine/{{{_OPF_NS}}}itemref"):
        idref = itemref.get("idref", "")
        if idref not in manifest:
            logger.warning("Spine itemref %r has no manifest entry", idref)
            continue
        href, media_type = manifest[idref]
        if media_type not in _CONTENT_TYPES:
            logger.debug("Skipping spine item %s (%s)", href, media_type)
            continue
        relpath = unquote(href.split("#", 1)[0])
        filepath = (base / relpath).resolve()
        pub.descriptors.append(
            DocumentDescriptor(relpath=relpath, url=filepath.as_uri(), filepath=filepath)
        )

    if not pub.descriptors:
        logger.warning("No content documents found in %s", package_path)
    return pub


def _parse_xml(path: Path) -> ElementTree.Element:
    try:
        return ElementTree.parse(path).getroot()
    except ElementTree.ParseError as exc:
        raise InvalidEPUB(f"Malformed XML in {path.name}: {exc}") from exc
