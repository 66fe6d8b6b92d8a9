"""In-memory OOXML package: load a zip container, edit parts, write it back."""

from __future__ import annotations

import io
import logging
import os
import tempfile
import zipfile
from typing import Iterator, Optional, Union

from docx.opc.packuri import PackURI
from lxml import etree

from ooxml_comments.errors import PackageCorrupt, WriteFailed

logger = logging.getLogger(__name__)

CONTENT_TYPES_PART = "[Content_Types].xml"

NS_PR = "http://schemas.openxmlformats.org/package/2006/relationships"
REL_OFFICE_DOCUMENT = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"
)

# XML parser shared by all parts; never resolves entities or fetches DTDs.
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)

PathLike = Union[str, "os.PathLike[str]"]


def member_name(partname: str) -> str:
    """Normalize a part name to its zip member name (no leading slash)."""
    return str(partname).lstrip("/")


def pack_uri(partname: str) -> PackURI:
    """Return the absolute pack URI for a member or part name."""
    return PackURI("/" + member_name(partname))


def rels_name_for(partname: str) -> str:
    """Return the member name of the relationships part for ``partname``."""
    if member_name(partname) == "":
        return "_rels/.rels"
    return member_name(pack_uri(partname).rels_uri)


def serialize_xml(root: etree._Element) -> bytes:
    """Serialize an XML part with the standalone UTF-8 prolog hosts expect."""
    return etree.tostring(
        root,
        xml_declaration=True,
        encoding="UTF-8",
        standalone=True,
    )


class Package:
    """
    An OOXML package held entirely in memory.

    Parts are stored as raw bytes keyed by zip member name. XML parts are
    parsed lazily on first structural access and cached; only parts marked
    dirty are re-serialized, every other member is written back byte for byte
    with its original zip metadata.

    Example:
        >>> pkg = Package.open("report.docx")
        >>> root = pkg.xml("word/document.xml")
        >>> ...  # mutate root
        >>> pkg.mark_dirty("word/document.xml")
        >>> pkg.save("report.docx")
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._infos: dict[str, zipfile.ZipInfo] = {}
        self._trees: dict[str, etree._Element] = {}
        self._dirty: set[str] = set()

    @classmethod
    def load(cls, blob: bytes) -> Package:
        """
        Load a package from archive bytes.

        Raises:
            PackageCorrupt: If the bytes are not a readable OOXML zip.
        """
        pkg = cls()
        try:
            with zipfile.ZipFile(io.BytesIO(blob)) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    pkg._blobs[info.filename] = zf.read(info)
                    pkg._infos[info.filename] = info
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, ValueError) as exc:
            raise PackageCorrupt(f"not a readable zip archive: {exc}") from exc
        except (OSError, NotImplementedError) as exc:
            raise PackageCorrupt(f"cannot read zip member: {exc}") from exc

        if CONTENT_TYPES_PART not in pkg._blobs:
            raise PackageCorrupt(f"archive has no {CONTENT_TYPES_PART}")
        logger.debug("Loaded package with %d parts", len(pkg._blobs))
        return pkg

    @classmethod
    def open(cls, path: PathLike) -> Package:
        """Load a package from a file on disk."""
        try:
            with open(path, "rb") as handle:
                blob = handle.read()
        except OSError as exc:
            raise PackageCorrupt(f"cannot open package '{path}': {exc}") from exc
        return cls.load(blob)

    @property
    def part_names(self) -> list[str]:
        """Member names of all parts, in archive order."""
        return list(self._blobs)

    def has_part(self, partname: str) -> bool:
        return member_name(partname) in self._blobs

    def iter_parts(self, prefix: str = "") -> Iterator[str]:
        prefix = member_name(prefix)
        for name in self._blobs:
            if name.startswith(prefix):
                yield name

    def part(self, partname: str) -> Optional[bytes]:
        """Return the current bytes of a part, or None if it does not exist."""
        name = member_name(partname)
        if name in self._dirty and name in self._trees:
            return serialize_xml(self._trees[name])
        return self._blobs.get(name)

    def set_part(self, partname: str, blob: bytes) -> None:
        """Add or replace a part with raw bytes."""
        name = member_name(partname)
        self._blobs[name] = blob
        self._trees.pop(name, None)
        self._dirty.discard(name)

    def xml(self, partname: str) -> Optional[etree._Element]:
        """
        Return the parsed root element of an XML part (cached).

        Returns:
            The root element, or None when the part does not exist.

        Raises:
            PackageCorrupt: If the part is not well-formed XML.
        """
        name = member_name(partname)
        if name in self._trees:
            return self._trees[name]
        blob = self._blobs.get(name)
        if blob is None:
            return None
        try:
            root = etree.fromstring(blob, parser=_PARSER)
        except etree.XMLSyntaxError as exc:
            raise PackageCorrupt(f"part '{name}' is not well-formed XML: {exc}") from exc
        self._trees[name] = root
        return root

    def set_xml(self, partname: str, root: etree._Element) -> None:
        """Add or replace an XML part from a tree; it is serialized on save."""
        name = member_name(partname)
        self._trees[name] = root
        self._blobs.setdefault(name, b"")
        self._dirty.add(name)

    def mark_dirty(self, partname: str) -> None:
        """Flag a cached XML tree as modified so it is re-serialized."""
        name = member_name(partname)
        if name not in self._trees:
            raise KeyError(f"part '{name}' has no parsed tree to mark dirty")
        self._dirty.add(name)

    @property
    def dirty_parts(self) -> set[str]:
        return set(self._dirty)

    def main_document_partname(self) -> Optional[str]:
        """Resolve the main part from the package-level officeDocument relationship."""
        rels = self.xml("_rels/.rels")
        if rels is None:
            return None
        for rel in rels.findall(f"{{{NS_PR}}}Relationship"):
            if rel.get("Type") != REL_OFFICE_DOCUMENT:
                continue
            if rel.get("TargetMode") == "External":
                continue
            target = rel.get("Target")
            if target:
                return member_name(PackURI.from_rel_ref("/", target))
        return None

    def detect_kind(self) -> Optional[str]:
        """Return ``"word"`` or ``"presentation"`` based on the main part location."""
        main = self.main_document_partname()
        if main is None:
            if self.has_part("word/document.xml"):
                return "word"
            if self.has_part("ppt/presentation.xml"):
                return "presentation"
            return None
        if main.startswith("word/"):
            return "word"
        if main.startswith("ppt/"):
            return "presentation"
        return None

    def serialize(self) -> bytes:
        """Build the archive bytes for the current package state."""
        buffer = io.BytesIO()
        names = list(self._blobs)
        # [Content_Types].xml must remain the first entry.
        if CONTENT_TYPES_PART in names:
            names.remove(CONTENT_TYPES_PART)
            names.insert(0, CONTENT_TYPES_PART)

        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for name in names:
                if name in self._dirty:
                    data = serialize_xml(self._trees[name])
                else:
                    data = self._blobs[name]
                info = self._infos.get(name)
                if info is None:
                    zf.writestr(name, data, compress_type=zipfile.ZIP_DEFLATED)
                else:
                    zf.writestr(_clone_info(info), data)
        logger.debug(
            "Serialized package: %d parts, %d rewritten", len(names), len(self._dirty)
        )
        return buffer.getvalue()

    def save(self, path: PathLike) -> None:
        """
        Write the package to ``path`` atomically.

        The archive is fully built in memory and written to a temporary file
        beside the target, which then replaces the target in one rename. A
        symlinked path is followed, so the link itself is kept.

        Raises:
            WriteFailed: On any I/O error; the existing file is left as it was.
        """
        data = self.serialize()
        target = os.path.realpath(os.fspath(path))
        directory = os.path.dirname(os.path.abspath(target))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=".ooxml-comments-", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            if os.path.exists(target):
                os.chmod(tmp_path, os.stat(target).st_mode & 0o7777)
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            raise WriteFailed(f"cannot write package '{target}': {exc}") from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        logger.debug("Saved package to %s (%d bytes)", target, len(data))


def _clone_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    """Copy the metadata that controls how a member is written back."""
    clone = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    clone.compress_type = info.compress_type
    clone.external_attr = info.external_attr
    clone.create_system = info.create_system
    clone.comment = info.comment
    return clone
