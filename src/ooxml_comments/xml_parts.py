"""Handlers for XML parts: content types, relationships, comments and comment authors."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional

from docx.opc.packuri import PackURI
from lxml import etree

from ooxml_comments.errors import (
    AnnotationStoreMalformed,
    PackageCorrupt,
    PartMissingRequired,
)
from ooxml_comments.ids import next_relationship_id, parse_ids
from ooxml_comments.models import CommentAuthor, SlideCommentInfo
from ooxml_comments.package import (
    CONTENT_TYPES_PART,
    Package,
    member_name,
    pack_uri,
    rels_name_for,
)

logger = logging.getLogger(__name__)


# OOXML Namespaces
NS_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NS_R = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
NS_W14 = "http://schemas.microsoft.com/office/word/2010/wordml"
NS_W15 = "http://schemas.microsoft.com/office/word/2012/wordml"
NS_MC = "http://schemas.openxmlformats.org/markup-compatibility/2006"
NS_P = "http://schemas.openxmlformats.org/presentationml/2006/main"
NS_CT = "http://schemas.openxmlformats.org/package/2006/content-types"
NS_PR = "http://schemas.openxmlformats.org/package/2006/relationships"
NS_XML = "http://www.w3.org/XML/1998/namespace"

# Relationship types
REL_COMMENTS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/comments"
REL_COMMENT_AUTHORS = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/commentAuthors"
)
REL_SLIDE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/slide"

# Content types
CT_WML_COMMENTS = "application/vnd.openxmlformats-officedocument.wordprocessingml.comments+xml"
CT_PML_COMMENTS = "application/vnd.openxmlformats-officedocument.presentationml.comments+xml"
CT_PML_COMMENT_AUTHORS = (
    "application/vnd.openxmlformats-officedocument.presentationml.commentAuthors+xml"
)

WORD_DOCUMENT_PART = "word/document.xml"
WORD_COMMENTS_PART = "word/comments.xml"
PRESENTATION_PART = "ppt/presentation.xml"
COMMENT_AUTHORS_PART = "ppt/commentAuthors.xml"
SLIDE_COMMENTS_TEMPLATE = "ppt/comments/comment{number}.xml"

_SLIDE_COMMENTS_RE = re.compile(r"^ppt/comments/comment(\d+)\.xml$", re.IGNORECASE)


def _qn(ns: str, name: str) -> str:
    """Create qualified name with namespace."""
    return f"{{{ns}}}{name}"


def _int_attr(elem: etree._Element, name: str, default: Optional[int] = 0) -> Optional[int]:
    try:
        return int(elem.get(name))
    except (TypeError, ValueError):
        return default


@dataclass
class Relationship:
    """One entry of a relationships part."""

    rel_id: str
    reltype: str
    target_ref: str
    is_external: bool = False
    target_partname: Optional[str] = None
    """Member name of the target part (None for external targets)."""


class ContentTypesPart:
    """Handler for the package-wide [Content_Types].xml registry."""

    def __init__(self, package: Package) -> None:
        self._package = package

    @property
    def xml(self) -> etree._Element:
        root = self._package.xml(CONTENT_TYPES_PART)
        if root is None or etree.QName(root).localname != "Types":
            raise PackageCorrupt(f"{CONTENT_TYPES_PART} has no Types root")
        return root

    def _save(self) -> None:
        self._package.mark_dirty(CONTENT_TYPES_PART)

    def overrides(self) -> dict[str, str]:
        """Map of PartName to ContentType for every Override entry."""
        result = {}
        for elem in self.xml.findall(_qn(NS_CT, "Override")):
            partname = elem.get("PartName")
            if partname:
                result[partname] = elem.get("ContentType", "")
        return result

    def override_for(self, partname: str) -> Optional[str]:
        """Return the overriding content type for a part, matched case-insensitively."""
        wanted = str(pack_uri(partname)).lower()
        for name, content_type in self.overrides().items():
            if name.lower() == wanted:
                return content_type
        return None

    def add_override(self, partname: str, content_type: str) -> None:
        """Append an Override entry (no duplicate check, see wiring)."""
        elem = etree.SubElement(self.xml, _qn(NS_CT, "Override"))
        elem.set("PartName", str(pack_uri(partname)))
        elem.set("ContentType", content_type)
        self._save()


class RelationshipsPart:
    """Handler for the relationships part of one source part."""

    def __init__(self, package: Package, source_partname: str) -> None:
        self._package = package
        self.source_partname = member_name(source_partname)
        self.partname = rels_name_for(self.source_partname)

    @property
    def _base_uri(self) -> str:
        if self.source_partname == "":
            return "/"
        return pack_uri(self.source_partname).baseURI

    def exists(self) -> bool:
        return self._package.has_part(self.partname)

    def ensure_exists(self) -> None:
        """Ensure the relationships part exists, creating an empty one if needed."""
        if not self.exists():
            self._create_part()

    def _create_part(self) -> None:
        root = etree.Element(_qn(NS_PR, "Relationships"), nsmap={None: NS_PR})
        self._package.set_xml(self.partname, root)
        logger.debug("Created relationships part %s", self.partname)

    @property
    def xml(self) -> etree._Element:
        """Get the XML root element, creating the part when absent."""
        self.ensure_exists()
        root = self._package.xml(self.partname)
        if etree.QName(root).localname != "Relationships":
            raise PackageCorrupt(f"'{self.partname}' has no Relationships root")
        return root

    def _save(self) -> None:
        self._package.mark_dirty(self.partname)

    def relationships(self) -> list[Relationship]:
        """List relationships; an absent part has none."""
        if not self.exists():
            return []
        result = []
        for elem in self.xml.findall(_qn(NS_PR, "Relationship")):
            target_ref = elem.get("Target", "")
            is_external = elem.get("TargetMode") == "External"
            target_partname = None
            if not is_external and target_ref:
                target_partname = member_name(
                    PackURI.from_rel_ref(self._base_uri, target_ref)
                )
            result.append(
                Relationship(
                    rel_id=elem.get("Id", ""),
                    reltype=elem.get("Type", ""),
                    target_ref=target_ref,
                    is_external=is_external,
                    target_partname=target_partname,
                )
            )
        return result

    def find(self, reltype: str, target_partname: str) -> Optional[Relationship]:
        """Find a relationship by type and resolved target."""
        wanted = member_name(target_partname).lower()
        for rel in self.relationships():
            if rel.reltype != reltype or rel.target_partname is None:
                continue
            if rel.target_partname.lower() == wanted:
                return rel
        return None

    def target_of(self, rel_id: str) -> Optional[str]:
        """Return the member name targeted by ``rel_id``."""
        for rel in self.relationships():
            if rel.rel_id == rel_id:
                return rel.target_partname
        return None

    def add(self, reltype: str, target_partname: str) -> str:
        """Append a relationship with a fresh Id and return that Id."""
        rel_id = next_relationship_id(rel.rel_id for rel in self.relationships())
        target_ref = pack_uri(target_partname).relative_ref(self._base_uri)
        elem = etree.SubElement(self.xml, _qn(NS_PR, "Relationship"))
        elem.set("Id", rel_id)
        elem.set("Type", reltype)
        elem.set("Target", target_ref)
        self._save()
        return rel_id


class CommentsPart:
    """Handler for word/comments.xml."""

    def __init__(self, package: Package, partname: str = WORD_COMMENTS_PART) -> None:
        self._package = package
        self.partname = member_name(partname)

    def exists(self) -> bool:
        return self._package.has_part(self.partname)

    def ensure_exists(self) -> None:
        """Ensure the comments part exists, creating if needed."""
        if not self.exists():
            self._create_part()

    def _create_part(self) -> None:
        """Create a new comments.xml part."""
        nsmap = {
            "w": NS_W,
            "r": NS_R,
            "w14": NS_W14,
            "w15": NS_W15,
            "mc": NS_MC,
        }
        root = etree.Element(_qn(NS_W, "comments"), nsmap=nsmap)
        root.set(_qn(NS_MC, "Ignorable"), "w14 w15")
        self._package.set_xml(self.partname, root)
        logger.debug("Created comments part %s", self.partname)

    @property
    def xml(self) -> etree._Element:
        """
        Get the XML root element.

        Raises:
            AnnotationStoreMalformed: If the existing part does not parse as
                a w:comments root.
        """
        self.ensure_exists()
        return self._root()

    def _root(self) -> etree._Element:
        try:
            root = self._package.xml(self.partname)
        except PackageCorrupt as exc:
            raise AnnotationStoreMalformed(self.partname, str(exc)) from exc
        if root.tag != _qn(NS_W, "comments"):
            raise AnnotationStoreMalformed(
                self.partname, f"expected w:comments root, found {root.tag}"
            )
        return root

    def validate(self) -> None:
        """Raise AnnotationStoreMalformed for a bad existing part; no-op if absent."""
        if self.exists():
            self._root()

    def _save(self) -> None:
        self._package.mark_dirty(self.partname)

    def comment_ids(self) -> set[int]:
        if not self.exists():
            return set()
        return parse_ids(
            elem.get(_qn(NS_W, "id")) for elem in self.xml.findall(_qn(NS_W, "comment"))
        )

    def iter_comment_elements(self) -> Iterator[etree._Element]:
        if not self.exists():
            return
        yield from self.xml.findall(_qn(NS_W, "comment"))

    def add_comment(
        self,
        comment_id: str,
        text: str,
        author: str,
        date: str,
        initials: Optional[str] = None,
    ) -> etree._Element:
        """Append a w:comment holding one paragraph with the comment text."""
        comment = etree.SubElement(self.xml, _qn(NS_W, "comment"))
        comment.set(_qn(NS_W, "id"), comment_id)
        comment.set(_qn(NS_W, "author"), author)
        comment.set(_qn(NS_W, "date"), date)
        comment.set(_qn(NS_W, "initials"), initials or "")

        # Add paragraph with CommentText style
        para = etree.SubElement(comment, _qn(NS_W, "p"))
        pPr = etree.SubElement(para, _qn(NS_W, "pPr"))
        pStyle = etree.SubElement(pPr, _qn(NS_W, "pStyle"))
        pStyle.set(_qn(NS_W, "val"), "CommentText")

        # Add run with annotationRef
        run1 = etree.SubElement(para, _qn(NS_W, "r"))
        rPr = etree.SubElement(run1, _qn(NS_W, "rPr"))
        rStyle = etree.SubElement(rPr, _qn(NS_W, "rStyle"))
        rStyle.set(_qn(NS_W, "val"), "CommentReference")
        etree.SubElement(run1, _qn(NS_W, "annotationRef"))

        # Add run with text
        run2 = etree.SubElement(para, _qn(NS_W, "r"))
        t = etree.SubElement(run2, _qn(NS_W, "t"))
        t.set(_qn(NS_XML, "space"), "preserve")
        t.text = text

        self._save()
        return comment


class PresentationPart:
    """Handler for ppt/presentation.xml (read-only slide list access)."""

    def __init__(self, package: Package, partname: str = PRESENTATION_PART) -> None:
        self._package = package
        self.partname = member_name(partname)

    @property
    def xml(self) -> etree._Element:
        root = self._package.xml(self.partname)
        if root is None:
            raise PartMissingRequired(self.partname)
        return root

    @property
    def rels(self) -> RelationshipsPart:
        return RelationshipsPart(self._package, self.partname)

    def slide_ids(self) -> list[tuple[str, str]]:
        """Ordered (slide id, relationship id) pairs from p:sldIdLst."""
        result = []
        sld_id_lst = self.xml.find(_qn(NS_P, "sldIdLst"))
        if sld_id_lst is None:
            return result
        for elem in sld_id_lst.findall(_qn(NS_P, "sldId")):
            slide_id = elem.get("id")
            if slide_id:
                result.append((slide_id, elem.get(_qn(NS_R, "id"), "")))
        return result

    def slide_partnames(self) -> list[str]:
        """Member names of the slides in presentation order (unresolvable skipped)."""
        rels = self.rels
        names = []
        for _, rel_id in self.slide_ids():
            target = rels.target_of(rel_id)
            if target:
                names.append(target)
        return names


class CommentAuthorsPart:
    """Handler for ppt/commentAuthors.xml."""

    _ROOT_NAMES = ("cmAuthorLst", "commentAuthors")

    def __init__(self, package: Package, partname: str = COMMENT_AUTHORS_PART) -> None:
        self._package = package
        self.partname = member_name(partname)

    def exists(self) -> bool:
        return self._package.has_part(self.partname)

    def ensure_exists(self) -> None:
        """Ensure the comment authors part exists, creating if needed."""
        if not self.exists():
            self._create_part()

    def _create_part(self) -> None:
        root = etree.Element(_qn(NS_P, "cmAuthorLst"), nsmap={"p": NS_P})
        self._package.set_xml(self.partname, root)
        logger.debug("Created comment authors part %s", self.partname)

    @property
    def xml(self) -> etree._Element:
        self.ensure_exists()
        return self._root()

    def _root(self) -> etree._Element:
        try:
            root = self._package.xml(self.partname)
        except PackageCorrupt as exc:
            raise AnnotationStoreMalformed(self.partname, str(exc)) from exc
        qname = etree.QName(root)
        if qname.namespace != NS_P or qname.localname not in self._ROOT_NAMES:
            raise AnnotationStoreMalformed(
                self.partname, f"expected p:cmAuthorLst root, found {root.tag}"
            )
        return root

    def validate(self) -> None:
        if self.exists():
            self._root()

    def _save(self) -> None:
        self._package.mark_dirty(self.partname)

    def _author_from_elem(self, elem: etree._Element) -> CommentAuthor:
        return CommentAuthor(
            author_id=_int_attr(elem, "id"),
            name=elem.get("name", ""),
            initials=elem.get("initials", ""),
            last_idx=_int_attr(elem, "lastIdx"),
            color_index=_int_attr(elem, "clrIdx"),
        )

    def _author_elements(self) -> list[etree._Element]:
        if not self.exists():
            return []
        return self.xml.findall(_qn(NS_P, "cmAuthor"))

    def get_authors(self) -> list[CommentAuthor]:
        """List comment authors; empty if the part is absent."""
        return [self._author_from_elem(elem) for elem in self._author_elements()]

    def author_names(self) -> dict[str, str]:
        """Map of author id (as text) to display name."""
        return {
            elem.get("id"): elem.get("name", "")
            for elem in self._author_elements()
            if elem.get("id") is not None
        }

    def _find_author_elem(self, name: str) -> Optional[etree._Element]:
        for elem in self._author_elements():
            if elem.get("name") == name:
                return elem
        return None

    def find_author(self, name: str) -> Optional[CommentAuthor]:
        elem = self._find_author_elem(name)
        return None if elem is None else self._author_from_elem(elem)

    def add_author(self, author_id: int, name: str, initials: str) -> CommentAuthor:
        """Append a p:cmAuthor entry with the given id."""
        elem = etree.SubElement(self.xml, _qn(NS_P, "cmAuthor"))
        elem.set("id", str(author_id))
        elem.set("name", name)
        elem.set("initials", initials)
        elem.set("lastIdx", "0")
        elem.set("clrIdx", str(author_id % 8))
        self._save()
        return self._author_from_elem(elem)

    def author_ids(self) -> set[int]:
        return parse_ids(elem.get("id") for elem in self._author_elements())

    def bump_last_idx(self, author_id: int) -> int:
        """Increment an author's lastIdx and return the new value."""
        for elem in self._author_elements():
            if _int_attr(elem, "id", -1) == author_id:
                new_idx = _int_attr(elem, "lastIdx") + 1
                elem.set("lastIdx", str(new_idx))
                self._save()
                return new_idx
        raise KeyError(f"comment author {author_id} not found")


class SlideCommentsPart:
    """Handler for one ppt/comments/commentN.xml part (p:cmLst)."""

    def __init__(self, package: Package, partname: str) -> None:
        self._package = package
        self.partname = member_name(partname)

    @classmethod
    def for_slide(cls, package: Package, slide_number: int) -> SlideCommentsPart:
        return cls(package, SLIDE_COMMENTS_TEMPLATE.format(number=slide_number))

    @property
    def number_from_name(self) -> Optional[int]:
        """Slide ordinal encoded in the part name, if any."""
        match = _SLIDE_COMMENTS_RE.match(self.partname)
        return int(match.group(1)) if match else None

    def exists(self) -> bool:
        return self._package.has_part(self.partname)

    def ensure_exists(self) -> None:
        """Ensure the slide comments part exists, creating if needed."""
        if not self.exists():
            self._create_part()

    def _create_part(self) -> None:
        root = etree.Element(_qn(NS_P, "cmLst"), nsmap={"p": NS_P})
        self._package.set_xml(self.partname, root)
        logger.debug("Created slide comments part %s", self.partname)

    @property
    def xml(self) -> etree._Element:
        self.ensure_exists()
        return self._root()

    def _root(self) -> etree._Element:
        try:
            root = self._package.xml(self.partname)
        except PackageCorrupt as exc:
            raise AnnotationStoreMalformed(self.partname, str(exc)) from exc
        if root.tag != _qn(NS_P, "cmLst"):
            raise AnnotationStoreMalformed(
                self.partname, f"expected p:cmLst root, found {root.tag}"
            )
        return root

    def validate(self) -> None:
        if self.exists():
            self._root()

    def _save(self) -> None:
        self._package.mark_dirty(self.partname)

    def add_comment(
        self,
        author_id: int,
        date: str,
        index: int,
        x: int,
        y: int,
        text: str,
    ) -> etree._Element:
        """Append a p:cm with its position and text."""
        comment = etree.SubElement(self.xml, _qn(NS_P, "cm"))
        comment.set("authorId", str(author_id))
        comment.set("dt", date)
        comment.set("idx", str(index))

        pos = etree.SubElement(comment, _qn(NS_P, "pos"))
        pos.set("x", str(x))
        pos.set("y", str(y))

        text_elem = etree.SubElement(comment, _qn(NS_P, "text"))
        text_elem.text = text

        self._save()
        return comment

    def get_comments(
        self,
        slide_number: int,
        author_names: dict[str, str],
        slide_id: Optional[str] = None,
    ) -> list[SlideCommentInfo]:
        """Read every p:cm entry; an absent part has none."""
        if not self.exists():
            return []
        result = []
        for elem in self.xml.findall(_qn(NS_P, "cm")):
            author_id_attr = elem.get("authorId")
            pos = elem.find(_qn(NS_P, "pos"))
            text_elem = elem.find(_qn(NS_P, "text"))
            result.append(
                SlideCommentInfo(
                    slide_number=slide_number,
                    author=author_names.get(author_id_attr or "", ""),
                    text=(text_elem.text or "").strip() if text_elem is not None else "",
                    author_id=_int_attr(elem, "authorId", None),
                    date=elem.get("dt", ""),
                    x=_int_attr(pos, "x") if pos is not None else 0,
                    y=_int_attr(pos, "y") if pos is not None else 0,
                    slide_id=slide_id,
                    index=_int_attr(elem, "idx", None),
                )
            )
        return result
