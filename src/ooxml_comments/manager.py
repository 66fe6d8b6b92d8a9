"""Main CommentManager class for word-processing comment insertion."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterator, Optional, Union

from ooxml_comments.anchors import CommentAnchor
from ooxml_comments.errors import PartMissingRequired
from ooxml_comments.ids import next_id
from ooxml_comments.models import CommentInfo, WordAnchor
from ooxml_comments.package import Package, PathLike
from ooxml_comments.system_author import _default_author, initials_for
from ooxml_comments.wiring import ensure_content_type_override, ensure_relationship
from ooxml_comments.xml_parts import (
    CT_WML_COMMENTS,
    REL_COMMENTS,
    WORD_COMMENTS_PART,
    WORD_DOCUMENT_PART,
    CommentsPart,
    RelationshipsPart,
)

logger = logging.getLogger(__name__)

# OOXML Namespace
NS_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

Timestamp = Union[datetime, str, None]


def _qn(ns: str, name: str) -> str:
    """Create qualified name with namespace."""
    return f"{{{ns}}}{name}"


def _format_utc(dt: datetime) -> str:
    """Format a datetime in UTC; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_timestamp(timestamp: Timestamp = None) -> str:
    """Return an ISO 8601 date attribute value; strings are kept verbatim."""
    if isinstance(timestamp, str):
        return timestamp
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    return _format_utc(timestamp)


def _parse_comment_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse a comment date string into a tz-aware datetime."""
    if not date_str:
        return None
    try:
        if date_str.endswith("Z"):
            return datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        parsed = datetime.fromisoformat(date_str)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except ValueError:
        return None


class CommentManager:
    """
    Manager for comments in a word-processing package.

    Example:
        >>> from ooxml_comments import CommentManager, Package
        >>>
        >>> pkg = Package.open("document.docx")
        >>> mgr = CommentManager(pkg)
        >>> comment_id = mgr.add_comment("hero", "Needs alt text", author="Reviewer1")
        >>> pkg.save("document.docx")
    """

    def __init__(self, package: Package) -> None:
        """
        Initialize CommentManager with a loaded package.

        Raises:
            PartMissingRequired: If the package has no main document part.
        """
        self._package = package
        self._document_partname = (
            package.main_document_partname() or WORD_DOCUMENT_PART
        )
        if not package.has_part(self._document_partname):
            raise PartMissingRequired(self._document_partname)
        self._comments = CommentsPart(package, self._comments_partname())

    @property
    def package(self) -> Package:
        return self._package

    @property
    def document_partname(self) -> str:
        return self._document_partname

    def _comments_partname(self) -> str:
        """Use the existing comments part if the document already links one."""
        for rel in RelationshipsPart(self._package, self._document_partname).relationships():
            if rel.reltype == REL_COMMENTS and rel.target_partname:
                return rel.target_partname
        return WORD_COMMENTS_PART

    def resolve_anchor(self, target_text: str) -> WordAnchor:
        """Resolve where a comment on ``target_text`` would be attached."""
        return CommentAnchor(self._package, self._document_partname).resolve(target_text)

    def add_comment(
        self,
        target_text: str,
        text: str,
        author: Optional[str] = None,
        initials: Optional[str] = None,
        timestamp: Timestamp = None,
    ) -> str:
        """
        Add a comment anchored on the first run matching ``target_text``.

        Args:
            target_text: Text fragment to attach the comment to.
            text: Comment text.
            author: Author name (default from configuration).
            initials: Author initials (optional).
            timestamp: Comment date; defaults to now (UTC).

        Returns:
            The comment ID of the new comment.

        Raises:
            AnchorNotFound: If ``target_text`` does not occur; nothing is changed.
            AnnotationStoreMalformed: If comments.xml exists but is not a
                w:comments part; nothing is changed.
        """
        if author is None:
            author, default_initials = _default_author()
            if initials is None:
                initials = default_initials
        if not author:
            raise ValueError("author must be non-empty")
        if initials is None:
            initials = initials_for(author)

        # Resolve and validate before touching any part.
        anchor = self.resolve_anchor(target_text)
        self._comments.validate()

        comment_id = str(next_id(self._comments.comment_ids(), start=1))

        CommentAnchor(self._package, self._document_partname).add_anchors(
            anchor, comment_id
        )
        self._comments.add_comment(
            comment_id=comment_id,
            text=text,
            author=author,
            date=format_timestamp(timestamp),
            initials=initials,
        )

        ensure_relationship(
            self._package, self._document_partname, REL_COMMENTS, self._comments.partname
        )
        ensure_content_type_override(
            self._package, self._comments.partname, CT_WML_COMMENTS
        )
        logger.debug("Added comment %s by %s", comment_id, author)
        return comment_id

    def list_comments(self) -> Iterator[CommentInfo]:
        """
        List all comments in the document.

        Yields:
            CommentInfo objects for each comment.
        """
        for comment_elem in self._comments.iter_comment_elements():
            text_parts = []
            for t_elem in comment_elem.iter(_qn(NS_W, "t")):
                if t_elem.text:
                    text_parts.append(t_elem.text)

            yield CommentInfo(
                comment_id=comment_elem.get(_qn(NS_W, "id"), ""),
                text="".join(text_parts),
                author=comment_elem.get(_qn(NS_W, "author"), ""),
                initials=comment_elem.get(_qn(NS_W, "initials")) or None,
                timestamp=_parse_comment_date(comment_elem.get(_qn(NS_W, "date"))),
            )

    def save(self, path: PathLike) -> None:
        """Write the package back to ``path`` atomically."""
        self._package.save(path)
