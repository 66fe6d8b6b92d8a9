"""SlideCommentManager: positional comments for presentation packages."""

from __future__ import annotations

import logging
from typing import Optional

from ooxml_comments.errors import AnchorNotFound, PartMissingRequired
from ooxml_comments.ids import next_id
from ooxml_comments.manager import Timestamp, format_timestamp
from ooxml_comments.models import CommentAuthor, SlideAnchor, SlideCommentInfo
from ooxml_comments.package import Package, PathLike
from ooxml_comments.system_author import _default_author, initials_for
from ooxml_comments.wiring import ensure_content_type_override, ensure_relationship
from ooxml_comments.xml_parts import (
    COMMENT_AUTHORS_PART,
    CT_PML_COMMENT_AUTHORS,
    CT_PML_COMMENTS,
    PRESENTATION_PART,
    REL_COMMENT_AUTHORS,
    REL_COMMENTS,
    CommentAuthorsPart,
    PresentationPart,
    RelationshipsPart,
    SlideCommentsPart,
)

logger = logging.getLogger(__name__)


class SlideCommentManager:
    """
    Manager for comments in a presentation package.

    Presentation comments are positional: each one belongs to a slide and
    carries an (x, y) offset in EMUs. Comments for slide N are stored in
    ppt/comments/commentN.xml; authors live in ppt/commentAuthors.xml.

    Example:
        >>> pkg = Package.open("deck.pptx")
        >>> mgr = SlideCommentManager(pkg)
        >>> mgr.add_comment(3, "Needs alt text", x=1000000, y=2000000,
        ...                 author="Reviewer1")
        >>> pkg.save("deck.pptx")
    """

    def __init__(self, package: Package) -> None:
        self._package = package
        self._presentation_partname = (
            package.main_document_partname() or PRESENTATION_PART
        )
        if not package.has_part(self._presentation_partname):
            raise PartMissingRequired(self._presentation_partname)
        self._presentation = PresentationPart(package, self._presentation_partname)
        self._authors = CommentAuthorsPart(package, self._authors_partname())

    @property
    def package(self) -> Package:
        return self._package

    def _authors_partname(self) -> str:
        rels = RelationshipsPart(self._package, self._presentation_partname)
        for rel in rels.relationships():
            if rel.reltype == REL_COMMENT_AUTHORS and rel.target_partname:
                return rel.target_partname
        return COMMENT_AUTHORS_PART

    @property
    def slide_count(self) -> int:
        return len(self._presentation.slide_ids())

    def resolve_slide(self, slide_number: int) -> SlideAnchor:
        """
        Map a 1-based slide number to its slide id and slide part.

        Raises:
            AnchorNotFound: If the number is outside the slide list.
            PartMissingRequired: If the slide's part cannot be found.
        """
        slide_ids = self._presentation.slide_ids()
        if slide_number < 1 or slide_number > len(slide_ids):
            raise AnchorNotFound(
                f"Invalid slide number: {slide_number} "
                f"(presentation has {len(slide_ids)} slides)"
            )
        slide_id, rel_id = slide_ids[slide_number - 1]
        partname = self._presentation.rels.target_of(rel_id)
        if not partname or not self._package.has_part(partname):
            raise PartMissingRequired(
                partname or f"{self._presentation_partname}#{rel_id}",
                f"slide {slide_number} (relationship {rel_id!r}) has no slide part",
            )
        return SlideAnchor(slide_number=slide_number, slide_id=slide_id, partname=partname)

    def _linked_store(self, slide_partname: str) -> Optional[str]:
        for rel in RelationshipsPart(self._package, slide_partname).relationships():
            if rel.reltype == REL_COMMENTS and rel.target_partname:
                return rel.target_partname
        return None

    def _store_for(self, anchor: SlideAnchor) -> SlideCommentsPart:
        """
        Return the comments part of a slide.

        A store the slide already links is reused. Otherwise the store is
        named after the slide ordinal, moving to the next free number when
        that part exists or another slide links it.
        """
        linked = self._linked_store(anchor.partname)
        if linked is not None:
            return SlideCommentsPart(self._package, linked)

        taken = {
            store.lower()
            for store in map(self._linked_store, self._presentation.slide_partnames())
            if store is not None
        }
        number = anchor.slide_number
        while True:
            store = SlideCommentsPart.for_slide(self._package, number)
            if store.partname.lower() not in taken and not store.exists():
                return store
            number += 1

    def get_authors(self) -> list[CommentAuthor]:
        """List comment authors from ppt/commentAuthors.xml."""
        return self._authors.get_authors()

    def ensure_author(self, name: str, initials: Optional[str] = None) -> CommentAuthor:
        """
        Return the author entry for ``name``, adding one if absent.

        New authors get the next sequential id starting at 0.
        """
        if not name:
            raise ValueError("author must be non-empty")
        existing = self._authors.find_author(name)
        if existing is not None:
            return existing
        author_id = next_id(self._authors.author_ids(), start=0)
        author = self._authors.add_author(
            author_id, name, initials if initials is not None else initials_for(name)
        )
        logger.debug("Added comment author %s (%s)", author_id, name)
        return author

    def add_comment(
        self,
        slide_number: int,
        text: str,
        x: int = 0,
        y: int = 0,
        author: Optional[str] = None,
        initials: Optional[str] = None,
        date: Timestamp = None,
    ) -> SlideCommentInfo:
        """
        Add a comment to a slide at an explicit position.

        Args:
            slide_number: 1-based slide number.
            text: Comment text.
            x: Horizontal offset in EMUs.
            y: Vertical offset in EMUs.
            author: Author name (default from configuration).
            initials: Initials for a newly registered author.
            date: Comment date (datetime or ISO string); defaults to now (UTC).

        Returns:
            SlideCommentInfo for the new comment.

        Raises:
            AnchorNotFound: If the slide number is out of range.
            AnnotationStoreMalformed: If an existing comments or authors part
                is malformed; nothing is changed.
        """
        if author is None:
            author, default_initials = _default_author()
            if initials is None:
                initials = default_initials

        anchor = self.resolve_slide(slide_number)
        store = self._store_for(anchor)
        self._authors.validate()
        store.validate()

        comment_author = self.ensure_author(author, initials)
        index = self._authors.bump_last_idx(comment_author.author_id)
        dt = format_timestamp(date)
        store.add_comment(
            author_id=comment_author.author_id,
            date=dt,
            index=index,
            x=int(x),
            y=int(y),
            text=text,
        )

        ensure_relationship(self._package, anchor.partname, REL_COMMENTS, store.partname)
        ensure_relationship(
            self._package,
            self._presentation_partname,
            REL_COMMENT_AUTHORS,
            self._authors.partname,
        )
        ensure_content_type_override(self._package, store.partname, CT_PML_COMMENTS)
        ensure_content_type_override(
            self._package, self._authors.partname, CT_PML_COMMENT_AUTHORS
        )
        logger.debug(
            "Added comment %s/%s on slide %s", comment_author.author_id, index, slide_number
        )
        return SlideCommentInfo(
            slide_number=slide_number,
            author=comment_author.name,
            text=text,
            author_id=comment_author.author_id,
            date=dt,
            x=int(x),
            y=int(y),
            slide_id=anchor.slide_id,
            index=index,
        )

    def list_comments(self) -> list[SlideCommentInfo]:
        """
        List comments on every slide, in slide order.

        The slide number comes from the slide that links the comments part;
        comment parts no slide links fall back to the number in their name.
        """
        author_names = self._authors.author_names()
        slide_ids = self._presentation.slide_ids()
        seen: set[str] = set()
        result: list[SlideCommentInfo] = []

        for number, (slide_id, rel_id) in enumerate(slide_ids, start=1):
            slide_partname = self._presentation.rels.target_of(rel_id)
            if not slide_partname:
                continue
            for rel in RelationshipsPart(self._package, slide_partname).relationships():
                if rel.reltype != REL_COMMENTS or not rel.target_partname:
                    continue
                if rel.target_partname in seen:
                    continue
                seen.add(rel.target_partname)
                store = SlideCommentsPart(self._package, rel.target_partname)
                result.extend(store.get_comments(number, author_names, slide_id))

        for partname in sorted(self._package.iter_parts("ppt/comments/")):
            if partname in seen:
                continue
            store = SlideCommentsPart(self._package, partname)
            number = store.number_from_name
            if number is None:
                continue
            slide_id = slide_ids[number - 1][0] if 0 < number <= len(slide_ids) else None
            result.extend(store.get_comments(number, author_names, slide_id))

        return result

    def save(self, path: PathLike) -> None:
        """Write the package back to ``path`` atomically."""
        self._package.save(path)
