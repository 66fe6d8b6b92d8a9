"""Resolve and insert comment anchors in document.xml."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from lxml import etree

from ooxml_comments.errors import AnchorNotFound, PartMissingRequired
from ooxml_comments.models import WordAnchor
from ooxml_comments.package import Package, member_name

logger = logging.getLogger(__name__)

# OOXML Namespace
NS_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def _qn(ns: str, name: str) -> str:
    """Create qualified name with namespace."""
    return f"{{{ns}}}{name}"


def run_text(run: etree._Element) -> str:
    """Concatenated w:t text of a run."""
    return "".join(t.text or "" for t in run.findall(_qn(NS_W, "t")))


class CommentAnchor:
    """Handler for comment anchors in the main document part."""

    def __init__(self, package: Package, partname: str) -> None:
        self._package = package
        self.partname = member_name(partname)

    @property
    def xml(self) -> etree._Element:
        """Root element of the document part."""
        root = self._package.xml(self.partname)
        if root is None:
            raise PartMissingRequired(self.partname)
        return root

    def _save(self) -> None:
        self._package.mark_dirty(self.partname)

    def _iter_runs(self) -> Iterator[etree._Element]:
        for run in self.xml.iter(_qn(NS_W, "r")):
            if _containing_paragraph(run) is not None:
                yield run

    def _anchor(self, run: etree._Element, strategy: str) -> WordAnchor:
        return WordAnchor(
            paragraph=_containing_paragraph(run),
            run=run,
            end_run=run,
            strategy=strategy,
        )

    def resolve(self, target_text: str) -> WordAnchor:
        """
        Find where a comment on ``target_text`` should be attached.

        Rules are tried in order and the first match in document order wins:

        1. exact: a run whose text equals ``target_text``;
        2. substring: a run whose text contains ``target_text``;
        3. cross-run: within one paragraph, the run at which the accumulated
           run text first contains ``target_text``.

        Precision is per run: the markers bracket the selected run, not the
        matched characters.

        Raises:
            ValueError: If ``target_text`` is empty.
            AnchorNotFound: If no rule matches.
        """
        if not target_text:
            raise ValueError("target_text must be non-empty")

        runs = list(self._iter_runs())

        for run in runs:
            if run_text(run) == target_text:
                return self._anchor(run, "exact")

        for run in runs:
            if target_text in run_text(run):
                return self._anchor(run, "substring")

        for paragraph in self.xml.iter(_qn(NS_W, "p")):
            accumulated = ""
            for run in paragraph.iter(_qn(NS_W, "r")):
                accumulated += run_text(run)
                if target_text in accumulated:
                    return self._anchor(run, "cross-run")

        raise AnchorNotFound(f'Target text "{target_text}" not found in the document')

    def add_anchors(self, anchor: WordAnchor, comment_id: str) -> None:
        """
        Add comment anchors around a resolved anchor.

        Creates commentRangeStart before the anchor run, commentRangeEnd after
        the end run, and a commentReference run right after the range end.

        Args:
            anchor: Result of :meth:`resolve`.
            comment_id: The comment ID.
        """
        if anchor.run.getparent() is None or anchor.end_run.getparent() is None:
            raise ValueError("anchor runs are not attached to the document tree")

        # Insert commentRangeStart before the first anchored run
        range_start = etree.Element(_qn(NS_W, "commentRangeStart"))
        range_start.set(_qn(NS_W, "id"), comment_id)
        anchor.run.addprevious(range_start)

        # Insert commentRangeEnd after the last anchored run
        range_end = etree.Element(_qn(NS_W, "commentRangeEnd"))
        range_end.set(_qn(NS_W, "id"), comment_id)
        anchor.end_run.addnext(range_end)

        # Insert commentReference run after commentRangeEnd
        ref_run = etree.Element(_qn(NS_W, "r"))
        rPr = etree.SubElement(ref_run, _qn(NS_W, "rPr"))
        rStyle = etree.SubElement(rPr, _qn(NS_W, "rStyle"))
        rStyle.set(_qn(NS_W, "val"), "CommentReference")
        ref = etree.SubElement(ref_run, _qn(NS_W, "commentReference"))
        ref.set(_qn(NS_W, "id"), comment_id)
        range_end.addnext(ref_run)

        self._save()
        logger.debug(
            "Anchored comment %s (%s match) in %s", comment_id, anchor.strategy, self.partname
        )

    def find_anchor_elements(
        self, comment_id: str
    ) -> tuple[Optional[etree._Element], Optional[etree._Element], Optional[etree._Element]]:
        """Return the (range start, range end, reference) elements for a comment."""
        id_attr = _qn(NS_W, "id")
        found: dict[str, Optional[etree._Element]] = {
            "commentRangeStart": None,
            "commentRangeEnd": None,
            "commentReference": None,
        }
        for localname in found:
            for elem in self.xml.iter(_qn(NS_W, localname)):
                if elem.get(id_attr) == comment_id:
                    found[localname] = elem
                    break
        return (
            found["commentRangeStart"],
            found["commentRangeEnd"],
            found["commentReference"],
        )


def _containing_paragraph(elem: etree._Element) -> Optional[etree._Element]:
    parent = elem.getparent()
    while parent is not None:
        if parent.tag == _qn(NS_W, "p"):
            return parent
        parent = parent.getparent()
    return None

