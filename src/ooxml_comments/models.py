"""Data models for comment information."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from lxml import etree


@dataclass
class CommentInfo:
    """Information about a single word-processing comment."""

    comment_id: str
    """Comment ID (w:id attribute)."""

    text: str
    """Comment text content."""

    author: str
    """Comment author name."""

    initials: Optional[str] = None
    """Author initials (optional)."""

    timestamp: Optional[datetime] = None
    """Comment creation timestamp."""


@dataclass
class CommentAuthor:
    """An entry in a presentation's comment author list (commentAuthors.xml)."""

    author_id: int
    """Author ID referenced by p:cm/@authorId."""

    name: str
    """Display name, unique within the package."""

    initials: str = ""

    last_idx: int = 0
    """Highest comment index issued for this author."""

    color_index: int = 0


@dataclass
class SlideCommentInfo:
    """Information about a single presentation comment."""

    slide_number: int
    """1-based slide number the comment belongs to."""

    author: str
    text: str

    author_id: Optional[int] = None

    date: str = ""
    """Raw p:cm/@dt value (ISO 8601)."""

    x: int = 0
    """Horizontal position in EMUs."""

    y: int = 0
    """Vertical position in EMUs."""

    slide_id: Optional[str] = None
    """Internal slide ID (p:sldId/@id) when known."""

    index: Optional[int] = None
    """Per-author comment index (p:cm/@idx)."""

    @property
    def timestamp(self) -> Optional[datetime]:
        """The comment date parsed to a datetime, if it is valid ISO 8601."""
        if not self.date:
            return None
        try:
            return datetime.fromisoformat(self.date.replace("Z", "+00:00"))
        except ValueError:
            return None


@dataclass
class WordAnchor:
    """A resolved attachment point for a comment in document.xml."""

    paragraph: etree._Element
    """Paragraph (w:p) containing the anchor run."""

    run: etree._Element
    """Run immediately after the range start."""

    end_run: etree._Element
    """Run immediately before the range end."""

    strategy: str
    """Which rule matched: "exact", "substring" or "cross-run"."""


@dataclass
class SlideAnchor:
    """A resolved slide for a presentation comment."""

    slide_number: int
    slide_id: str
    partname: str
    """Member name of the slide part, e.g. ppt/slides/slide3.xml."""
