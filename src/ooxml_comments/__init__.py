"""
ooxml-comments: insert reviewer comments into OOXML packages.

This module provides comment insertion for:
- Word documents (.docx), anchored on a text fragment
- PowerPoint presentations (.pptx), positioned on a slide
- In-place, atomic write-back of the modified package
"""

from importlib.metadata import PackageNotFoundError, version

from ooxml_comments.api import add_comment, add_slide_comment, get_comments, get_slide_comments
from ooxml_comments.errors import (
    AnchorNotFound,
    AnnotationStoreMalformed,
    OOXMLCommentsError,
    PackageCorrupt,
    PartMissingRequired,
    WriteFailed,
)
from ooxml_comments.manager import CommentManager
from ooxml_comments.models import CommentAuthor, CommentInfo, SlideCommentInfo
from ooxml_comments.package import Package
from ooxml_comments.slides import SlideCommentManager

try:
    __version__ = version("ooxml-comments")
except PackageNotFoundError:  # pragma: no cover - local checkout without metadata
    __version__ = "0.0.0"
__all__ = [
    "AnchorNotFound",
    "AnnotationStoreMalformed",
    "CommentAuthor",
    "CommentInfo",
    "CommentManager",
    "OOXMLCommentsError",
    "Package",
    "PackageCorrupt",
    "PartMissingRequired",
    "SlideCommentInfo",
    "SlideCommentManager",
    "WriteFailed",
    "add_comment",
    "add_slide_comment",
    "get_comments",
    "get_slide_comments",
]
