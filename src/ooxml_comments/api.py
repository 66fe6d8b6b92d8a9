"""One-shot helpers: open a package file, add or read comments, write it back."""

from __future__ import annotations

from typing import Optional

from ooxml_comments.manager import CommentManager, Timestamp
from ooxml_comments.models import CommentInfo, SlideCommentInfo
from ooxml_comments.package import Package, PathLike
from ooxml_comments.slides import SlideCommentManager


def add_comment(
    path: PathLike,
    target_text: str,
    text: str,
    author: Optional[str] = None,
    initials: Optional[str] = None,
    timestamp: Timestamp = None,
) -> str:
    """
    Add a comment to a .docx file in place.

    The file is replaced atomically once the package has been fully mutated
    in memory; on any error it is left untouched.

    Returns:
        The new comment ID.
    """
    package = Package.open(path)
    mgr = CommentManager(package)
    comment_id = mgr.add_comment(
        target_text, text, author=author, initials=initials, timestamp=timestamp
    )
    package.save(path)
    return comment_id


def add_slide_comment(
    path: PathLike,
    slide_number: int,
    text: str,
    x: int = 0,
    y: int = 0,
    author: Optional[str] = None,
    initials: Optional[str] = None,
    date: Timestamp = None,
) -> SlideCommentInfo:
    """Add a positional comment to one slide of a .pptx file in place."""
    package = Package.open(path)
    mgr = SlideCommentManager(package)
    info = mgr.add_comment(
        slide_number, text, x=x, y=y, author=author, initials=initials, date=date
    )
    package.save(path)
    return info


def get_comments(path: PathLike) -> list[CommentInfo]:
    """Read all comments from a .docx file."""
    return list(CommentManager(Package.open(path)).list_comments())


def get_slide_comments(path: PathLike) -> list[SlideCommentInfo]:
    """Read all comments from a .pptx file."""
    return SlideCommentManager(Package.open(path)).list_comments()
