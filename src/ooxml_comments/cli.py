"""Command line interface for adding and listing OOXML comments."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import NoReturn, Optional

import typer

from ooxml_comments import api
from ooxml_comments.errors import OOXMLCommentsError, PackageCorrupt
from ooxml_comments.package import Package

app = typer.Typer(help="Add reviewer comments to .docx and .pptx files in place.")
logger = logging.getLogger(__name__)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose output"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


@app.command("add-comment")
def add_comment(
    path: Path = typer.Argument(..., help="Word document to annotate"),
    target: str = typer.Argument(..., help="Text fragment to anchor the comment on"),
    text: str = typer.Argument(..., help="Comment text"),
    author: Optional[str] = typer.Option(None, "--author", help="Comment author"),
    initials: Optional[str] = typer.Option(None, "--initials", help="Author initials"),
) -> None:
    """Anchor a comment on the first occurrence of TARGET."""
    try:
        comment_id = api.add_comment(path, target, text, author=author, initials=initials)
    except (OOXMLCommentsError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Added comment {comment_id} to {path}")


@app.command("add-slide-comment")
def add_slide_comment(
    path: Path = typer.Argument(..., help="Presentation to annotate"),
    slide: int = typer.Argument(..., help="1-based slide number"),
    text: str = typer.Argument(..., help="Comment text"),
    x: int = typer.Option(0, "--x", help="Horizontal position in EMUs"),
    y: int = typer.Option(0, "--y", help="Vertical position in EMUs"),
    author: Optional[str] = typer.Option(None, "--author", help="Comment author"),
    date: Optional[str] = typer.Option(None, "--date", help="ISO 8601 comment date"),
) -> None:
    """Add a positional comment to SLIDE."""
    try:
        info = api.add_slide_comment(path, slide, text, x=x, y=y, author=author, date=date)
    except (OOXMLCommentsError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Added comment by {info.author} to slide {info.slide_number} of {path}")


@app.command("list-comments")
def list_comments(
    path: Path = typer.Argument(..., help="Word document or presentation"),
    as_json: bool = typer.Option(False, "--json", help="Print comments as JSON"),
) -> None:
    """List the comments in a .docx or .pptx file."""
    try:
        kind = Package.open(path).detect_kind()
        logger.debug("Detected %s package at %s", kind, path)
        if kind == "word":
            comments = api.get_comments(path)
        elif kind == "presentation":
            comments = api.get_slide_comments(path)
        else:
            raise PackageCorrupt(f"'{path}' is neither a Word document nor a presentation")
    except OOXMLCommentsError as exc:
        _fail(exc)

    if as_json:
        typer.echo(json.dumps([asdict(c) for c in comments], indent=2, default=str))
        return
    if not comments:
        typer.echo("No comments found")
        return
    for comment in comments:
        if kind == "word":
            typer.echo(f"[{comment.comment_id}] {comment.author}: {comment.text}")
        else:
            typer.echo(
                f"[slide {comment.slide_number} @ {comment.x},{comment.y}] "
                f"{comment.author}: {comment.text}"
            )


if __name__ == "__main__":  # pragma: no cover
    app()
