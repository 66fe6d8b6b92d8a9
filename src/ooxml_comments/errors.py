"""Exceptions raised while annotating OOXML packages."""


class OOXMLCommentsError(Exception):
    """Base class for all errors raised by ooxml-comments."""


class PackageCorrupt(OOXMLCommentsError, ValueError):
    """The archive cannot be opened as an OOXML package."""


class PartMissingRequired(OOXMLCommentsError, LookupError):
    """A part the format requires (e.g. the main document part) is absent."""

    def __init__(self, partname: str, message: str = "") -> None:
        self.partname = partname
        super().__init__(message or f"required part '{partname}' is missing")


class AnnotationStoreMalformed(OOXMLCommentsError):
    """An existing comments part does not parse as its expected root element."""

    def __init__(self, partname: str, message: str = "") -> None:
        self.partname = partname
        super().__init__(message or f"comments part '{partname}' is malformed")


class AnchorNotFound(OOXMLCommentsError, LookupError):
    """No position in the content could be resolved for a comment."""


class WriteFailed(OOXMLCommentsError, OSError):
    """Persisting the mutated package failed; the original file is untouched."""
