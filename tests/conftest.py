"""Fixtures that build small OOXML packages with exact part layouts."""

import io
import textwrap
import zipfile
from xml.sax.saxutils import escape

import pytest

NS_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NS_P = "http://schemas.openxmlformats.org/presentationml/2006/main"
NS_R = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

CT_DOCUMENT = "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"
CT_STYLES = "application/vnd.openxmlformats-officedocument.wordprocessingml.styles+xml"
CT_PRESENTATION = (
    "application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml"
)
CT_SLIDE = "application/vnd.openxmlformats-officedocument.presentationml.slide+xml"
CT_WML_COMMENTS = "application/vnd.openxmlformats-officedocument.wordprocessingml.comments+xml"

REL_OFFICE_DOCUMENT = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"
)
REL_STYLES = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/styles"
REL_SLIDE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/slide"
REL_COMMENTS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/comments"

PROLOG = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'


def _content_types(overrides):
    entries = "\n".join(
        f'  <Override PartName="{name}" ContentType="{ct}"/>' for name, ct in overrides
    )
    return PROLOG + textwrap.dedent(
        """\
        <Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
          <Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>
          <Default Extension="xml" ContentType="application/xml"/>
        """
    ) + entries + "\n</Types>"


def _rels(relationships):
    entries = "\n".join(
        f'  <Relationship Id="{rid}" Type="{rtype}" Target="{target}"/>'
        for rid, rtype, target in relationships
    )
    return (
        PROLOG
        + '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">\n'
        + entries
        + "\n</Relationships>"
    )


def _zip(parts):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in parts.items():
            zf.writestr(name, data.encode("utf-8") if isinstance(data, str) else data)
    return buffer.getvalue()


def build_docx(paragraphs, comments_xml=None):
    """
    Build a word package whose body holds ``paragraphs``.

    Each paragraph is a list of run texts, giving exact control over run
    boundaries. ``comments_xml`` adds a linked word/comments.xml verbatim.
    """
    body = []
    for runs in paragraphs:
        run_xml = "".join(
            f'<w:r><w:t xml:space="preserve">{escape(text)}</w:t></w:r>' for text in runs
        )
        body.append(f"<w:p>{run_xml}</w:p>")
    document = (
        PROLOG
        + f'<w:document xmlns:w="{NS_W}" xmlns:r="{NS_R}"><w:body>'
        + "".join(body)
        + "<w:sectPr/></w:body></w:document>"
    )
    styles = PROLOG + f'<w:styles xmlns:w="{NS_W}"/>'

    overrides = [
        ("/word/document.xml", CT_DOCUMENT),
        ("/word/styles.xml", CT_STYLES),
    ]
    doc_rels = [("rId1", REL_STYLES, "styles.xml")]
    parts = {}
    if comments_xml is not None:
        overrides.append(("/word/comments.xml", CT_WML_COMMENTS))
        doc_rels.append(("rId2", REL_COMMENTS, "comments.xml"))
        parts["word/comments.xml"] = comments_xml

    parts = {
        "[Content_Types].xml": _content_types(overrides),
        "_rels/.rels": _rels([("rId1", REL_OFFICE_DOCUMENT, "word/document.xml")]),
        "word/document.xml": document,
        "word/_rels/document.xml.rels": _rels(doc_rels),
        "word/styles.xml": styles,
        **parts,
    }
    return _zip(parts)


def build_pptx(slide_count, authors_xml=None):
    """Build a presentation package with ``slide_count`` empty slides."""
    sld_ids = "".join(
        f'<p:sldId id="{256 + n}" r:id="rId{n + 1}"/>' for n in range(slide_count)
    )
    presentation = (
        PROLOG
        + f'<p:presentation xmlns:p="{NS_P}" xmlns:r="{NS_R}">'
        + f"<p:sldIdLst>{sld_ids}</p:sldIdLst>"
        + '<p:sldSz cx="9144000" cy="6858000"/>'
        + "</p:presentation>"
    )
    slide = (
        PROLOG
        + f'<p:sld xmlns:p="{NS_P}"><p:cSld><p:spTree/></p:cSld></p:sld>'
    )

    overrides = [("/ppt/presentation.xml", CT_PRESENTATION)]
    pres_rels = []
    parts = {}
    for n in range(1, slide_count + 1):
        overrides.append((f"/ppt/slides/slide{n}.xml", CT_SLIDE))
        pres_rels.append((f"rId{n}", REL_SLIDE, f"slides/slide{n}.xml"))
        parts[f"ppt/slides/slide{n}.xml"] = slide
    if authors_xml is not None:
        parts["ppt/commentAuthors.xml"] = authors_xml

    parts = {
        "[Content_Types].xml": _content_types(overrides),
        "_rels/.rels": _rels([("rId1", REL_OFFICE_DOCUMENT, "ppt/presentation.xml")]),
        "ppt/presentation.xml": presentation,
        "ppt/_rels/presentation.xml.rels": _rels(pres_rels),
        **parts,
    }
    return _zip(parts)


@pytest.fixture
def make_docx(tmp_path):
    """Write a word package to disk and return its path."""

    def _make(paragraphs, comments_xml=None, name="doc.docx"):
        path = tmp_path / name
        path.write_bytes(build_docx(paragraphs, comments_xml=comments_xml))
        return path

    return _make


@pytest.fixture
def make_pptx(tmp_path):
    """Write a presentation package to disk and return its path."""

    def _make(slide_count, authors_xml=None, name="deck.pptx"):
        path = tmp_path / name
        path.write_bytes(build_pptx(slide_count, authors_xml=authors_xml))
        return path

    return _make
