"""End-to-end tests for presentation comment insertion."""

import zipfile

import pytest
from lxml import etree
from pptx import Presentation
from pptx.opc.constants import RELATIONSHIP_TYPE as RT

from ooxml_comments import (
    AnchorNotFound,
    AnnotationStoreMalformed,
    Package,
    PartMissingRequired,
    SlideCommentManager,
    add_slide_comment,
    get_slide_comments,
)
from ooxml_comments.wiring import ensure_relationship

from conftest import NS_P, REL_COMMENTS, build_pptx

ns_ct = "http://schemas.openxmlformats.org/package/2006/content-types"
CT_PML_COMMENTS = "application/vnd.openxmlformats-officedocument.presentationml.comments+xml"
CT_PML_COMMENT_AUTHORS = (
    "application/vnd.openxmlformats-officedocument.presentationml.commentAuthors+xml"
)


def read_xml(path, name):
    with zipfile.ZipFile(str(path), "r") as zf:
        return etree.fromstring(zf.read(name))


def overrides(path):
    types = read_xml(path, "[Content_Types].xml")
    return [
        (o.get("PartName"), o.get("ContentType"))
        for o in types.findall(f"{{{ns_ct}}}Override")
    ]


def comment_targets(path, slide_partname):
    """Targets of the comments relationships of one slide."""
    rels_name = slide_partname.replace("slides/", "slides/_rels/") + ".rels"
    with zipfile.ZipFile(str(path)) as zf:
        if rels_name not in zf.namelist():
            return []
        rels = etree.fromstring(zf.read(rels_name))
    return [r.get("Target") for r in rels if r.get("Type") == REL_COMMENTS]


def move_first_slide_to_end(path):
    """Reorder the slide list so slide1.xml is shown last."""
    pkg = Package.open(path)
    root = pkg.xml("ppt/presentation.xml")
    sld_id_lst = root.find(f"{{{NS_P}}}sldIdLst")
    first = sld_id_lst[0]
    sld_id_lst.remove(first)
    sld_id_lst.append(first)
    pkg.mark_dirty("ppt/presentation.xml")
    pkg.save(path)


class TestAddSlideComment:
    """Tests for SlideCommentManager.add_comment through the file helpers."""

    def test_comment_on_third_slide(self, make_pptx):
        """A comment on slide 3 of 5 lands in that slide's store at its position."""
        path = make_pptx(5)

        info = add_slide_comment(
            path, 3, "Needs alt text", x=1000000, y=2000000, author="Reviewer1"
        )
        assert info.slide_number == 3
        assert info.slide_id == "258"
        assert info.author_id == 0
        assert info.index == 1

        authors = read_xml(path, "ppt/commentAuthors.xml")
        assert authors.tag == f"{{{NS_P}}}cmAuthorLst"
        [author] = authors.findall(f"{{{NS_P}}}cmAuthor")
        assert author.get("id") == "0"
        assert author.get("name") == "Reviewer1"
        assert author.get("lastIdx") == "1"

        store = read_xml(path, "ppt/comments/comment3.xml")
        [comment] = store.findall(f"{{{NS_P}}}cm")
        assert comment.get("authorId") == "0"
        assert comment.get("idx") == "1"
        pos = comment.find(f"{{{NS_P}}}pos")
        assert (pos.get("x"), pos.get("y")) == ("1000000", "2000000")
        assert comment.find(f"{{{NS_P}}}text").text == "Needs alt text"

        assert comment_targets(path, "ppt/slides/slide3.xml") == ["../comments/comment3.xml"]

        assert ("/ppt/comments/comment3.xml", CT_PML_COMMENTS) in overrides(path)
        assert ("/ppt/commentAuthors.xml", CT_PML_COMMENT_AUTHORS) in overrides(path)

    def test_author_registered_once(self, make_pptx):
        """Repeated comments reuse the author entry, the store and its wiring."""
        path = make_pptx(2)
        add_slide_comment(path, 1, "one", author="Reviewer1")
        second = add_slide_comment(path, 2, "two", author="Reviewer1")
        third = add_slide_comment(path, 2, "three", author="Reviewer2")

        authors = read_xml(path, "ppt/commentAuthors.xml")
        assert [(a.get("id"), a.get("name")) for a in authors] == [
            ("0", "Reviewer1"),
            ("1", "Reviewer2"),
        ]
        assert second.index == 2
        assert third.author_id == 1
        assert third.index == 1

        names = [name for name, _ in overrides(path)]
        assert names.count("/ppt/commentAuthors.xml") == 1
        assert names.count("/ppt/comments/comment2.xml") == 1
        assert comment_targets(path, "ppt/slides/slide2.xml") == ["../comments/comment2.xml"]

    def test_existing_authors_continue_ids(self, make_pptx):
        """Known authors keep their id; new ones follow the highest id."""
        existing = (
            f'<p:cmAuthorLst xmlns:p="{NS_P}">'
            '<p:cmAuthor id="0" name="Old" initials="O" lastIdx="4" clrIdx="0"/>'
            '<p:cmAuthor id="3" name="Older" initials="O" lastIdx="1" clrIdx="1"/>'
            "</p:cmAuthorLst>"
        )
        path = make_pptx(1, authors_xml=existing)
        info = add_slide_comment(path, 1, "again", author="Old")
        assert (info.author_id, info.index) == (0, 5)
        info = add_slide_comment(path, 1, "new", author="Newcomer")
        assert info.author_id == 4

    def test_date_kept(self, make_pptx):
        """An explicit date string is written verbatim."""
        path = make_pptx(1)
        info = add_slide_comment(path, 1, "x", author="A", date="2024-05-06T07:08:09Z")
        assert info.date == "2024-05-06T07:08:09Z"
        assert info.timestamp.year == 2024


class TestReorderedSlides:
    """Stores follow the slide part, not its position in the slide list."""

    def test_existing_store_reused_after_reorder(self, make_pptx):
        """A slide that already links a store keeps appending to it."""
        path = make_pptx(2)
        add_slide_comment(path, 2, "on slide2.xml", author="A")
        move_first_slide_to_end(path)

        # slide2.xml is now shown first
        add_slide_comment(path, 1, "first in order", author="A")

        assert comment_targets(path, "ppt/slides/slide2.xml") == ["../comments/comment2.xml"]
        assert comment_targets(path, "ppt/slides/slide1.xml") == []
        store = read_xml(path, "ppt/comments/comment2.xml")
        texts = [t.text for t in store.iter(f"{{{NS_P}}}text")]
        assert texts == ["on slide2.xml", "first in order"]

    def test_new_store_avoids_other_slides_store(self, make_pptx):
        """A new store never takes a part another slide already links."""
        path = make_pptx(2)
        add_slide_comment(path, 2, "on slide2.xml", author="A")
        move_first_slide_to_end(path)

        # slide1.xml is now shown second, but comment2.xml belongs to slide2.xml
        info = add_slide_comment(path, 2, "second in order", author="A")
        assert info.slide_number == 2

        assert comment_targets(path, "ppt/slides/slide1.xml") == ["../comments/comment3.xml"]
        assert comment_targets(path, "ppt/slides/slide2.xml") == ["../comments/comment2.xml"]
        assert ("/ppt/comments/comment3.xml", CT_PML_COMMENTS) in overrides(path)

        listed = [(c.slide_number, c.text) for c in get_slide_comments(path)]
        assert listed == [(1, "on slide2.xml"), (2, "second in order")]


class TestFailures:
    """Failed insertions leave the file untouched."""

    def test_out_of_range(self, make_pptx):
        """Slide numbers outside the slide list raise AnchorNotFound."""
        path = make_pptx(2)
        before = path.read_bytes()
        for number in (0, 3):
            with pytest.raises(AnchorNotFound):
                add_slide_comment(path, number, "x", author="A")
        assert path.read_bytes() == before

    def test_malformed_authors(self, make_pptx):
        """An unparsable authors part aborts the insertion."""
        path = make_pptx(1, authors_xml="<broken>")
        before = path.read_bytes()
        with pytest.raises(AnnotationStoreMalformed):
            add_slide_comment(path, 1, "x", author="A")
        assert path.read_bytes() == before

    @pytest.mark.parametrize(
        "store_xml",
        [b"<p:cmLst", f'<p:sld xmlns:p="{NS_P}"/>'.encode()],
        ids=["unparsable", "wrong-root"],
    )
    def test_malformed_slide_store(self, make_pptx, store_xml):
        """A linked slide store that is not a p:cmLst aborts the insertion."""
        path = make_pptx(2)
        pkg = Package.open(path)
        pkg.set_part("ppt/comments/comment2.xml", store_xml)
        ensure_relationship(
            pkg, "ppt/slides/slide2.xml", REL_COMMENTS, "ppt/comments/comment2.xml"
        )
        pkg.save(path)
        before = path.read_bytes()

        with pytest.raises(AnnotationStoreMalformed) as exc_info:
            add_slide_comment(path, 2, "x", author="A")
        assert exc_info.value.partname == "ppt/comments/comment2.xml"
        assert path.read_bytes() == before

    def test_missing_presentation_part(self):
        """A package without ppt/presentation.xml is rejected."""
        pkg = Package.load(build_pptx(1))
        pkg._blobs.pop("ppt/presentation.xml")
        with pytest.raises(PartMissingRequired):
            SlideCommentManager(pkg)

    def test_missing_slide_part(self):
        """A slide list entry without its slide part is rejected."""
        pkg = Package.load(build_pptx(2))
        pkg._blobs.pop("ppt/slides/slide2.xml")
        mgr = SlideCommentManager(pkg)
        with pytest.raises(PartMissingRequired):
            mgr.add_comment(2, "x", author="A")


class TestListSlideComments:
    """Tests for reading presentation comments back."""

    def test_list_in_slide_order(self, make_pptx):
        """Comments are listed by slide order, not insertion order."""
        path = make_pptx(3)
        add_slide_comment(path, 3, "last", author="B")
        add_slide_comment(path, 1, "first", x=5, y=6, author="A")
        comments = get_slide_comments(path)
        assert [(c.slide_number, c.author, c.text) for c in comments] == [
            (1, "A", "first"),
            (3, "B", "last"),
        ]
        assert (comments[0].x, comments[0].y) == (5, 6)

    def test_list_empty(self, make_pptx):
        """A deck without comments lists none."""
        assert get_slide_comments(make_pptx(2)) == []


class TestPythonPptxInterop:
    """Presentations produced by python-pptx stay readable after annotation."""

    def test_python_pptx_presentation(self, tmp_path):
        """python-pptx reopens the deck and sees the new relationships."""
        prs = Presentation()
        for _ in range(5):
            prs.slides.add_slide(prs.slide_layouts[6])
        path = tmp_path / "real.pptx"
        prs.save(str(path))

        add_slide_comment(path, 3, "Check chart", x=1000000, y=2000000, author="Reviewer1")

        reopened = Presentation(str(path))
        assert len(reopened.slides) == 5
        slide_rels = reopened.slides[2].part.rels.values()
        assert any(rel.reltype == RT.COMMENTS for rel in slide_rels)
        assert any(
            rel.reltype == RT.COMMENT_AUTHORS for rel in reopened.part.rels.values()
        )
        [info] = get_slide_comments(path)
        assert info.slide_number == 3
        assert info.text == "Check chart"
