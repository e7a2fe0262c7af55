"""Tests for re-resolving anchors against a fresh render."""

from scholia.adapters.markdown_renderer import MarkdownRenderer
from scholia.core.capture import AnchorCapture, select_text
from scholia.core.dom import Document, text_of
from scholia.core.line_index import LineIndex
from scholia.core.model import Anchor, Comment
from scholia.core.resolver import AnchorResolver

SOURCE = "apple one\n\napple two\n\n- apple three\n- pear\n"


def make_resolver(source=SOURCE):
    doc = MarkdownRenderer().render(source)
    index = LineIndex(doc)
    return doc, index, AnchorResolver(index)


def test_resolves_within_line_scope():
    """Test the search is limited to blocks overlapping the stored lines."""
    doc, index, resolver = make_resolver()
    rng = resolver.resolve(Anchor(3, 3, "apple"))

    assert rng is not None
    assert rng.text() == "apple"
    assert str(rng.start.node) == "apple two"
    assert rng.start.offset == 0


def test_first_occurrence_wins():
    """Test that duplicate text resolves to the first match in document order."""
    doc, index, resolver = make_resolver()
    rng = resolver.resolve(Anchor(1, 5, "apple"))
    assert str(rng.start.node) == "apple one"


def test_missing_lines_search_whole_content():
    """Test absent line bounds fall back to the whole document."""
    doc, index, resolver = make_resolver()
    rng = resolver.resolve(Anchor(None, None, "pear"))
    assert rng is not None
    assert rng.text() == "pear"

    candidates = resolver.candidates(Anchor(None, 4, "x"))
    assert len(candidates) == 1
    assert candidates[0] is doc.content


def test_not_found_outside_scope():
    """Test text that exists only outside the stored lines is not found."""
    doc, index, resolver = make_resolver()
    assert resolver.resolve(Anchor(1, 1, "pear")) is None
    assert resolver.resolve(Anchor(40, 50, "apple")) is None


def test_empty_text_never_resolves():
    """Test an empty anchor text resolves to nothing."""
    doc, index, resolver = make_resolver()
    assert resolver.resolve(Anchor(1, 1, "")) is None


def test_text_split_across_nodes_is_not_found():
    """Test a match must lie within a single text node."""
    doc, index, resolver = make_resolver("plain *styled* words\n")
    assert resolver.resolve(Anchor(1, 1, "plain styled")) is None
    assert resolver.resolve(Anchor(1, 1, "styled")).text() == "styled"


def test_resolve_comment():
    """Test resolving a stored comment uses its anchor."""
    doc, index, resolver = make_resolver()
    rng = resolver.resolve(Comment(7, 5, 5, "three", "note"))
    assert rng.text() == "three"


def test_capture_then_resolve_on_new_render():
    """Test a captured anchor finds the same text after re-rendering."""
    doc, index, _ = make_resolver()
    capture = AnchorCapture(doc, index)
    li = index.blocks_overlapping(5, 5)[0].element
    anchor = capture.capture(*select_text(li, "three")).anchor

    fresh, _, resolver = make_resolver()
    rng = resolver.resolve(anchor)
    assert rng.text() == "three"
    assert str(rng.start.node) == "apple three"


def test_candidates_in_document_order():
    """Test candidate blocks are returned in document order."""
    doc = Document.from_fragment(
        '<p data-line-start="1" data-line-end="1">line 1</p>'
        '<p data-line-start="2" data-line-end="2">line 2</p>'
    )
    resolver = AnchorResolver(LineIndex(doc))
    assert [text_of(el) for el in resolver.candidates(Anchor(1, 2, "line"))] == [
        "line 1",
        "line 2",
    ]
