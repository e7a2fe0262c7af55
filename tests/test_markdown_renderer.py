"""Tests for rendering Markdown into a line-addressed tree."""

import tempfile
from pathlib import Path

from scholia.adapters.frontmatter import split_frontmatter
from scholia.adapters.markdown_renderer import MarkdownFileLoader, MarkdownRenderer
from scholia.core.line_index import LineIndex


def lines_of(el):
    return el.get("data-line-start"), el.get("data-line-end")


def test_blocks_carry_line_attributes():
    """Test heading and paragraph line ranges (1-based, inclusive)."""
    doc = MarkdownRenderer().render("# Title\n\nFirst line\nsecond line\n\nLast\n")
    h1, p1, p2 = doc.content.find_all(recursive=False)

    assert h1.name == "h1"
    assert lines_of(h1) == ("1", "1")
    assert lines_of(p1) == ("3", "4")
    assert lines_of(p2) == ("6", "6")
    assert p1.get_text() == "First line\nsecond line"


def test_content_element_id():
    """Test the content element is identifiable."""
    doc = MarkdownRenderer().render("Hello\n")
    assert doc.content.get("id") == "markdown-content"
    assert doc.body.find(id="markdown-content") is doc.content


def test_list_containers_have_no_lines():
    """Test list items are numbered but their list is not."""
    doc = MarkdownRenderer().render("- one\n- two\n")
    ul = doc.content.ul
    assert ul.name == "ul"
    assert ul.get("data-line-start") is None

    items = ul.find_all("li")
    assert [lines_of(li) for li in items] == [("1", "1"), ("2", "2")]
    assert items[1].get_text() == "two"


def test_fenced_code_keeps_raw_text():
    """Test fenced code renders as pre/code with the fence's lines."""
    doc = MarkdownRenderer().render("Intro\n\n```python\nprint(1)\n```\n")
    pre = doc.content.pre
    code = pre.code

    assert lines_of(pre) == ("3", "5")
    assert code.get_attribute_list("class") == ["language-python"]
    assert code.get("data-line-start") is None
    assert code.get_text() == "print(1)\n"


def test_inline_markup():
    """Test emphasis, inline code and links become nested elements."""
    doc = MarkdownRenderer().render("Some *very* `odd` [link](http://x.test)\n")
    html = doc.html()
    assert "<em>very</em>" in html
    assert "<code>odd</code>" in html
    assert '<a href="http://x.test">link</a>' in html


def test_raw_inline_html_is_parsed():
    """Test inline HTML becomes real elements."""
    doc = MarkdownRenderer().render("Some <b>bold</b> words\n")
    assert doc.content.p.b.get_text() == "bold"
    assert "&lt;b&gt;" not in doc.html()


def test_raw_html_block_is_parsed():
    """Test an HTML block renders as markup, not escaped text."""
    doc = MarkdownRenderer().render(
        "<details>\n<summary>More</summary>\nHidden\n</details>\n\nAfter\n"
    )
    details = doc.content.details
    assert details is not None
    assert details.summary.get_text() == "More"
    assert "Hidden" in details.get_text()
    assert "&lt;details&gt;" not in doc.html()
    assert [b.line_start for b in LineIndex(doc).blocks] == [6]


def test_frontmatter_offsets_lines():
    """Test frontmatter becomes metadata and line numbers stay file-relative."""
    source = "---\ntitle: Notes\ntags: [a, b]\n---\n# Head\n\nBody text\n"
    doc = MarkdownRenderer().render(source)

    assert doc.meta == {"title": "Notes", "tags": ["a", "b"]}
    index = LineIndex(doc)
    assert [(b.element.name, b.line_start) for b in index.blocks] == [("h1", 5), ("p", 7)]
    assert "title" not in doc.text()


def test_split_frontmatter_without_frontmatter():
    """Test plain Markdown passes through unchanged."""
    meta, body, offset = split_frontmatter("# Hi\n")
    assert meta == {}
    assert body == "# Hi\n"
    assert offset == 0


def test_split_frontmatter_non_mapping():
    """Test a YAML scalar block is not treated as metadata."""
    text = "---\njust text\n---\nBody\n"
    meta, body, offset = split_frontmatter(text)
    assert meta == {}
    assert body == text
    assert offset == 0


def test_file_loader_rereads():
    """Test every load() re-renders the current file contents."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "doc.md"
        path.write_text("First\n")
        loader = MarkdownFileLoader(path)
        assert loader.load().text().strip() == "First"

        path.write_text("Changed\n")
        assert loader.load().text().strip() == "Changed"
