"""Markdown → line-addressed document, via markdown-it-py and BeautifulSoup."""

from pathlib import Path

from markdown_it import MarkdownIt
from markdown_it.renderer import RendererHTML
from markdown_it.rules_core import StateCore

from ..core.dom import Document
from ..core.model import LINE_END_ATTR, LINE_START_ATTR
from ..core.ports import DocumentLoader, Renderer
from .frontmatter import split_frontmatter

# List containers get no line attributes; their items do.
_UNNUMBERED = {"bullet_list_open", "ordered_list_open"}
# Leaf blocks rendered as elements. Raw html_block content is emitted as-is.
_LEAVES = {"fence", "code_block", "hr"}


def _line_attrs(start: int, stop: int, offset: int) -> dict[str, str]:
    # token.map is 0-based and end-exclusive; the attributes are 1-based and inclusive
    return {
        LINE_START_ATTR: str(start + 1 + offset),
        LINE_END_ATTR: str(max(stop, start + 1) + offset),
    }


def number_blocks(state: StateCore) -> None:
    """Core rule: put data-line-start/end on every block token with a source map."""
    offset = state.env.get("line_offset", 0)
    for token in state.tokens:
        if not token.map or token.nesting == -1 or token.type in _UNNUMBERED:
            continue
        if token.nesting == 0 and token.type not in _LEAVES:
            continue
        attrs = _line_attrs(token.map[0], token.map[1], offset)
        if token.type == "fence":
            # the default fence rule puts token attrs on <code>; see render_fence
            token.meta["lines"] = attrs
            continue
        for name, value in attrs.items():
            token.attrSet(name, value)


def render_fence(self, tokens, idx, options, env) -> str:
    out = RendererHTML.fence(self, tokens, idx, options, env)
    lines = tokens[idx].meta.get("lines")
    if lines and out.startswith("<pre>"):
        attrs = "".join(f' {name}="{value}"' for name, value in lines.items())
        out = f"<pre{attrs}>" + out[len("<pre>"):]
    return out


class MarkdownRenderer(Renderer):
    def __init__(self, md: MarkdownIt | None = None):
        self.md = md or MarkdownIt("commonmark", {"html": True}).enable("table")
        self.md.core.ruler.push("number_blocks", number_blocks)
        self.md.add_render_rule("fence", render_fence)

    def render(self, source: str) -> Document:
        meta, body, line_offset = split_frontmatter(source)
        fragment = self.md.render(body, {"line_offset": line_offset})
        return Document.from_fragment(fragment, meta)


class MarkdownFileLoader(DocumentLoader):
    """Re-read and re-render a Markdown file on every load()."""

    def __init__(self, path: Path, renderer: Renderer | None = None):
        self.path = path
        self.renderer = renderer or MarkdownRenderer()

    def load(self) -> Document:
        return self.renderer.render(self.path.read_text(encoding="utf-8"))
