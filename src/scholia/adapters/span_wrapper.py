from bs4.element import PageElement, Tag

from ..core.dom import Point, Range, is_text, soup_of
from ..core.errors import WrapFailed
from ..core.model import HIGHLIGHT_CLASS, Comment, Highlight
from ..core.ports import Wrapper


def _container(point: Point) -> Tag | None:
    if is_text(point.node):
        return point.node.parent
    return point.node


def _splits(point: Point) -> bool:
    return is_text(point.node) and 0 < point.offset < len(point.node)


class SpanWrapper(Wrapper):
    """
    Wrap a range in a <span class="comment-highlight">.

    Like a DOM surroundContents(), both boundaries must sit in the same parent
    element; a range cutting across element boundaries fails with WrapFailed.
    Unwrapping smooths the parent, so strings split by wrap() are joined again
    whatever order highlights are removed in.
    """

    def wrap(self, rng: Range, comment: Comment) -> Highlight:
        start, end = rng.start, rng.end
        parent = _container(start)
        if parent is None or parent is not _container(end):
            raise WrapFailed("range boundaries do not share a parent element")
        if rng.collapsed:
            raise WrapFailed("range is empty")
        soup = soup_of(parent)
        if soup is None:
            raise WrapFailed("range is not inside a parsed page")

        # Split at the end first so child offsets at the start stay valid.
        end_ref = self._split(end)
        if start.node is end.node and _splits(end):
            start = Point(end_ref.previous_sibling, start.offset)
        start_ref = self._split(start)

        first = parent.index(start_ref) if start_ref is not None else len(parent.contents)
        last = parent.index(end_ref) if end_ref is not None else len(parent.contents)
        if first >= last:
            parent.smooth()
            raise WrapFailed("range selects nothing")

        moved = parent.contents[first:last]
        span = moved[0].wrap(soup.new_tag("span", attrs=self._attrs(comment)))
        for node in moved[1:]:
            span.append(node)
        return Highlight(comment=comment, element=span)

    def unwrap(self, highlight: Highlight) -> None:
        span = highlight.element
        parent = span.parent
        if parent is None:
            return
        span.unwrap()
        parent.smooth()

    def relabel(self, highlight: Highlight, comment_text: str) -> None:
        highlight.element["data-comment-text"] = comment_text
        highlight.element["title"] = comment_text

    def _attrs(self, comment: Comment) -> dict[str, str]:
        attrs = {
            "class": HIGHLIGHT_CLASS,
            "data-comment-id": str(comment.id),
            "data-comment-text": comment.comment_text,
            "data-selected-text": comment.selected_text,
            "title": comment.comment_text,
        }
        # Not data-line-*: the span must never be mistaken for a block.
        if comment.line_start is not None:
            attrs["data-comment-line-start"] = str(comment.line_start)
        if comment.line_end is not None:
            attrs["data-comment-line-end"] = str(comment.line_end)
        return attrs

    def _split(self, point: Point) -> PageElement | None:
        """Return the child that begins right after ``point``, splitting a string if needed."""
        node = point.node
        if is_text(node):
            if point.offset <= 0:
                return node
            if point.offset >= len(node):
                return node.next_sibling
            left = type(node)(node[: point.offset])
            right = type(node)(node[point.offset :])
            node.replace_with(left)
            left.insert_after(right)
            return right
        if point.offset < len(node.contents):
            return node.contents[point.offset]
        return None
