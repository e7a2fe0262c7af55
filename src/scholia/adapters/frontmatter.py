import io
import re
from typing import Any

import yaml

_FM = re.compile(r"^\s*---\s*\n(.*?)\n---\s*\n?", re.DOTALL)


def split_frontmatter(text: str) -> tuple[dict[str, Any], str, int]:
    """
    Split optional YAML frontmatter from a Markdown source.

    Returns ``(meta, body, line_offset)`` where ``line_offset`` is the number
    of source lines consumed by the frontmatter, so body line N is file line
    N + line_offset.
    """
    m = _FM.match(text)
    if not m:
        return {}, text, 0
    try:
        meta = yaml.safe_load(io.StringIO(m.group(1))) or {}
    except yaml.YAMLError:
        # Not frontmatter after all (e.g. a thematic break); render it as-is.
        return {}, text, 0
    if not isinstance(meta, dict):
        return {}, text, 0
    return meta, text[m.end() :], text[: m.end()].count("\n")
