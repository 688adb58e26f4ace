"""Plain-text extraction from the opaque rich-text document blob.

Documents are stored verbatim. The only structure relied on here is the
common editor tree shape: nodes are mappings with an optional ``type``, an
optional ``text`` and an optional ``content`` list of child nodes.
"""

from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")


def _is_inline(node: object) -> bool:
    return isinstance(node, dict) and (node.get("type") == "text" or "text" in node)


def _walk(node: object) -> str:
    if node is None:
        return ""
    if isinstance(node, str):
        return _TAG_RE.sub("", node)
    if isinstance(node, list):
        return " ".join(part for part in (_walk(child) for child in node) if part)
    if not isinstance(node, dict):
        return ""

    own_text = node.get("text") if isinstance(node.get("text"), str) else ""
    children = node.get("content")
    if not isinstance(children, list) or not children:
        return own_text

    separator = "" if all(_is_inline(child) for child in children) else " "
    child_text = separator.join(part for part in (_walk(child) for child in children) if part)
    return f"{own_text}{child_text}" if own_text else child_text


def extract_text(content: object) -> str:
    """Flatten a document (or markup string) to whitespace-normalised text."""

    return _SPACE_RE.sub(" ", _walk(content)).strip()
