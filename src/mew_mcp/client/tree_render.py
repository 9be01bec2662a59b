"""Text renderers for materialized trees."""

import re

from ..models import TreeNode

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE_PREFIX = "│   "
SPACE_PREFIX = "    "

TITLE_SENTENCE_MAX = 40
TITLE_WORDS_MAX = 35
CONTENT_PREVIEW_LENGTH = 150

_SENTENCE_END = re.compile(r"[.!?]")


def _flatten(text: str | None) -> str:
    return (text or "").replace("\r", " ").replace("\n", " ").strip()


def truncate_title(text: str | None) -> str:
    """Short title for structure views.

    The first sentence when it fits in 40 chars, else as many leading words
    as fit in 35 chars, else the first 35 chars.
    """
    full = _flatten(text)
    if not full:
        return "Untitled"

    first_sentence = _SENTENCE_END.split(full, maxsplit=1)[0].strip()
    if first_sentence and len(first_sentence) <= TITLE_SENTENCE_MAX:
        return first_sentence

    title = ""
    for word in full.split():
        candidate = f"{title} {word}" if title else word
        if len(candidate) > TITLE_WORDS_MAX:
            break
        title = candidate
    return title or full[:TITLE_WORDS_MAX]


def content_preview(text: str | None, length: int = CONTENT_PREVIEW_LENGTH) -> str:
    full = text or ""
    preview = full[:length] + "..." if len(full) > length else full
    return preview.replace("\n", " ")


def _render(node: TreeNode, label, prefix: str, is_last: bool, is_root: bool, lines: list[str]) -> None:
    if is_root:
        lines.append(label(node))
        child_prefix = ""
    else:
        lines.append(f"{prefix}{LAST_BRANCH if is_last else BRANCH}{label(node)}")
        child_prefix = prefix + (SPACE_PREFIX if is_last else PIPE_PREFIX)

    for index, child in enumerate(node.children):
        _render(child, label, child_prefix, index == len(node.children) - 1, False, lines)


def render_structure(tree: TreeNode, show_ids: bool = False) -> str:
    """File-tree view of titles; nodes with children end in ``/``."""

    def label(node: TreeNode) -> str:
        text = node.text if node.marker else truncate_title(node.text)
        suffix = "/" if node.total_children > 0 else ""
        ident = f" [{node.id}]" if show_ids and not node.marker else ""
        return f"{text}{suffix}{ident}"

    lines: list[str] = []
    _render(tree, label, "", True, True, lines)
    return "\n".join(lines)


def render_content(tree: TreeNode, preview_length: int = CONTENT_PREVIEW_LENGTH) -> str:
    """File-tree view of content previews, each followed by its node id."""

    def label(node: TreeNode) -> str:
        return f"{content_preview(node.text, preview_length)} [{node.id}]"

    lines: list[str] = []
    _render(tree, label, "", True, True, lines)
    return "\n".join(lines)
