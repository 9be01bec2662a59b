"""Parser for indented "thinking markdown" into labeled thought trees.

Each non-blank line is one thought. Two leading spaces make one indent
level. A line may carry a relation label::

    First insight                  -> root_thought
      → consequence                -> flows_to
      key insight: it scales       -> key_insight
    Second top-level insight       -> thought (child of the root)
"""

from dataclasses import dataclass, field
from typing import Any

ARROW = "→ "
ROOT_LABEL = "root_thought"
ARROW_LABEL = "flows_to"
DEFAULT_LABEL = "thought"

_LABEL_SEPARATOR = ": "
_MAX_LABEL_COLUMN = 40
_MAX_SINGLE_WORD_LABEL = 30
_MAX_LABEL_WORDS = 3


@dataclass
class ThoughtNode:
    content: str
    relation_label: str
    indent: int
    children: list["ThoughtNode"] = field(default_factory=list)

    def count(self) -> int:
        return 1 + sum(child.count() for child in self.children)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "relation_label": self.relation_label,
            "children": [child.to_dict() for child in self.children],
        }


def _indent_level(line: str) -> int:
    # every leading whitespace character is one column, tabs included
    return (len(line) - len(line.lstrip())) // 2


def split_label(text: str) -> tuple[str, str]:
    """Split one trimmed line into ``(relation_label, content)``."""
    if text.startswith(ARROW):
        return ARROW_LABEL, text[len(ARROW):].strip()

    colon = text.find(_LABEL_SEPARATOR)
    if 0 <= colon < _MAX_LABEL_COLUMN:
        label = text[:colon].strip()
        content = text[colon + len(_LABEL_SEPARATOR):].strip()
        if label and len(label) < _MAX_SINGLE_WORD_LABEL and " " not in label:
            return label, content
        words = label.split()
        if words and len(words) <= _MAX_LABEL_WORDS:
            return "_".join(words).lower(), content

    return DEFAULT_LABEL, text


def parse_thinking_markdown(markdown: str) -> list[ThoughtNode]:
    """Parse thinking markdown into a single-rooted thought tree.

    The first non-blank line is the root. Every later line hangs off the
    nearest shallower line still open on the indentation stack, or off the
    root when there is none.
    """
    root: ThoughtNode | None = None
    stack: list[ThoughtNode] = []

    for line in markdown.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        indent = _indent_level(line)
        label, content = split_label(trimmed)

        if root is None:
            root = ThoughtNode(content=content, relation_label=ROOT_LABEL, indent=indent)
            continue

        thought = ThoughtNode(content=content, relation_label=label, indent=indent)
        while stack and stack[-1].indent >= indent:
            stack.pop()
        parent = stack[-1] if stack else root
        parent.children.append(thought)
        stack.append(thought)

    return [root] if root is not None else []
