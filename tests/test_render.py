"""Tests for tree rendering and title truncation."""

from mew_mcp.client import render_content, render_structure, truncate_title
from mew_mcp.models import CYCLE_SENTINEL_TEXT, TreeNode


def sample_tree() -> TreeNode:
    leaf = TreeNode(id="leaf", text="Leaf", depth=2)
    alpha = TreeNode(id="alpha", text="Alpha", depth=1, total_children=1, shown_children=1, children=[leaf])
    beta = TreeNode(id="beta", text="Beta", depth=1)
    return TreeNode(id="root", text="Root note", total_children=2, shown_children=2, children=[alpha, beta])


def test_structure_view():
    assert render_structure(sample_tree()) == "Root note/\n├── Alpha/\n│   └── Leaf\n└── Beta"


def test_structure_view_with_ids():
    rendered = render_structure(sample_tree(), show_ids=True)
    assert rendered.splitlines()[0] == "Root note/ [root]"
    assert rendered.splitlines()[-1] == "└── Beta [beta]"


def test_truncated_children_still_marked_as_folders():
    tree = TreeNode(id="r", text="Root", total_children=5, has_more_children=True)
    assert render_structure(tree) == "Root/"


def test_sentinel_text_is_not_truncated():
    sentinel = TreeNode(id="a", text=CYCLE_SENTINEL_TEXT, depth=1, marker="cycle")
    tree = TreeNode(id="a", text="Loop", total_children=1, shown_children=1, children=[sentinel])
    assert render_structure(tree, show_ids=True) == f"Loop/ [a]\n└── {CYCLE_SENTINEL_TEXT}"


def test_content_view_previews_and_ids():
    tree = TreeNode(
        id="r",
        text="abcdefg\nhij",
        total_children=1,
        shown_children=1,
        children=[TreeNode(id="c", text="short", depth=1)],
    )
    assert render_content(tree, preview_length=5) == "abcde... [r]\n└── short [c]"
    assert render_content(tree).splitlines()[0] == "abcdefg hij [r]"


class TestTruncateTitle:
    def test_short_first_sentence(self):
        assert truncate_title("Hello world. More text follows here.") == "Hello world"

    def test_long_sentence_cut_on_word_boundary(self):
        text = "This is a very long sentence that definitely exceeds forty chars"
        assert truncate_title(text) == "This is a very long sentence that"

    def test_single_long_word_hard_cut(self):
        assert truncate_title("x" * 50) == "x" * 35

    def test_empty_is_untitled(self):
        assert truncate_title("") == "Untitled"
        assert truncate_title(None) == "Untitled"

    def test_newlines_flattened(self):
        assert truncate_title("Line one\nline two") == "Line one line two"
