"""Tests for rebuilding balanced trees."""

import pytest
from ropetree import from_map, rebalance
from ropetree.rope import (
    BranchNode,
    LeafNode,
    from_text,
    insert,
    iter_leaves,
    _build_balanced,
    _coalesce,
    _split_is_balanced,
)


def _right_spine(texts):
    node = LeafNode(texts[-1])
    for text in reversed(texts[:-1]):
        node = BranchNode(LeafNode(text), node)
    return node


class TestRebalance:
    """Test the rebalance postconditions."""

    def test_leaf_unchanged(self):
        leaf = LeafNode("abc")
        assert rebalance(leaf) is leaf

    def test_small_chain(self):
        node = from_map(
            {
                "kind": "branch",
                "left": {"kind": "leaf", "text": "a"},
                "right": {
                    "kind": "branch",
                    "left": {"kind": "leaf", "text": "b"},
                    "right": {
                        "kind": "branch",
                        "left": {"kind": "leaf", "text": "c"},
                        "right": {"kind": "leaf", "text": "d"},
                    },
                },
            }
        )
        assert not node.is_balanced()
        result = rebalance(node, chunk_size=1)
        assert result.is_balanced()
        assert result.to_text() == "abcd"
        assert [leaf.text for leaf in iter_leaves(result)] == ["a", "b", "c", "d"]
        assert result.height() == 3

    def test_long_spine(self):
        texts = [str(i % 10) * (i % 7 + 1) for i in range(200)]
        node = _right_spine(texts)
        assert not node.is_balanced()
        result = rebalance(node, chunk_size=1)
        assert result.is_balanced()
        assert result.to_text() == "".join(texts)
        assert len(list(iter_leaves(result))) == 200

    def test_repeated_single_inserts(self):
        node = LeafNode("")
        expected = ""
        for _ in range(300):
            node = insert(node, "x", node.size())
            expected += "x"
        assert not node.is_balanced()
        result = rebalance(node, chunk_size=16)
        assert result.is_balanced()
        assert result.to_text() == expected
        assert all(leaf.size() <= 16 for leaf in iter_leaves(result))

    def test_uneven_leaf_sizes(self):
        texts = ["a" * 1000] + ["b"] * 20 + ["c" * 500]
        node = _right_spine(texts)
        result = rebalance(node, chunk_size=1)
        assert result.is_balanced()
        assert result.to_text() == "".join(texts)

    def test_drops_empty_leaves(self):
        node = BranchNode(
            BranchNode(LeafNode(""), LeafNode("ab")),
            BranchNode(LeafNode("cd"), LeafNode("")),
        )
        result = rebalance(node, chunk_size=1)
        assert [leaf.text for leaf in iter_leaves(result)] == ["ab", "cd"]

    def test_all_empty(self):
        node = BranchNode(LeafNode(""), LeafNode(""))
        result = rebalance(node)
        assert isinstance(result, LeafNode)
        assert result.text == ""

    def test_merges_small_leaves(self):
        node = _right_spine(["a", "b", "c", "d", "e"])
        result = rebalance(node)
        assert isinstance(result, LeafNode)
        assert result.text == "abcde"

    def test_does_not_change_input(self):
        node = _right_spine(["ab", "cd", "ef", "gh"])
        before = node.to_text()
        rebalance(node, chunk_size=2)
        assert node.to_text() == before
        assert not node.is_balanced()

    def test_bad_chunk_size(self):
        with pytest.raises(ValueError):
            rebalance(_right_spine(["a", "b"]), chunk_size=0)


class TestBuildHelpers:
    """Test the helpers used to build balanced trees."""

    def test_split_is_balanced(self):
        assert _split_is_balanced(2, 1)
        assert _split_is_balanced(5, 2)
        assert _split_is_balanced(5, 3)
        assert not _split_is_balanced(5, 1)
        assert not _split_is_balanced(5, 4)
        assert not _split_is_balanced(4, 0)
        assert not _split_is_balanced(4, 4)

    def test_middle_split_always_allowed(self):
        for count in range(2, 200):
            assert _split_is_balanced(count, count // 2)

    def test_build_balanced_counts(self):
        for count in range(1, 70):
            node = _build_balanced(["ab"] * count)
            assert node.is_balanced()
            assert node.size() == 2 * count

    def test_build_balanced_empty(self):
        node = _build_balanced([])
        assert isinstance(node, LeafNode)
        assert node.size() == 0

    def test_coalesce(self):
        assert _coalesce(["a", "", "bc", "d", "efgh", "i"], 3) == [
            "abc",
            "d",
            "efgh",
            "i",
        ]
        assert _coalesce([], 3) == []

    def test_from_text_chunks(self):
        node = from_text("abcdefghij", chunk_size=3)
        assert [leaf.text for leaf in iter_leaves(node)] == ["abc", "def", "ghi", "j"]
        assert node.is_balanced()
