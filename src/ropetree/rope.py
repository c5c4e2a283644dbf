from __future__ import annotations
from collections.abc import Iterator
import logging
from typing import (
    Optional,
    Union,
    overload,
)

import numpy as np

logger = logging.getLogger(__name__)

# --- Configuration ---
CHUNK_SIZE: int = 512  # target number of characters per leaf when building
MAX_HEIGHT: int = 64  # tree height at which a RopeDocument always rebalances


class RopeRangeError(IndexError):
    """An offset or range does not fit inside the rope"""


class LeafNode:
    """A contiguous run of text with no further structure"""

    __slots__: tuple[str, ...] = ("text",)

    def __init__(self, text: str = ""):
        self.text: str = text

    def __len__(self):
        return len(self.text)

    def __repr__(self):
        return f"<LeafNode {self.text!r}>"

    def size(self) -> int:
        return len(self.text)

    def height(self) -> int:
        return 1

    def is_balanced(self) -> bool:
        return True

    def to_text(self) -> str:
        return self.text


class BranchNode:
    """Two subtrees whose text is the left text followed by the right text.

    The size and height are computed once here. Edits never touch an
    existing branch, they build a new one along the edited path instead.
    """

    __slots__: tuple[str, ...] = ("left", "right", "cached_size", "cached_height")

    def __init__(self, left: Node, right: Node):
        if left is None or right is None:
            raise TypeError("A BranchNode needs both children")
        self.left: Node = left
        self.right: Node = right
        self.cached_size: int = left.size() + right.size()
        self.cached_height: int = 1 + max(left.height(), right.height())

    def __len__(self):
        return self.cached_size

    def __repr__(self):
        return f"<BranchNode size: {self.cached_size}>"

    def size(self) -> int:
        return self.cached_size

    def height(self) -> int:
        return self.cached_height

    def is_balanced(self) -> bool:
        stack: list[BranchNode] = [self]
        while stack:
            node = stack.pop()
            if abs(node.left.height() - node.right.height()) >= 2:
                return False
            for child in (node.left, node.right):
                if isinstance(child, BranchNode):
                    stack.append(child)
        return True

    def to_text(self) -> str:
        return "".join(leaf.text for leaf in iter_leaves(self))


Node = Union[LeafNode, BranchNode]


def _unexpected(node) -> TypeError:
    return TypeError(f"Unexpected rope node: {node!r}")


def iter_leaves(node: Node) -> Iterator[LeafNode]:
    """Yield the leaves from left to right"""
    stack: list[Node] = [node]
    while stack:
        node = stack.pop()
        if isinstance(node, LeafNode):
            yield node
        elif isinstance(node, BranchNode):
            # Push right first so left comes out first
            stack.append(node.right)
            stack.append(node.left)
        else:
            raise _unexpected(node)


def leaf_count(node: Node) -> int:
    return sum(1 for _leaf in iter_leaves(node))


def concat(left: Node, right: Node) -> Node:
    """Join two trees, dropping a side that holds no text"""
    if left.size() == 0:
        return right
    if right.size() == 0:
        return left
    return BranchNode(left, right)


def char_at(node: Node, index: int) -> str:
    """Get the character at the given offset"""
    size = node.size()
    if index < 0:
        index += size
    if index < 0 or index >= size:
        raise RopeRangeError(f"Rope index {index} out of range")

    while isinstance(node, BranchNode):
        left_len = node.left.size()
        if index < left_len:
            node = node.left
        else:
            index -= left_len
            node = node.right

    if isinstance(node, LeafNode):
        return node.text[index]
    raise _unexpected(node)


def substring(node: Node, start: int, end: int) -> str:
    """Get the text in [start, end), clamped the way a str slice is"""
    size = node.size()
    start, end, _step = slice(start, end).indices(size)
    if start >= end:
        return ""

    ret: list[str] = []
    stack = [(node, 0)]  # (node, offset_in_text)
    while stack:
        node, offset = stack.pop()
        node_end = offset + node.size()

        # Skip if this node doesn't overlap [start, end)
        if node_end <= start or offset >= end:
            continue

        if isinstance(node, LeafNode):
            ret.append(node.text[max(0, start - offset) : end - offset])
        elif isinstance(node, BranchNode):
            stack.append((node.right, offset + node.left.size()))
            stack.append((node.left, offset))
        else:
            raise _unexpected(node)
    return "".join(ret)


# ------------------------------------------------------------
# Editing
# ------------------------------------------------------------


def _split_leaf(leaf: LeafNode, position: int) -> tuple[LeafNode, LeafNode]:
    """Split a leaf into [0:position] and [position:]"""
    return LeafNode(leaf.text[:position]), LeafNode(leaf.text[position:])


def _insert_at_leaf(leaf: LeafNode, text: str, location: int) -> Node:
    if leaf.size() == 0:
        return LeafNode(text)
    if location == 0:
        return BranchNode(LeafNode(text), leaf)
    if location == leaf.size():
        return BranchNode(leaf, LeafNode(text))

    left, right = _split_leaf(leaf, location)
    return BranchNode(left, BranchNode(LeafNode(text), right))


Path = list[tuple[BranchNode, bool]]  # (branch, went_right) from the root down


def _rebuild(path: Path, node: Node) -> Node:
    """Rebuild the branches along path around a replaced subtree

    A branch whose rebuilt side holds no text collapses into its other side.
    """
    for branch, went_right in reversed(path):
        if went_right:
            if node.size() == 0:
                node = branch.left
            else:
                node = BranchNode(branch.left, node)
        else:
            if node.size() == 0:
                node = branch.right
            else:
                node = BranchNode(node, branch.right)
    return node


def _insert(node: Node, text: str, location: int) -> Node:
    path: Path = []
    while isinstance(node, BranchNode):
        left_len = node.left.size()
        if location < left_len:
            path.append((node, False))
            node = node.left
        else:
            path.append((node, True))
            location -= left_len
            node = node.right

    if not isinstance(node, LeafNode):
        raise _unexpected(node)
    return _rebuild(path, _insert_at_leaf(node, text, location))


def insert(node: Node, text: str, location: int) -> Node:
    """Return a new tree with text spliced in at the given character offset.

    Only the nodes between the affected leaf and the root are rebuilt, every
    other subtree is shared with the input tree.

    Raises:
        RopeRangeError: If location is not within [0, size]
    """
    if location < 0 or location > node.size():
        raise RopeRangeError(
            f"Insert location {location} outside of rope of size {node.size()}"
        )
    if not text:
        return node
    return _insert(node, text, location)


def _delete_at_leaf(leaf: LeafNode, start: int, end: int) -> Node:
    size = leaf.size()
    if start == 0 and end == size:
        logger.debug("Removing leaf of size %s", size)
        return LeafNode("")
    if start == 0:
        return LeafNode(leaf.text[end:])
    if end == size:
        return LeafNode(leaf.text[:start])

    logger.debug("Splitting leaf of size %s around [%s, %s)", size, start, end)
    return BranchNode(LeafNode(leaf.text[:start]), LeafNode(leaf.text[end:]))


def _delete_suffix(node: Node, start: int) -> Node:
    """Remove [start:] from node"""
    path: Path = []
    while True:
        if start >= node.size():
            break
        if start == 0:
            node = LeafNode("")
            break
        if isinstance(node, LeafNode):
            node = LeafNode(node.text[:start])
            break
        if not isinstance(node, BranchNode):
            raise _unexpected(node)

        left_len = node.left.size()
        if start >= left_len:
            path.append((node, True))
            start -= left_len
            node = node.right
        else:
            # The whole right side goes, so the branch collapses into its left
            node = node.left
    return _rebuild(path, node)


def _delete_prefix(node: Node, end: int) -> Node:
    """Remove [:end] from node"""
    path: Path = []
    while True:
        if end == 0:
            break
        if end >= node.size():
            node = LeafNode("")
            break
        if isinstance(node, LeafNode):
            node = LeafNode(node.text[end:])
            break
        if not isinstance(node, BranchNode):
            raise _unexpected(node)

        left_len = node.left.size()
        if end <= left_len:
            path.append((node, False))
            node = node.left
        else:
            end -= left_len
            node = node.right
    return _rebuild(path, node)


def _delete(node: Node, start: int, end: int) -> Node:
    path: Path = []
    while True:
        if isinstance(node, LeafNode):
            node = _delete_at_leaf(node, start, end)
            break
        if not isinstance(node, BranchNode):
            raise _unexpected(node)
        if start == 0 and end == node.size():
            logger.debug("Removing subtree of size %s", end)
            node = LeafNode("")
            break

        left_len = node.left.size()
        if start >= left_len:
            path.append((node, True))
            start -= left_len
            end -= left_len
            node = node.right
        elif end <= left_len:
            path.append((node, False))
            node = node.left
        else:
            # The range spans both sides: the left loses a suffix and the
            # right loses a prefix
            node = concat(
                _delete_suffix(node.left, start),
                _delete_prefix(node.right, end - left_len),
            )
            break
    return _rebuild(path, node)


def delete_range(node: Node, start: int, end: int) -> Node:
    """Return a new tree without the characters in [start, end)

    A branch whose side loses all of its text is replaced by the other side,
    so no empty leaf is left behind unless the whole text is deleted.

    Raises:
        RopeRangeError: Unless 0 <= start <= end <= size
    """
    if start < 0 or end < start or end > node.size():
        raise RopeRangeError(
            f"Delete range [{start}, {end}) outside of rope of size {node.size()}"
        )
    if start == end:
        return node
    return _delete(node, start, end)


# ------------------------------------------------------------
# Building and rebalancing
# ------------------------------------------------------------


def _zcs(ary) -> np.ndarray:
    """leading Zero Cumulative Summation"""
    return np.concatenate(([0], np.cumsum(ary, dtype=np.int64)))


def _ceil_log2(count: int) -> int:
    return (count - 1).bit_length()


def _split_is_balanced(count: int, left_count: int) -> bool:
    """Whether splitting count leaves after left_count keeps the minimal height"""
    if left_count < 1 or left_count >= count:
        return False
    limit = _ceil_log2(count) - 1
    lh = _ceil_log2(left_count)
    rh = _ceil_log2(count - left_count)
    return lh <= limit and rh <= limit and abs(lh - rh) < 2


def _chunk_text(text: str, chunk_size: int) -> list[str]:
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


def _coalesce(texts: list[str], chunk_size: int) -> list[str]:
    """Merge neighbouring short fragments into pieces of at most chunk_size"""
    ret: list[str] = []
    pending: list[str] = []
    pending_len = 0
    for text in texts:
        if not text:
            continue
        if pending_len + len(text) > chunk_size and pending:
            ret.append("".join(pending))
            pending, pending_len = [], 0
        pending.append(text)
        pending_len += len(text)
    if pending:
        ret.append("".join(pending))
    return ret


def _build_balanced(texts: list[str]) -> Node:
    """Build a balanced tree over the given leaf texts.

    Each branch splits its run of leaves as close to the middle of its text
    as the height constraint allows.
    """
    if not texts:
        return LeafNode("")

    leaves = [LeafNode(t) for t in texts]
    offsets = _zcs([len(t) for t in texts])

    def build(lo: int, hi: int) -> Node:
        count = hi - lo
        if count == 1:
            return leaves[lo]

        midpoint = (offsets[lo] + offsets[hi]) / 2
        split = int(np.searchsorted(offsets[lo : hi + 1], midpoint))
        # The nearer of the two leaf boundaries around the midpoint
        if split > 0 and (
            midpoint - offsets[lo + split - 1] <= offsets[lo + split] - midpoint
        ):
            split -= 1

        if not _split_is_balanced(count, split):
            best = count // 2
            for cand in range(1, count):
                if _split_is_balanced(count, cand) and abs(cand - split) < abs(
                    best - split
                ):
                    best = cand
            split = best

        return BranchNode(build(lo, lo + split), build(lo + split, hi))

    return build(0, len(leaves))


def from_text(text: str, chunk_size: Optional[int] = None) -> Node:
    """Build a tree for the text.

    Args:
        text: The text to store
        chunk_size: If given, split the text into balanced leaves of at most
            this many characters. Otherwise the text becomes a single leaf
    """
    if chunk_size is None:
        return LeafNode(text)
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    if len(text) <= chunk_size:
        return LeafNode(text)
    return _build_balanced(_chunk_text(text, chunk_size))


def rebalance(node: Node, chunk_size: int = CHUNK_SIZE) -> Node:
    """Rebuild the tree so every branch's children differ in height by at most 1

    Empty leaves are dropped and neighbouring short leaves are merged up to
    chunk_size characters. The text is unchanged.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    if isinstance(node, LeafNode):
        return node
    texts = _coalesce([leaf.text for leaf in iter_leaves(node)], chunk_size)
    ret = _build_balanced(texts)
    logger.debug(
        "Rebalanced height %s into %s leaves of height %s",
        node.height(),
        len(texts),
        ret.height(),
    )
    return ret


# --- Main Rope Class ---
class Rope:
    """Immutable text value backed by a persistent rope tree.

    Every editing method returns a new Rope. The receiver, and every other
    Rope sharing subtrees with it, keeps its text.
    """

    __slots__: tuple[str, ...] = ("root",)

    def __init__(self, root: Optional[Node] = None):
        self.root: Node = LeafNode("") if root is None else root

    @classmethod
    def from_text(cls, text: str, chunk_size: Optional[int] = None) -> Rope:
        return cls(from_text(text, chunk_size))

    @classmethod
    def from_map(cls, data) -> Rope:
        from .serialize import from_map

        return cls(from_map(data))

    def to_map(self):
        from .serialize import to_map

        return to_map(self.root)

    # --- Public API ---
    def __len__(self) -> int:
        return self.root.size()

    def __str__(self) -> str:
        return self.root.to_text()

    def __repr__(self):
        return f"<Rope size: {len(self)} height: {self.height()}>"

    def __iter__(self) -> Iterator[str]:
        for leaf in iter_leaves(self.root):
            yield from leaf.text

    @overload
    def __getitem__(self, key: int) -> str: ...

    @overload
    def __getitem__(self, key: slice) -> str: ...

    def __getitem__(self, key: Union[int, slice]) -> str:
        if isinstance(key, slice):
            start, stop, step = key.indices(len(self))
            if step != 1:
                raise ValueError("Slice step must be 1")
            return substring(self.root, start, stop)
        return char_at(self.root, key)

    def insert(self, location: int, text: str) -> Rope:
        """Insert text before the character at location"""
        return Rope(insert(self.root, text, location))

    def delete(self, start: int, end: int) -> Rope:
        """Delete the characters in [start, end)"""
        return Rope(delete_range(self.root, start, end))

    def rebalance(self, chunk_size: int = CHUNK_SIZE) -> Rope:
        return Rope(rebalance(self.root, chunk_size))

    def height(self) -> int:
        return self.root.height()

    def is_balanced(self) -> bool:
        return self.root.is_balanced()

    def leaves(self) -> list[LeafNode]:
        return list(iter_leaves(self.root))
