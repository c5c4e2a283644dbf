"""Convert rope trees to and from a tagged mapping representation.

The mapping form is meant for diagnostics and tests. Two trees with the
same text but a different shape produce different mappings.

    Node   := Leaf | Branch
    Leaf   := {"kind": "leaf", "text": str}
    Branch := {"kind": "branch", "size": int, "left"?: Node, "right"?: Node}
"""

from __future__ import annotations
from collections.abc import Mapping
import logging
from typing import Any, Literal, TypedDict, Union

from .rope import BranchNode, LeafNode, Node

logger = logging.getLogger(__name__)


class MapLeaf(TypedDict):
    kind: Literal["leaf"]
    text: str


class _MapBranchBase(TypedDict):
    kind: Literal["branch"]


class MapBranch(_MapBranchBase, total=False):
    size: int
    left: MapNode
    right: MapNode


MapNode = Union[MapLeaf, MapBranch]


class MalformedRopeError(ValueError):
    """The mapping does not describe a valid rope"""


def from_map(data: Mapping[str, Any]) -> Node:
    """Build a tree from its mapping representation

    A branch missing one of its children gets an empty leaf in its place.
    The size of a branch is recomputed, and checked when one is given.

    Raises:
        MalformedRopeError: If the mapping is not a leaf or branch, if a
            branch has no children, or if a given size is wrong
    """
    if not isinstance(data, Mapping):
        raise MalformedRopeError(f"Expected a mapping, got {type(data).__name__}")

    kind = data.get("kind")
    if kind == "leaf":
        text = data.get("text")
        if not isinstance(text, str):
            raise MalformedRopeError("A leaf needs a string 'text'")
        return LeafNode(text)

    if kind != "branch":
        raise MalformedRopeError(f"Unknown node kind: {kind!r}")

    left_map = data.get("left")
    right_map = data.get("right")
    if left_map is None and right_map is None:
        raise MalformedRopeError("A branch needs at least one child")

    if left_map is None or right_map is None:
        logger.debug("Filling a missing branch child with an empty leaf")
    left = LeafNode("") if left_map is None else from_map(left_map)
    right = LeafNode("") if right_map is None else from_map(right_map)
    node = BranchNode(left, right)

    size = data.get("size")
    if size is not None and size != node.size():
        raise MalformedRopeError(
            f"Branch size {size} does not match its text size {node.size()}"
        )
    return node


def to_map(node: Node) -> MapNode:
    """Get the mapping representation of a tree"""
    if isinstance(node, LeafNode):
        return {"kind": "leaf", "text": node.text}
    if isinstance(node, BranchNode):
        return {
            "kind": "branch",
            "size": node.size(),
            "left": to_map(node.left),
            "right": to_map(node.right),
        }
    raise TypeError(f"Unexpected rope node: {node!r}")
