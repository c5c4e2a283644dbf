from .rope import (
    CHUNK_SIZE,
    MAX_HEIGHT,
    BranchNode,
    LeafNode,
    Node,
    Rope,
    RopeRangeError,
    char_at,
    concat,
    delete_range,
    from_text,
    insert,
    iter_leaves,
    leaf_count,
    rebalance,
    substring,
)
from .serialize import MalformedRopeError, from_map, to_map

__all__ = [
    "CHUNK_SIZE",
    "MAX_HEIGHT",
    "BranchNode",
    "LeafNode",
    "MalformedRopeError",
    "Node",
    "Rope",
    "RopeRangeError",
    "char_at",
    "concat",
    "delete_range",
    "from_map",
    "from_text",
    "insert",
    "iter_leaves",
    "leaf_count",
    "rebalance",
    "substring",
    "to_map",
]
