"""Module/method hierarchy built from slash-separated method names."""

from typing import Iterable, Iterator, Optional

from .models import Method

# Trees with fewer methods than this are shown fully expanded
EXPAND_ALL_THRESHOLD = 50

DEFAULT_METHOD_PATH = "services/oauth/request_token"


class MethodTreeNode:
    """
    Node of the method tree.

    Children are keyed by path segment and kept in first-seen order. A node
    carries a method when some method's full path ends at it; internal nodes
    may carry one too (e.g. "a" and "a/b" both being methods).
    """

    def __init__(self, segment: str = "", parent: Optional["MethodTreeNode"] = None):
        self.segment = segment
        self.parent = parent
        self.method: Optional[Method] = None
        self.children: dict[str, MethodTreeNode] = {}

    @property
    def path(self) -> str:
        """Full slash-separated path from the root (empty for the root)."""
        segments = []
        node = self
        while node.parent is not None:
            segments.append(node.segment)
            node = node.parent
        return "/".join(reversed(segments))

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def child(self, segment: str) -> Optional["MethodTreeNode"]:
        """Direct child by segment."""
        return self.children.get(segment)

    def ensure_child(self, segment: str) -> "MethodTreeNode":
        """Get a direct child, creating it if missing."""
        node = self.children.get(segment)
        if node is None:
            node = MethodTreeNode(segment, parent=self)
            self.children[segment] = node
        return node

    def find(self, path: str) -> Optional["MethodTreeNode"]:
        """Look up a descendant by slash-separated path."""
        node = self
        for segment in path.split("/"):
            node = node.children.get(segment)
            if node is None:
                return None
        return node

    def walk(self) -> Iterator["MethodTreeNode"]:
        """Depth-first, pre-order iteration over all descendants."""
        for node in self.children.values():
            yield node
            yield from node.walk()

    def iter_methods(self) -> Iterator[Method]:
        """All attached methods below this node, in tree order."""
        for node in self.walk():
            if node.method is not None:
                yield node.method

    def __iter__(self) -> Iterator["MethodTreeNode"]:
        return iter(self.children.values())

    def __len__(self) -> int:
        return len(self.children)

    def __contains__(self, segment: str) -> bool:
        return segment in self.children

    def __repr__(self) -> str:
        return f"MethodTreeNode(path={self.path!r}, method={self.method is not None}, children={len(self)})"


def build_tree(methods: Iterable[Method]) -> MethodTreeNode:
    """
    Build a method tree from flat method names.

    Args:
        methods: Methods in the order they should appear

    Returns:
        Root node (no segment, no parent, no method)
    """
    root = MethodTreeNode()
    for method in methods:
        node = root
        for segment in method.name.split("/"):
            node = node.ensure_child(segment)
        # Duplicate paths: last one wins
        node.method = method
    return root


def should_expand_all(root: MethodTreeNode) -> bool:
    """Check if a tree is small enough to display fully expanded."""
    return sum(1 for _ in root.iter_methods()) < EXPAND_ALL_THRESHOLD
